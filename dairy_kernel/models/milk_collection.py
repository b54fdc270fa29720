"""
Module: dairy_kernel.models.milk_collection
Responsibility: ORM persistence for farmer line items -- one row per shift
    of milk bought from a farmer.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - amount == quantity * rate as of the last flush.  Recomputed by the
      before_flush listener in db/listeners.py for every new or dirty row.
    - is_paid flips false -> true exactly once, when a settlement consumes
      the row.  Paid rows are frozen by the service layer.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import TrackedBase, UUIDString
from dairy_kernel.db.types import LongText, Money, Quantity, Rate


class Shift(str, Enum):
    """Milking shift."""

    MORNING = "morning"
    EVENING = "evening"


class MilkCollection(TrackedBase):
    """Milk purchased from a farmer on one date and shift."""

    __tablename__ = "milk_collections"

    __table_args__ = (
        Index("idx_collection_owner_date", "owner_id", "date"),
        Index("idx_collection_farmer_date", "farmer_id", "date"),
        Index("idx_collection_unpaid", "owner_id", "farmer_id", "is_paid"),
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    farmer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("farmers.id"),
        nullable=False,
    )

    date: Mapped[dt.date] = mapped_column(
        Date,
        nullable=False,
    )

    shift: Mapped[Shift] = mapped_column(
        String(10),
        nullable=False,
    )

    quantity: Mapped[Quantity] = mapped_column(
        nullable=False,
    )

    fat: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        default=Decimal("0"),
    )

    snf: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        default=Decimal("0"),
    )

    rate: Mapped[Rate] = mapped_column(
        nullable=False,
    )

    amount: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    is_paid: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    notes: Mapped[LongText] = mapped_column(
        nullable=False,
        default="",
    )

    def derive_amount(self) -> Decimal:
        """quantity * rate from the current inputs."""
        return Decimal(self.quantity or 0) * Decimal(self.rate or 0)

    def __repr__(self) -> str:
        return f"<MilkCollection {self.date} {self.shift}: {self.quantity}L @ {self.rate}>"
