"""
Module: dairy_kernel.models.selling_entry
Responsibility: ORM persistence for member line items -- one row per member
    per calendar day, holding both shift quantities.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - (owner_id, member_id, date) is unique; a second shift on the same day
      merges into the existing row (uq_selling_entry_day).
    - amount == (morning_quantity + evening_quantity) * rate as of the last
      flush (db/listeners.py).
    - is_paid flips false -> true exactly once, when a settlement consumes
      the row.
"""

import datetime as dt
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import TrackedBase, UUIDString
from dairy_kernel.db.types import LongText, Money, Quantity, Rate


class SellingEntry(TrackedBase):
    """Milk sold to a member on one calendar day."""

    __tablename__ = "selling_entries"

    __table_args__ = (
        UniqueConstraint("owner_id", "member_id", "date", name="uq_selling_entry_day"),
        Index("idx_selling_owner_date", "owner_id", "date"),
        Index("idx_selling_unpaid", "owner_id", "member_id", "is_paid"),
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    member_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("members.id"),
        nullable=False,
    )

    date: Mapped[dt.date] = mapped_column(
        Date,
        nullable=False,
    )

    morning_quantity: Mapped[Quantity] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    evening_quantity: Mapped[Quantity] = mapped_column(
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

    @property
    def quantity(self) -> Decimal:
        """Liters sold across both shifts."""
        return Decimal(self.morning_quantity or 0) + Decimal(self.evening_quantity or 0)

    def derive_amount(self) -> Decimal:
        """(morning + evening) * rate from the current inputs."""
        return self.quantity * Decimal(self.rate or 0)

    def __repr__(self) -> str:
        return f"<SellingEntry {self.date}: {self.quantity}L @ {self.rate}>"
