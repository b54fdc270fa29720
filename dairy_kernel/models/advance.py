"""
Module: dairy_kernel.models.advance
Responsibility: ORM persistence for farmer advances -- pre-payments that are
    deducted from a later settlement.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - status follows VALID_ADVANCE_TRANSITIONS:
      PENDING -> PARTIAL -> SETTLED, or PENDING -> SETTLED.
    - 0 <= settled_amount <= amount (guarded by AdvanceService).
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import TrackedBase, UUIDString
from dairy_kernel.db.types import LongText, Money


class AdvanceStatus(str, Enum):
    """Advance settlement lifecycle."""

    PENDING = "pending"
    PARTIAL = "partial"
    SETTLED = "settled"


VALID_ADVANCE_TRANSITIONS: dict[AdvanceStatus, frozenset[AdvanceStatus]] = {
    AdvanceStatus.PENDING: frozenset({AdvanceStatus.PARTIAL, AdvanceStatus.SETTLED}),
    AdvanceStatus.PARTIAL: frozenset({AdvanceStatus.PARTIAL, AdvanceStatus.SETTLED}),
    # Terminal
    AdvanceStatus.SETTLED: frozenset(),
}

OUTSTANDING_ADVANCE_STATUSES = (AdvanceStatus.PENDING, AdvanceStatus.PARTIAL)


class Advance(TrackedBase):
    """Money handed to a farmer ahead of settlement."""

    __tablename__ = "advances"

    __table_args__ = (
        Index("idx_advance_farmer_status", "farmer_id", "status"),
        Index("idx_advance_owner", "owner_id"),
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

    amount: Mapped[Money] = mapped_column(
        nullable=False,
    )

    date: Mapped[dt.date] = mapped_column(
        Date,
        nullable=False,
    )

    note: Mapped[LongText] = mapped_column(
        nullable=False,
        default="",
    )

    status: Mapped[AdvanceStatus] = mapped_column(
        String(10),
        nullable=False,
        default=AdvanceStatus.PENDING.value,
    )

    settled_amount: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    @property
    def remaining(self) -> Decimal:
        """Unsettled part of the advance."""
        return Decimal(self.amount) - Decimal(self.settled_amount or 0)

    def can_transition_to(self, target: AdvanceStatus) -> bool:
        return AdvanceStatus(target) in VALID_ADVANCE_TRANSITIONS[AdvanceStatus(self.status)]

    def __repr__(self) -> str:
        return f"<Advance {self.amount} ({self.status})>"
