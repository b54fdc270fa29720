"""
Module: dairy_kernel.models.member
Responsibility: ORM persistence for members -- the counterparties the owner
    sells milk to.  Holds identity, the default selling rate, running sale
    totals, and the carried-forward selling payment balance.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - selling_payment_balance follows the MemberLedgerBalance sign
      convention: previous balance + unpaid milk amount - paid amount.
      Positive means the member still owes the owner; negative is credit.
    - version is the optimistic lock column (see models/farmer.py).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from dairy_kernel.db.base import TrackedBase, UUIDString
from dairy_kernel.db.types import Money, Quantity, Rate

DEFAULT_MEMBER_RATE = Decimal("50")


class Member(TrackedBase):
    """Milk buyer with a running selling-payment balance."""

    __tablename__ = "members"

    __table_args__ = (
        Index("idx_member_owner_active", "owner_id", "is_active"),
        Index("idx_member_owner_name", "owner_id", "name"),
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    mobile: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    address: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )

    rate_per_liter: Mapped[Rate] = mapped_column(
        nullable=False,
        default=DEFAULT_MEMBER_RATE,
    )

    total_liters: Mapped[Quantity] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    total_amount: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    pending_amount: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    # MemberLedgerBalance carried forward from the last settlement
    selling_payment_balance: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Member {self.name}>"
