"""
Module: dairy_kernel.models.payment
Responsibility: ORM persistence for settlement records -- FarmerPayment and
    MemberPayment -- and the association rows that freeze exactly which line
    items (and advances) each settlement consumed.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - net_payable == previous_balance + period total - total_advance_deduction
    - closing_balance == net_payable - amount
    - Association rows hold plain item ids, not foreign keys, so deleting a
      settled line item or advance never rewrites the audit trail.
    - The consumed-item association rows are written once, in the same
      transaction as the record, and never modified afterwards.  They are
      the audit trail a reconciliation job can replay.
    - Only amount, period bounds and the period total may change after
      creation, through SettlementService's correction path, which
      recomputes net_payable and closing_balance.

Audit relevance:
    A payment row is the durable source of truth for one settlement: it
    snapshots the balance it started from, the totals it applied, and the
    balance it left behind.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dairy_kernel.db.base import Base, TrackedBase, UUIDString
from dairy_kernel.db.types import LongText, Money


class PaymentMethod(str, Enum):
    """How the paid amount changed hands."""

    CASH = "cash"
    UPI = "upi"
    BANK = "bank"
    CHEQUE = "cheque"


class _SettlementColumns:
    """Columns shared by both settlement record tables."""

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    amount: Mapped[Money] = mapped_column(
        nullable=False,
    )

    date: Mapped[dt.date] = mapped_column(
        Date,
        nullable=False,
    )

    payment_method: Mapped[PaymentMethod] = mapped_column(
        String(10),
        nullable=False,
        default=PaymentMethod.CASH.value,
    )

    reference: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="",
    )

    notes: Mapped[LongText] = mapped_column(
        nullable=False,
        default="",
    )

    period_start: Mapped[dt.date | None] = mapped_column(
        Date,
        nullable=True,
    )

    period_end: Mapped[dt.date | None] = mapped_column(
        Date,
        nullable=True,
    )

    previous_balance: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    net_payable: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    closing_balance: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )


class FarmerPayment(_SettlementColumns, TrackedBase):
    """Settlement of a farmer's milk purchases net of advances."""

    __tablename__ = "farmer_payments"

    __table_args__ = (
        Index("idx_farmer_payment_owner_date", "owner_id", "date"),
        Index("idx_farmer_payment_farmer_period", "farmer_id", "period_start", "period_end"),
    )

    farmer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("farmers.id"),
        nullable=False,
    )

    total_milk_amount: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    total_advance_deduction: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    settled_collections: Mapped[list["FarmerPaymentCollection"]] = relationship(
        "FarmerPaymentCollection",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    settled_advances: Mapped[list["FarmerPaymentAdvance"]] = relationship(
        "FarmerPaymentAdvance",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def period_total(self) -> Decimal:
        return self.total_milk_amount

    def __repr__(self) -> str:
        return f"<FarmerPayment {self.date}: {self.amount} -> {self.closing_balance}>"


class MemberPayment(_SettlementColumns, TrackedBase):
    """Settlement of a member's milk purchases."""

    __tablename__ = "member_payments"

    __table_args__ = (
        Index("idx_member_payment_owner_date", "owner_id", "date"),
        Index("idx_member_payment_member_date", "member_id", "date"),
    )

    member_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("members.id"),
        nullable=False,
    )

    total_sell_amount: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    settled_entries: Mapped[list["MemberPaymentEntry"]] = relationship(
        "MemberPaymentEntry",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def period_total(self) -> Decimal:
        return self.total_sell_amount

    @property
    def total_advance_deduction(self) -> Decimal:
        return Decimal("0")

    def __repr__(self) -> str:
        return f"<MemberPayment {self.date}: {self.amount} -> {self.closing_balance}>"


class FarmerPaymentCollection(Base):
    """Frozen link from a farmer payment to a collection it settled."""

    __tablename__ = "farmer_payment_collections"

    __table_args__ = (
        UniqueConstraint("collection_id", name="uq_collection_settled_once"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("farmer_payments.id"),
        nullable=False,
    )

    collection_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )


class FarmerPaymentAdvance(Base):
    """Frozen link from a farmer payment to an advance it deducted."""

    __tablename__ = "farmer_payment_advances"

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("farmer_payments.id"),
        nullable=False,
    )

    advance_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Remaining amount deducted by this payment
    deducted_amount: Mapped[Money] = mapped_column(
        nullable=False,
    )


class MemberPaymentEntry(Base):
    """Frozen link from a member payment to a selling entry it settled."""

    __tablename__ = "member_payment_entries"

    __table_args__ = (
        UniqueConstraint("entry_id", name="uq_entry_settled_once"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("member_payments.id"),
        nullable=False,
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )
