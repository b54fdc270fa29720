"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable structures that cross the service boundary: aggregated period
    totals, pending advances, settlement previews, committed settlement
    snapshots, and the counterparty/line-item/advance views.  Services and
    selectors return these, never ORM rows.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    ``from_model`` class methods are boundary converters invoked only from
    selectors and services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from dairy_kernel.models.advance import Advance
    from dairy_kernel.models.farmer import Farmer
    from dairy_kernel.models.member import Member
    from dairy_kernel.models.milk_collection import MilkCollection
    from dairy_kernel.models.payment import FarmerPayment, MemberPayment
    from dairy_kernel.models.selling_entry import SellingEntry


class SettlementFlow(str, Enum):
    """Which reconciliation flow a settlement belongs to."""

    FARMER = "farmer"
    MEMBER = "member"


@dataclass(frozen=True)
class LineItemInfo:
    """A dated, rated quantity record (collection or selling entry)."""

    id: UUID
    counterparty_id: UUID
    date: date
    quantity: Decimal
    rate: Decimal
    amount: Decimal
    is_paid: bool
    shift: str | None = None

    @classmethod
    def from_collection(cls, row: MilkCollection) -> LineItemInfo:
        return cls(
            id=row.id,
            counterparty_id=row.farmer_id,
            date=row.date,
            quantity=Decimal(row.quantity),
            rate=Decimal(row.rate),
            amount=Decimal(row.amount),
            is_paid=row.is_paid,
            shift=str(getattr(row.shift, "value", row.shift)),
        )

    @classmethod
    def from_selling_entry(cls, row: SellingEntry) -> LineItemInfo:
        return cls(
            id=row.id,
            counterparty_id=row.member_id,
            date=row.date,
            quantity=row.quantity,
            rate=Decimal(row.rate),
            amount=Decimal(row.amount),
            is_paid=row.is_paid,
        )


@dataclass(frozen=True)
class PeriodTotals:
    """Unpaid line items in a window and their persisted sums."""

    items: tuple[LineItemInfo, ...]
    total_quantity: Decimal
    total_amount: Decimal

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def item_ids(self) -> tuple[UUID, ...]:
        return tuple(item.id for item in self.items)

    @property
    def first_date(self) -> date | None:
        return min((item.date for item in self.items), default=None)

    @property
    def last_date(self) -> date | None:
        return max((item.date for item in self.items), default=None)


@dataclass(frozen=True)
class AdvanceInfo:
    """Advance view with its unsettled remainder."""

    id: UUID
    farmer_id: UUID
    amount: Decimal
    settled_amount: Decimal
    status: str
    date: date
    note: str = ""

    @property
    def remaining(self) -> Decimal:
        return self.amount - self.settled_amount

    @classmethod
    def from_model(cls, row: Advance) -> AdvanceInfo:
        return cls(
            id=row.id,
            farmer_id=row.farmer_id,
            amount=Decimal(row.amount),
            settled_amount=Decimal(row.settled_amount),
            status=str(getattr(row.status, "value", row.status)),
            date=row.date,
            note=row.note,
        )


@dataclass(frozen=True)
class PendingAdvances:
    """Outstanding advances for one farmer; not period-scoped."""

    advances: tuple[AdvanceInfo, ...] = ()

    @property
    def total_remaining(self) -> Decimal:
        return sum((a.remaining for a in self.advances), Decimal("0"))

    @property
    def count(self) -> int:
        return len(self.advances)

    @property
    def advance_ids(self) -> tuple[UUID, ...]:
        return tuple(a.id for a in self.advances)


@dataclass(frozen=True)
class CounterpartyInfo:
    """Farmer or member view including its running balance."""

    id: UUID
    flow: SettlementFlow
    name: str
    mobile: str
    rate_per_liter: Decimal
    balance: Decimal
    pending_amount: Decimal
    total_liters: Decimal
    total_amount: Decimal
    is_active: bool
    code: str | None = None

    @classmethod
    def from_farmer(cls, row: Farmer) -> CounterpartyInfo:
        return cls(
            id=row.id,
            flow=SettlementFlow.FARMER,
            name=row.name,
            mobile=row.mobile,
            rate_per_liter=Decimal(row.rate_per_liter),
            balance=Decimal(row.current_balance),
            pending_amount=Decimal(row.pending_amount),
            total_liters=Decimal(row.total_liters),
            total_amount=Decimal(row.total_purchase),
            is_active=row.is_active,
            code=row.code,
        )

    @classmethod
    def from_member(cls, row: Member) -> CounterpartyInfo:
        return cls(
            id=row.id,
            flow=SettlementFlow.MEMBER,
            name=row.name,
            mobile=row.mobile,
            rate_per_liter=Decimal(row.rate_per_liter),
            balance=Decimal(row.selling_payment_balance),
            pending_amount=Decimal(row.pending_amount),
            total_liters=Decimal(row.total_liters),
            total_amount=Decimal(row.total_amount),
            is_active=row.is_active,
        )


@dataclass(frozen=True)
class SettlementSummary:
    """
    Pre-payment preview.  ``closing_balance`` equals ``net_payable`` because
    nothing has been paid yet.
    """

    flow: SettlementFlow
    counterparty_id: UUID
    previous_balance: Decimal
    period_total: Decimal
    period_quantity: Decimal
    item_count: int
    first_item_date: date | None
    last_item_date: date | None
    advance_deduction: Decimal
    advance_count: int
    net_payable: Decimal
    closing_balance: Decimal


@dataclass(frozen=True)
class SettlementInfo:
    """Committed settlement record snapshot."""

    id: UUID
    flow: SettlementFlow
    owner_id: UUID
    counterparty_id: UUID
    amount: Decimal
    payment_method: str
    date: date
    period_start: date | None
    period_end: date | None
    previous_balance: Decimal
    period_total: Decimal
    advance_deduction: Decimal
    net_payable: Decimal
    closing_balance: Decimal
    settled_item_ids: tuple[UUID, ...]
    settled_advance_ids: tuple[UUID, ...] = ()
    reference: str = ""
    notes: str = ""

    @classmethod
    def from_farmer_payment(cls, row: FarmerPayment) -> SettlementInfo:
        return cls(
            id=row.id,
            flow=SettlementFlow.FARMER,
            owner_id=row.owner_id,
            counterparty_id=row.farmer_id,
            amount=Decimal(row.amount),
            payment_method=str(getattr(row.payment_method, "value", row.payment_method)),
            date=row.date,
            period_start=row.period_start,
            period_end=row.period_end,
            previous_balance=Decimal(row.previous_balance),
            period_total=Decimal(row.total_milk_amount),
            advance_deduction=Decimal(row.total_advance_deduction),
            net_payable=Decimal(row.net_payable),
            closing_balance=Decimal(row.closing_balance),
            settled_item_ids=tuple(link.collection_id for link in row.settled_collections),
            settled_advance_ids=tuple(link.advance_id for link in row.settled_advances),
            reference=row.reference,
            notes=row.notes,
        )

    @classmethod
    def from_member_payment(cls, row: MemberPayment) -> SettlementInfo:
        return cls(
            id=row.id,
            flow=SettlementFlow.MEMBER,
            owner_id=row.owner_id,
            counterparty_id=row.member_id,
            amount=Decimal(row.amount),
            payment_method=str(getattr(row.payment_method, "value", row.payment_method)),
            date=row.date,
            period_start=row.period_start,
            period_end=row.period_end,
            previous_balance=Decimal(row.previous_balance),
            period_total=Decimal(row.total_sell_amount),
            advance_deduction=Decimal("0"),
            net_payable=Decimal(row.net_payable),
            closing_balance=Decimal(row.closing_balance),
            settled_item_ids=tuple(link.entry_id for link in row.settled_entries),
            reference=row.reference,
            notes=row.notes,
        )


@dataclass(frozen=True)
class Page:
    """One page of a listing."""

    items: tuple[Any, ...]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass(frozen=True)
class SettlementCompletedEvent:
    """Payload handed to notifiers after a settlement commits."""

    flow: SettlementFlow
    owner_id: UUID
    counterparty_id: UUID
    settlement_id: UUID
    amount: Decimal
    period_end: date | None
    closing_balance: Decimal
    extra: dict[str, Any] = field(default_factory=dict)
