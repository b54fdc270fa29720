"""
Module: dairy_kernel.selectors.period_aggregator
Responsibility: Sum unpaid line items for one counterparty over an optional
    date window, and list a farmer's outstanding advances.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Only rows with is_paid = false, scoped by owner and counterparty, are
      aggregated.
    - Totals use each row's persisted ``amount``, never quantity * current
      rate: the rate was locked when the item was recorded.
    - Advances are not period-scoped; every pending or partial advance is
      returned with ``remaining = amount - settled_amount``.
    - No side effects.  The engine calls this both for previews and inside
      the settlement transaction.

Failure modes:
    - Zero matching rows is not an error: the totals are zero.
"""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from dairy_kernel.domain.dtos import (
    AdvanceInfo,
    LineItemInfo,
    PendingAdvances,
    PeriodTotals,
    SettlementFlow,
)
from dairy_kernel.domain.values import DateRange
from dairy_kernel.models.advance import OUTSTANDING_ADVANCE_STATUSES, Advance
from dairy_kernel.models.milk_collection import MilkCollection
from dairy_kernel.models.selling_entry import SellingEntry
from dairy_kernel.selectors.base import BaseSelector


def _totals(items: list[LineItemInfo]) -> PeriodTotals:
    return PeriodTotals(
        items=tuple(items),
        total_quantity=sum((item.quantity for item in items), Decimal("0")),
        total_amount=sum((item.amount for item in items), Decimal("0")),
    )


class PeriodAggregator(BaseSelector):
    """Read-only aggregation of unsettled line items and pending advances."""

    def unpaid_collections(
        self,
        owner_id: UUID,
        farmer_id: UUID,
        date_range: DateRange | None = None,
    ) -> PeriodTotals:
        """Unpaid milk collections of one farmer within ``date_range``."""
        date_range = date_range or DateRange.unbounded()
        stmt = select(MilkCollection).where(
            MilkCollection.owner_id == owner_id,
            MilkCollection.farmer_id == farmer_id,
            MilkCollection.is_paid.is_(False),
        )
        if date_range.start is not None:
            stmt = stmt.where(MilkCollection.date >= date_range.start)
        if date_range.end is not None:
            stmt = stmt.where(MilkCollection.date <= date_range.end)
        stmt = stmt.order_by(MilkCollection.date, MilkCollection.shift, MilkCollection.created_at)

        rows = self.session.execute(stmt).scalars().all()
        return _totals([LineItemInfo.from_collection(row) for row in rows])

    def unpaid_selling_entries(
        self,
        owner_id: UUID,
        member_id: UUID,
        date_range: DateRange | None = None,
        entry_ids: Iterable[UUID] | None = None,
    ) -> PeriodTotals:
        """
        Unpaid selling entries of one member.

        When ``entry_ids`` is given it replaces the date filter; ids that are
        already paid or belong to another member are ignored.
        """
        stmt = select(SellingEntry).where(
            SellingEntry.owner_id == owner_id,
            SellingEntry.member_id == member_id,
            SellingEntry.is_paid.is_(False),
        )
        if entry_ids is not None:
            stmt = stmt.where(SellingEntry.id.in_(list(entry_ids)))
        else:
            date_range = date_range or DateRange.unbounded()
            if date_range.start is not None:
                stmt = stmt.where(SellingEntry.date >= date_range.start)
            if date_range.end is not None:
                stmt = stmt.where(SellingEntry.date <= date_range.end)
        stmt = stmt.order_by(SellingEntry.date)

        rows = self.session.execute(stmt).scalars().all()
        return _totals([LineItemInfo.from_selling_entry(row) for row in rows])

    def aggregate_unpaid(
        self,
        flow: SettlementFlow,
        owner_id: UUID,
        counterparty_id: UUID,
        date_range: DateRange | None = None,
        line_item_ids: Iterable[UUID] | None = None,
    ) -> PeriodTotals:
        """Flow-dispatching form of the two queries above."""
        if flow == SettlementFlow.FARMER:
            return self.unpaid_collections(owner_id, counterparty_id, date_range)
        return self.unpaid_selling_entries(owner_id, counterparty_id, date_range, line_item_ids)

    def pending_advances(self, owner_id: UUID, farmer_id: UUID) -> PendingAdvances:
        """All outstanding advances of a farmer, oldest first."""
        stmt = (
            select(Advance)
            .where(
                Advance.owner_id == owner_id,
                Advance.farmer_id == farmer_id,
                Advance.status.in_([s.value for s in OUTSTANDING_ADVANCE_STATUSES]),
            )
            .order_by(Advance.date, Advance.created_at)
        )
        rows = self.session.execute(stmt).scalars().all()
        return PendingAdvances(advances=tuple(AdvanceInfo.from_model(row) for row in rows))
