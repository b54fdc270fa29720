"""Unpaid line item aggregation and pending advance listing."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from dairy_kernel.domain.dtos import SettlementFlow
from dairy_kernel.domain.values import DateRange
from dairy_kernel.models.milk_collection import MilkCollection


class TestUnpaidCollections:
    def test_sums_unpaid_within_inclusive_window(
        self, period_aggregator, make_farmer, add_collection, owner_id
    ):
        farmer_id = make_farmer(rate_per_liter="50")
        add_collection(farmer_id, date(2024, 1, 1), "10")
        add_collection(farmer_id, date(2024, 1, 10), "4")
        add_collection(farmer_id, date(2024, 1, 11), "6")

        totals = period_aggregator.unpaid_collections(
            owner_id, farmer_id, DateRange(date(2024, 1, 1), date(2024, 1, 10))
        )

        assert totals.count == 2
        assert totals.total_quantity == Decimal("14")
        assert totals.total_amount == Decimal("700")
        assert (totals.first_date, totals.last_date) == (date(2024, 1, 1), date(2024, 1, 10))

    def test_paid_items_excluded(
        self, session, period_aggregator, make_farmer, add_collection, owner_id
    ):
        farmer_id = make_farmer()
        paid = add_collection(farmer_id, date(2024, 1, 1), "10")
        add_collection(farmer_id, date(2024, 1, 2), "2")
        session.get(MilkCollection, paid.id).is_paid = True
        session.flush()

        totals = period_aggregator.unpaid_collections(owner_id, farmer_id)

        assert totals.count == 1
        assert paid.id not in totals.item_ids

    def test_persisted_amount_used_not_current_rate(
        self, session, counterparty_service, period_aggregator, make_farmer, add_collection, owner_id
    ):
        """Changing the farmer's rate later must not reprice recorded milk."""
        farmer_id = make_farmer(rate_per_liter="40")
        add_collection(farmer_id, date(2024, 1, 1), "10")
        counterparty_service.load_farmer(owner_id, farmer_id).rate_per_liter = Decimal("99")
        session.flush()

        totals = period_aggregator.unpaid_collections(owner_id, farmer_id)

        assert totals.total_amount == Decimal("400")

    def test_other_owner_invisible(self, period_aggregator, make_farmer, add_collection):
        farmer_id = make_farmer()
        add_collection(farmer_id, date(2024, 1, 1), "10")

        totals = period_aggregator.unpaid_collections(uuid4(), farmer_id)

        assert totals.count == 0
        assert totals.total_amount == Decimal("0")
        assert totals.first_date is None

    def test_flow_dispatch(self, period_aggregator, make_farmer, add_collection, owner_id):
        farmer_id = make_farmer()
        add_collection(farmer_id, date(2024, 1, 1), "1")

        totals = period_aggregator.aggregate_unpaid(SettlementFlow.FARMER, owner_id, farmer_id)

        assert totals.count == 1


class TestUnpaidSellingEntries:
    def test_explicit_ids_replace_date_filter(
        self, period_aggregator, make_member, add_selling_entry, owner_id
    ):
        member_id = make_member(rate_per_liter="50")
        first = add_selling_entry(member_id, date(2024, 1, 1), "2")
        add_selling_entry(member_id, date(2024, 1, 2), "3")

        totals = period_aggregator.unpaid_selling_entries(
            owner_id,
            member_id,
            DateRange(date(2024, 1, 2), date(2024, 1, 2)),
            entry_ids=[first.id, uuid4()],
        )

        assert totals.item_ids == (first.id,)
        assert totals.total_amount == Decimal("100")

    def test_entries_of_another_member_ignored(
        self, period_aggregator, make_member, add_selling_entry, owner_id
    ):
        member_id = make_member()
        other_id = make_member(name="Gita")
        foreign = add_selling_entry(other_id, date(2024, 1, 1), "2")

        totals = period_aggregator.unpaid_selling_entries(
            owner_id, member_id, entry_ids=[foreign.id]
        )

        assert totals.count == 0


class TestPendingAdvances:
    def test_outstanding_only_with_remaining(
        self, advance_service, period_aggregator, make_farmer, add_advance, owner_id
    ):
        farmer_id = make_farmer()
        partial = add_advance(farmer_id, "500", day=date(2024, 1, 2))
        settled = add_advance(farmer_id, "200", day=date(2024, 1, 3))
        advance_service.settle_advance(owner_id, partial.id, "150")
        advance_service.settle_advance(owner_id, settled.id)

        pending = period_aggregator.pending_advances(owner_id, farmer_id)

        assert pending.advance_ids == (partial.id,)
        assert pending.total_remaining == Decimal("350")
