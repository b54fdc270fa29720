"""Recording, correcting and deleting milk collections and selling entries."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from dairy_kernel.exceptions import (
    CounterpartyNotFoundError,
    InvalidLineItemError,
    LineItemNotFoundError,
    LineItemSettledError,
)


class TestRecordCollection:
    def test_uses_farmer_rate_and_updates_aggregates(
        self, line_item_service, counterparty_service, make_farmer, owner_id
    ):
        farmer_id = make_farmer(rate_per_liter="48")

        item = line_item_service.record_collection(
            owner_id, farmer_id, date(2024, 1, 2), "morning", "12.5", fat="4.2", snf="8.5"
        )

        assert item.rate == Decimal("48")
        assert item.amount == Decimal("600.0")
        assert item.is_paid is False
        assert item.shift == "morning"

        farmer = counterparty_service.get_farmer(owner_id, farmer_id)
        assert farmer.total_liters == Decimal("12.5")
        assert farmer.total_amount == Decimal("600")
        assert farmer.pending_amount == Decimal("600")

    def test_explicit_rate_wins(self, line_item_service, make_farmer, owner_id):
        farmer_id = make_farmer(rate_per_liter="48")

        item = line_item_service.record_collection(
            owner_id, farmer_id, "2024-01-02", "evening", "10", rate="52"
        )

        assert item.amount == Decimal("520")

    @pytest.mark.parametrize(
        "field, kwargs",
        [
            ("quantity", {"quantity": "0.05"}),
            ("quantity", {"quantity": "abc"}),
            ("rate", {"quantity": "1", "rate": "-1"}),
            ("snf", {"quantity": "1", "snf": "15.5"}),
            ("fat", {"quantity": "1", "fat": "-0.1"}),
            ("shift", {"quantity": "1", "shift": "noon"}),
        ],
    )
    def test_invalid_inputs_rejected(self, line_item_service, make_farmer, owner_id, field, kwargs):
        farmer_id = make_farmer()
        kwargs = {"shift": "morning", **kwargs}

        with pytest.raises(InvalidLineItemError) as exc_info:
            line_item_service.record_collection(owner_id, farmer_id, date(2024, 1, 2), **kwargs)

        assert exc_info.value.field == field

    def test_unknown_farmer(self, line_item_service, owner_id):
        with pytest.raises(CounterpartyNotFoundError):
            line_item_service.record_collection(owner_id, uuid4(), date(2024, 1, 2), "morning", "1")


class TestUpdateAndDeleteCollection:
    def test_update_applies_deltas(
        self, line_item_service, counterparty_service, make_farmer, add_collection, owner_id
    ):
        farmer_id = make_farmer(rate_per_liter="50")
        item = add_collection(farmer_id, date(2024, 1, 2), "10")

        updated = line_item_service.update_collection(owner_id, item.id, quantity="12", rate="55")

        assert updated.amount == Decimal("660")
        farmer = counterparty_service.get_farmer(owner_id, farmer_id)
        assert farmer.total_liters == Decimal("12")
        assert farmer.total_amount == Decimal("660")
        assert farmer.pending_amount == Decimal("660")

    def test_paid_collection_is_frozen(
        self, settlement_service, line_item_service, make_farmer, add_collection, owner_id
    ):
        farmer_id = make_farmer()
        item = add_collection(farmer_id, date(2024, 1, 2), "10")
        settlement_service.settle_farmer(owner_id, farmer_id, "100")

        with pytest.raises(LineItemSettledError):
            line_item_service.update_collection(owner_id, item.id, quantity="1")

    def test_delete_unpaid_reverses_pending(
        self, line_item_service, counterparty_service, make_farmer, add_collection, owner_id
    ):
        farmer_id = make_farmer(rate_per_liter="50")
        item = add_collection(farmer_id, date(2024, 1, 2), "10")

        line_item_service.delete_collection(owner_id, item.id)

        farmer = counterparty_service.get_farmer(owner_id, farmer_id)
        assert farmer.total_liters == Decimal("0")
        assert farmer.pending_amount == Decimal("0")

    def test_delete_paid_keeps_settlement_trail(
        self,
        settlement_service,
        settlement_selector,
        line_item_service,
        counterparty_service,
        make_farmer,
        add_collection,
        owner_id,
    ):
        farmer_id = make_farmer(rate_per_liter="50")
        item = add_collection(farmer_id, date(2024, 1, 2), "10")
        info = settlement_service.settle_farmer(owner_id, farmer_id, "100")

        line_item_service.delete_collection(owner_id, item.id)

        assert settlement_selector.get_farmer_payment(owner_id, info.id).settled_item_ids == (
            item.id,
        )
        farmer = counterparty_service.get_farmer(owner_id, farmer_id)
        assert farmer.pending_amount == Decimal("0")
        assert farmer.balance == Decimal("400")

    def test_delete_unknown(self, line_item_service, owner_id):
        with pytest.raises(LineItemNotFoundError):
            line_item_service.delete_collection(owner_id, uuid4())


class TestSellingEntries:
    def test_second_shift_merges_into_day(
        self, line_item_service, counterparty_service, make_member, owner_id
    ):
        member_id = make_member(rate_per_liter="50")

        morning = line_item_service.record_selling_entry(
            owner_id, member_id, date(2024, 1, 2), "morning", "2"
        )
        evening = line_item_service.record_selling_entry(
            owner_id, member_id, date(2024, 1, 2), "evening", "1.5"
        )

        assert evening.id == morning.id
        assert evening.quantity == Decimal("3.5")
        assert evening.amount == Decimal("175.0")
        member = counterparty_service.get_member(owner_id, member_id)
        assert member.total_liters == Decimal("3.5")
        assert member.pending_amount == Decimal("175")

    def test_same_shift_overwrites(self, line_item_service, counterparty_service, make_member, owner_id):
        member_id = make_member(rate_per_liter="50")
        line_item_service.record_selling_entry(owner_id, member_id, date(2024, 1, 2), "morning", "2")

        entry = line_item_service.record_selling_entry(
            owner_id, member_id, date(2024, 1, 2), "morning", "3"
        )

        assert entry.quantity == Decimal("3")
        assert counterparty_service.get_member(owner_id, member_id).total_amount == Decimal("150")

    def test_default_member_rate(self, line_item_service, counterparty_service, owner_id):
        member = counterparty_service.create_member(owner_id, "Default Rate")

        entry = line_item_service.record_selling_entry(
            owner_id, member.id, date(2024, 1, 2), "morning", "1"
        )

        assert member.rate_per_liter == Decimal("50")
        assert entry.amount == Decimal("50")

    def test_paid_day_cannot_be_merged_into(
        self, settlement_service, line_item_service, make_member, add_selling_entry, owner_id
    ):
        member_id = make_member()
        add_selling_entry(member_id, date(2024, 1, 2), "2")
        settlement_service.settle_member(owner_id, member_id, "100")

        with pytest.raises(LineItemSettledError):
            line_item_service.record_selling_entry(
                owner_id, member_id, date(2024, 1, 2), "evening", "1"
            )

    def test_delete_entry_reverses_totals(
        self, line_item_service, counterparty_service, make_member, add_selling_entry, owner_id
    ):
        member_id = make_member(rate_per_liter="50")
        entry = add_selling_entry(member_id, date(2024, 1, 2), "2")

        line_item_service.delete_selling_entry(owner_id, entry.id)

        member = counterparty_service.get_member(owner_id, member_id)
        assert member.total_amount == Decimal("0")
        assert member.pending_amount == Decimal("0")
