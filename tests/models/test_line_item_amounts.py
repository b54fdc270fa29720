"""
Flush-time derivation of line item amounts, and the optimistic-lock column
on counterparties.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.orm.exc import StaleDataError

from dairy_kernel.models.farmer import Farmer
from dairy_kernel.models.milk_collection import MilkCollection
from dairy_kernel.models.selling_entry import SellingEntry


class TestAmountDerivation:
    def test_collection_amount_recomputed_on_insert(self, session, make_farmer, owner_id):
        farmer_id = make_farmer()
        row = MilkCollection(
            owner_id=owner_id,
            farmer_id=farmer_id,
            date=date(2024, 1, 2),
            shift="morning",
            quantity=Decimal("12.5"),
            rate=Decimal("48"),
            amount=Decimal("1"),
            created_by_id=owner_id,
        )
        session.add(row)
        session.flush()

        assert row.amount == Decimal("600.0")

    def test_collection_amount_recomputed_on_update(self, session, make_farmer, owner_id):
        """Changing only the rate must not leave a stale amount behind."""
        farmer_id = make_farmer()
        row = MilkCollection(
            owner_id=owner_id,
            farmer_id=farmer_id,
            date=date(2024, 1, 2),
            shift="evening",
            quantity=Decimal("10"),
            rate=Decimal("40"),
            created_by_id=owner_id,
        )
        session.add(row)
        session.flush()

        row.rate = Decimal("45")
        session.flush()

        assert row.amount == Decimal("450")

    def test_selling_entry_amount_uses_both_shifts(self, session, make_member, owner_id):
        member_id = make_member()
        entry = SellingEntry(
            owner_id=owner_id,
            member_id=member_id,
            date=date(2024, 1, 2),
            morning_quantity=Decimal("2"),
            evening_quantity=Decimal("1.5"),
            rate=Decimal("60"),
            created_by_id=owner_id,
        )
        session.add(entry)
        session.flush()

        assert entry.quantity == Decimal("3.5")
        assert entry.amount == Decimal("210.0")


class TestCounterpartyVersioning:
    def test_version_increments_on_update(self, session, make_farmer):
        farmer = session.get(Farmer, make_farmer())
        before = farmer.version

        farmer.current_balance = Decimal("10")
        session.flush()

        assert farmer.version == before + 1

    def test_stale_write_detected(self, session, make_farmer):
        """An UPDATE against a version someone else already bumped matches no row."""
        farmer = session.get(Farmer, make_farmer())
        session.execute(
            update(Farmer)
            .where(Farmer.id == farmer.id)
            .values(version=Farmer.version + 1)
            .execution_options(synchronize_session=False)
        )

        farmer.current_balance = Decimal("99")
        with pytest.raises(StaleDataError):
            session.flush()
