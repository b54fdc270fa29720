"""
LineItemService -- the LineItemStore write path.

Responsibility:
    Records, corrects and deletes milk collections (farmer flow) and selling
    entries (member flow), keeping the counterparty aggregate totals in step
    with every change.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - amount == quantity * rate after every create or update (computed here
      for the aggregate deltas and re-derived by the before_flush listener).
    - Selling entries are one row per (owner, member, calendar day); a second
      shift merges into it.
    - Counterparty totals move by exactly the change in quantity and amount.
    - Paid line items are frozen: they cannot be edited or merged into.
    - pending_amount is only reversed when an unpaid item is deleted.

Failure modes:
    - InvalidLineItemError for out-of-range quantity, rate, fat or SNF.
    - CounterpartyNotFoundError for a foreign or inactive counterparty.
    - LineItemNotFoundError, LineItemSettledError.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select

from dairy_kernel.db.types import ZERO, to_decimal
from dairy_kernel.domain.clock import Clock
from dairy_kernel.domain.dtos import LineItemInfo
from dairy_kernel.domain.values import as_calendar_day
from dairy_kernel.exceptions import (
    InvalidLineItemError,
    LineItemNotFoundError,
    LineItemSettledError,
)
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.milk_collection import MilkCollection, Shift
from dairy_kernel.models.selling_entry import SellingEntry
from dairy_kernel.services.base import BaseService
from dairy_kernel.services.counterparty_service import CounterpartyService

logger = get_logger("services.line_items")

MIN_COLLECTION_QUANTITY = Decimal("0.1")
MAX_SNF = Decimal("15")


def _number(field: str, value: object) -> Decimal:
    try:
        result = to_decimal(value)
    except (InvalidOperation, ValueError):
        raise InvalidLineItemError(field, value, "must be a number") from None
    if not result.is_finite():
        raise InvalidLineItemError(field, value, "must be finite")
    return result


def _quantity(value: object, minimum: Decimal | None = None) -> Decimal:
    quantity = _number("quantity", value)
    if minimum is not None and quantity < minimum:
        raise InvalidLineItemError("quantity", value, f"must be at least {minimum}")
    if quantity <= 0:
        raise InvalidLineItemError("quantity", value, "must be positive")
    return quantity


def _rate(value: object) -> Decimal:
    rate = _number("rate", value)
    if rate < 0:
        raise InvalidLineItemError("rate", value, "must not be negative")
    return rate


def _fat(value: object) -> Decimal:
    fat = _number("fat", value)
    if fat < 0:
        raise InvalidLineItemError("fat", value, "must not be negative")
    return fat


def _snf(value: object) -> Decimal:
    snf = _number("snf", value)
    if snf < 0 or snf > MAX_SNF:
        raise InvalidLineItemError("snf", value, f"must be between 0 and {MAX_SNF}")
    return snf


def _shift(value: Shift | str) -> Shift:
    try:
        return Shift(value)
    except ValueError:
        raise InvalidLineItemError("shift", value, "must be morning or evening") from None


def _day(value: date | datetime | str) -> date:
    try:
        day = as_calendar_day(value)
    except (TypeError, ValueError):
        raise InvalidLineItemError("date", value, "must be a calendar date") from None
    if day is None:
        raise InvalidLineItemError("date", value, "is required")
    return day


class LineItemService(BaseService):
    """Collections and selling entries, with their counterparty aggregates."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        counterparties: CounterpartyService | None = None,
    ):
        super().__init__(session, clock)
        self.counterparties = counterparties or CounterpartyService(session, self.clock)

    # =========================================================================
    # Milk collections (farmer flow)
    # =========================================================================

    def record_collection(
        self,
        owner_id: UUID,
        farmer_id: UUID,
        day: date | datetime | str,
        shift: Shift | str,
        quantity: Decimal | int | str,
        rate: Decimal | int | str | None = None,
        fat: Decimal | int | str = ZERO,
        snf: Decimal | int | str = ZERO,
        notes: str = "",
    ) -> LineItemInfo:
        """Record one unpaid collection.  ``rate`` defaults to the farmer's rate."""
        farmer = self.counterparties.load_farmer(owner_id, farmer_id)

        collection = MilkCollection(
            owner_id=owner_id,
            farmer_id=farmer.id,
            date=_day(day),
            shift=_shift(shift).value,
            quantity=_quantity(quantity, MIN_COLLECTION_QUANTITY),
            rate=_rate(farmer.rate_per_liter if rate is None else rate),
            fat=_fat(fat),
            snf=_snf(snf),
            is_paid=False,
            notes=notes,
            created_by_id=owner_id,
        )
        collection.amount = collection.derive_amount()

        farmer.total_liters = Decimal(farmer.total_liters) + collection.quantity
        farmer.total_purchase = Decimal(farmer.total_purchase) + collection.amount
        farmer.pending_amount = Decimal(farmer.pending_amount) + collection.amount

        self.session.add(collection)
        self.session.flush()

        logger.info(
            "collection_recorded",
            extra={
                "line_item_id": str(collection.id),
                "farmer_id": str(farmer.id),
                "amount": str(collection.amount),
            },
        )
        return LineItemInfo.from_collection(collection)

    def _load_collection(self, owner_id: UUID, collection_id: UUID) -> MilkCollection:
        collection = self.session.execute(
            select(MilkCollection).where(
                MilkCollection.id == collection_id,
                MilkCollection.owner_id == owner_id,
            )
        ).scalar_one_or_none()
        if collection is None:
            raise LineItemNotFoundError(str(collection_id))
        return collection

    def update_collection(
        self,
        owner_id: UUID,
        collection_id: UUID,
        quantity: Decimal | int | str | None = None,
        rate: Decimal | int | str | None = None,
        fat: Decimal | int | str | None = None,
        snf: Decimal | int | str | None = None,
        notes: str | None = None,
    ) -> LineItemInfo:
        collection = self._load_collection(owner_id, collection_id)
        if collection.is_paid:
            raise LineItemSettledError(str(collection_id), "update")
        farmer = self.counterparties.load_farmer(owner_id, collection.farmer_id)

        old_quantity = Decimal(collection.quantity)
        old_amount = Decimal(collection.amount)

        if quantity is not None:
            collection.quantity = _quantity(quantity, MIN_COLLECTION_QUANTITY)
        if rate is not None:
            collection.rate = _rate(rate)
        if fat is not None:
            collection.fat = _fat(fat)
        if snf is not None:
            collection.snf = _snf(snf)
        if notes is not None:
            collection.notes = notes
        collection.amount = collection.derive_amount()
        collection.updated_by_id = owner_id

        farmer.total_liters = Decimal(farmer.total_liters) + (
            Decimal(collection.quantity) - old_quantity
        )
        farmer.total_purchase = Decimal(farmer.total_purchase) + (collection.amount - old_amount)
        farmer.pending_amount = Decimal(farmer.pending_amount) + (collection.amount - old_amount)
        self.session.flush()

        logger.info(
            "collection_updated",
            extra={
                "line_item_id": str(collection.id),
                "amount_delta": str(collection.amount - old_amount),
            },
        )
        return LineItemInfo.from_collection(collection)

    def delete_collection(self, owner_id: UUID, collection_id: UUID) -> None:
        """Delete a collection and reverse the farmer's totals."""
        collection = self._load_collection(owner_id, collection_id)
        farmer = self.counterparties.load_farmer(
            owner_id, collection.farmer_id, include_inactive=True
        )

        farmer.total_liters = Decimal(farmer.total_liters) - Decimal(collection.quantity)
        farmer.total_purchase = Decimal(farmer.total_purchase) - Decimal(collection.amount)
        if not collection.is_paid:
            farmer.pending_amount = Decimal(farmer.pending_amount) - Decimal(collection.amount)
        self.session.delete(collection)
        self.session.flush()

        logger.info(
            "collection_deleted",
            extra={"line_item_id": str(collection_id), "was_paid": collection.is_paid},
        )

    # =========================================================================
    # Selling entries (member flow)
    # =========================================================================

    def record_selling_entry(
        self,
        owner_id: UUID,
        member_id: UUID,
        day: date | datetime | str,
        shift: Shift | str,
        quantity: Decimal | int | str,
        rate: Decimal | int | str | None = None,
        notes: str | None = None,
    ) -> LineItemInfo:
        """
        Merge one shift's quantity into the member's row for that day.

        Recording the same shift twice overwrites that shift's quantity.
        """
        member = self.counterparties.load_member(owner_id, member_id)
        day = _day(day)
        shift = _shift(shift)
        quantity = _quantity(quantity)

        entry = self.session.execute(
            select(SellingEntry).where(
                SellingEntry.owner_id == owner_id,
                SellingEntry.member_id == member.id,
                SellingEntry.date == day,
            )
        ).scalar_one_or_none()

        if entry is None:
            entry = SellingEntry(
                owner_id=owner_id,
                member_id=member.id,
                date=day,
                morning_quantity=ZERO,
                evening_quantity=ZERO,
                rate=_rate(member.rate_per_liter if rate is None else rate),
                is_paid=False,
                notes=notes or "",
                created_by_id=owner_id,
            )
            entry.amount = ZERO
            self.session.add(entry)
            old_quantity, old_amount = ZERO, ZERO
        else:
            if entry.is_paid:
                raise LineItemSettledError(str(entry.id), "merge into")
            old_quantity, old_amount = entry.quantity, Decimal(entry.amount)
            if rate is not None:
                entry.rate = _rate(rate)
            if notes is not None:
                entry.notes = notes
            entry.updated_by_id = owner_id

        if shift == Shift.MORNING:
            entry.morning_quantity = quantity
        else:
            entry.evening_quantity = quantity
        entry.amount = entry.derive_amount()

        amount_delta = entry.amount - old_amount
        member.total_liters = Decimal(member.total_liters) + (entry.quantity - old_quantity)
        member.total_amount = Decimal(member.total_amount) + amount_delta
        member.pending_amount = Decimal(member.pending_amount) + amount_delta
        self.session.flush()

        logger.info(
            "selling_entry_recorded",
            extra={
                "line_item_id": str(entry.id),
                "member_id": str(member.id),
                "shift": shift.value,
                "amount_delta": str(amount_delta),
            },
        )
        return LineItemInfo.from_selling_entry(entry)

    def delete_selling_entry(self, owner_id: UUID, entry_id: UUID) -> None:
        entry = self.session.execute(
            select(SellingEntry).where(
                SellingEntry.id == entry_id,
                SellingEntry.owner_id == owner_id,
            )
        ).scalar_one_or_none()
        if entry is None:
            raise LineItemNotFoundError(str(entry_id))
        member = self.counterparties.load_member(owner_id, entry.member_id, include_inactive=True)

        amount = Decimal(entry.amount)
        member.total_liters = Decimal(member.total_liters) - entry.quantity
        member.total_amount = Decimal(member.total_amount) - amount
        if not entry.is_paid:
            member.pending_amount = Decimal(member.pending_amount) - amount
        self.session.delete(entry)
        self.session.flush()

        logger.info(
            "selling_entry_deleted",
            extra={"line_item_id": str(entry_id), "was_paid": entry.is_paid},
        )
