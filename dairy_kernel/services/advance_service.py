"""
AdvanceService -- the farmer advance sub-ledger.

Responsibility:
    Records advances handed to farmers, settles them in part or in full,
    deletes them, and marks them settled when a farmer settlement deducts
    them.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - 0 <= settled_amount <= amount.  An increment that would overshoot is
      rejected rather than clamped.
    - status follows VALID_ADVANCE_TRANSITIONS; a settled advance is terminal.
    - farmer.pending_amount grows by the advance amount on creation and
      shrinks by each settled increment, floored at zero.
    - Deleting an advance only reverses pending_amount while it is still
      pending.

Failure modes:
    - InvalidAmountError for amounts below MIN_ADVANCE_AMOUNT or negative
      increments.
    - AdvanceNotFoundError, AdvanceStateError, CounterpartyNotFoundError.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from dairy_kernel.db.types import ZERO
from dairy_kernel.domain.clock import Clock
from dairy_kernel.domain.dtos import AdvanceInfo, PendingAdvances
from dairy_kernel.domain.settlement import coerce_amount
from dairy_kernel.domain.values import as_calendar_day
from dairy_kernel.exceptions import AdvanceNotFoundError, AdvanceStateError, InvalidAmountError
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.advance import OUTSTANDING_ADVANCE_STATUSES, Advance, AdvanceStatus
from dairy_kernel.models.farmer import Farmer
from dairy_kernel.selectors.period_aggregator import PeriodAggregator
from dairy_kernel.services.base import BaseService
from dairy_kernel.services.counterparty_service import CounterpartyService

logger = get_logger("services.advances")

MIN_ADVANCE_AMOUNT = Decimal("1")


def _reduce_pending(farmer: Farmer, amount: Decimal) -> None:
    farmer.pending_amount = max(ZERO, Decimal(farmer.pending_amount) - amount)


class AdvanceService(BaseService):
    """Write paths of the advance sub-ledger."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        counterparties: CounterpartyService | None = None,
    ):
        super().__init__(session, clock)
        self.counterparties = counterparties or CounterpartyService(session, self.clock)

    def add_advance(
        self,
        owner_id: UUID,
        farmer_id: UUID,
        amount: Decimal | int | str,
        note: str = "",
        day: date | str | None = None,
    ) -> AdvanceInfo:
        value = coerce_amount(amount)
        if value < MIN_ADVANCE_AMOUNT:
            raise InvalidAmountError(
                amount,
                minimum=MIN_ADVANCE_AMOUNT,
                reason=f"advance must be at least {MIN_ADVANCE_AMOUNT}",
            )
        farmer = self.counterparties.load_farmer(owner_id, farmer_id)

        advance = Advance(
            owner_id=owner_id,
            farmer_id=farmer.id,
            amount=value,
            date=as_calendar_day(day) or self.clock.today(),
            note=note.strip(),
            status=AdvanceStatus.PENDING.value,
            settled_amount=ZERO,
            created_by_id=owner_id,
        )
        farmer.pending_amount = Decimal(farmer.pending_amount) + value
        self.session.add(advance)
        self.session.flush()

        logger.info(
            "advance_added",
            extra={"advance_id": str(advance.id), "farmer_id": str(farmer.id), "amount": str(value)},
        )
        return AdvanceInfo.from_model(advance)

    def _load(self, owner_id: UUID, advance_id: UUID) -> Advance:
        advance = self.session.execute(
            select(Advance).where(Advance.id == advance_id, Advance.owner_id == owner_id)
        ).scalar_one_or_none()
        if advance is None:
            raise AdvanceNotFoundError(str(advance_id))
        return advance

    def get_advance(self, owner_id: UUID, advance_id: UUID) -> AdvanceInfo:
        return AdvanceInfo.from_model(self._load(owner_id, advance_id))

    def settle_advance(
        self,
        owner_id: UUID,
        advance_id: UUID,
        settled_amount: Decimal | int | str | None = None,
    ) -> AdvanceInfo:
        """
        Settle part or all of an advance.

        ``None`` or zero settles the full remaining amount.
        """
        advance = self._load(owner_id, advance_id)
        status = AdvanceStatus(advance.status)
        if status == AdvanceStatus.SETTLED:
            raise AdvanceStateError(str(advance_id), status.value, "already settled")

        remaining = advance.remaining
        increment = ZERO if settled_amount is None else coerce_amount(settled_amount)
        if increment < 0:
            raise InvalidAmountError(settled_amount, reason="settled amount must not be negative")
        if increment == 0:
            increment = remaining
        if increment > remaining:
            raise AdvanceStateError(
                str(advance_id),
                status.value,
                f"settling {increment} exceeds the remaining {remaining}",
            )

        new_settled = Decimal(advance.settled_amount) + increment
        target = (
            AdvanceStatus.SETTLED if new_settled >= Decimal(advance.amount) else AdvanceStatus.PARTIAL
        )
        if not advance.can_transition_to(target):
            raise AdvanceStateError(str(advance_id), status.value, f"cannot become {target.value}")

        advance.settled_amount = new_settled
        advance.status = target.value
        advance.updated_by_id = owner_id

        farmer = self.counterparties.load_farmer(owner_id, advance.farmer_id, include_inactive=True)
        _reduce_pending(farmer, increment)
        self.session.flush()

        logger.info(
            "advance_settled",
            extra={
                "advance_id": str(advance.id),
                "increment": str(increment),
                "advance_status": target.value,
            },
        )
        return AdvanceInfo.from_model(advance)

    def delete_advance(self, owner_id: UUID, advance_id: UUID) -> None:
        advance = self._load(owner_id, advance_id)
        was_pending = AdvanceStatus(advance.status) == AdvanceStatus.PENDING
        if was_pending:
            farmer = self.counterparties.load_farmer(
                owner_id, advance.farmer_id, include_inactive=True
            )
            _reduce_pending(farmer, Decimal(advance.amount))
        self.session.delete(advance)
        self.session.flush()

        logger.info(
            "advance_deleted",
            extra={"advance_id": str(advance_id), "was_pending": was_pending},
        )

    def list_pending_advances(self, owner_id: UUID, farmer_id: UUID) -> PendingAdvances:
        return PeriodAggregator(self.session).pending_advances(owner_id, farmer_id)

    def consume_for_settlement(
        self,
        owner_id: UUID,
        advance_ids: tuple[UUID, ...],
    ) -> list[tuple[Advance, Decimal]]:
        """
        Mark outstanding advances fully settled inside a farmer settlement.

        Returns each advance with the remaining amount it contributed.  The
        farmer's pending_amount is reset by the settlement itself.
        """
        if not advance_ids:
            return []
        rows = (
            self.session.execute(
                select(Advance)
                .where(
                    Advance.owner_id == owner_id,
                    Advance.id.in_(list(advance_ids)),
                    Advance.status.in_([s.value for s in OUTSTANDING_ADVANCE_STATUSES]),
                )
                .with_for_update()
            )
            .scalars()
            .all()
        )
        if len(rows) != len(advance_ids):
            missing = set(advance_ids) - {row.id for row in rows}
            raise AdvanceStateError(
                str(sorted(missing, key=str)[0]), "unknown", "no longer outstanding"
            )

        consumed = []
        for advance in rows:
            deducted = advance.remaining
            advance.settled_amount = Decimal(advance.amount)
            advance.status = AdvanceStatus.SETTLED.value
            advance.updated_by_id = owner_id
            consumed.append((advance, deducted))
        self.session.flush()
        return consumed
