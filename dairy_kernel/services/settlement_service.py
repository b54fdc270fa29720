"""
SettlementService -- the settlement engine for both reconciliation flows.

Responsibility:
    Previews and commits farmer and member settlements, and corrects
    committed settlements.  A settlement reads the counterparty's running
    balance, aggregates the unpaid line items of the period (and, for
    farmers, the outstanding advances), computes net payable and closing
    balance, and durably records all of it in one transaction.

Architecture position:
    Kernel > Services -- imperative shell.  Arithmetic lives in
    ``domain.settlement``; reads in ``selectors``; this module sequences
    them and owns the commit boundary through SettlementUnitOfWork.

Request lifecycle (domain.settlement.VALID_TRANSITIONS):
    PREVIEW -> VALIDATED -> COMMITTED
    PREVIEW | VALIDATED -> REJECTED   (no state mutated)

Invariants enforced:
    - net_payable == previous_balance + period_total - advance_deduction and
      closing_balance == net_payable - amount, as stored on the record.
    - The record, the paid flags, the consumed advances and the balance
      overwrite commit together or not at all.
    - previous_balance is exactly the last committed closing balance: the
      counterparty lock is held across read-compute-commit and the balance
      write is version-checked.
    - Farmer periods never overlap (closed-interval test) when the flow's
      policy enforces it.
    - A manual period total changes only the arithmetic, never which items
      are marked paid.
    - Corrections move the live balance by the paid-amount delta only.

Failure modes:
    - CounterpartyNotFoundError, SettlementNotFoundError.
    - InvalidAmountError, InvalidPeriodError, InvalidPaymentMethodError.
    - PeriodConflictError listing every conflicting range.
    - OptimisticLockError, PersistenceFailureError (rolled back).

Audit relevance:
    Logs settlement_committed / settlement_rejected / settlement_edited with
    the computed figures; the payment row and its association rows are the
    durable trail.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from dairy_kernel.db.types import ZERO, round_money
from dairy_kernel.domain.clock import Clock
from dairy_kernel.domain.dtos import (
    PendingAdvances,
    PeriodTotals,
    SettlementCompletedEvent,
    SettlementFlow,
    SettlementInfo,
    SettlementSummary,
)
from dairy_kernel.domain.settlement import (
    FARMER_POLICY,
    MEMBER_POLICY,
    FlowPolicy,
    SettlementComputation,
    SettlementState,
    coerce_amount,
    compute_settlement,
    find_overlaps,
    transition,
    validate_amount,
)
from dairy_kernel.domain.values import DateRange, FarmerLedgerBalance, MemberLedgerBalance
from dairy_kernel.exceptions import (
    DairyLedgerError,
    InvalidPaymentMethodError,
    OptimisticLockError,
    PeriodConflictError,
    SettlementNotFoundError,
)
from dairy_kernel.logging_config import LogContext, get_logger
from dairy_kernel.models.milk_collection import MilkCollection
from dairy_kernel.models.payment import (
    FarmerPayment,
    FarmerPaymentAdvance,
    FarmerPaymentCollection,
    MemberPayment,
    MemberPaymentEntry,
    PaymentMethod,
)
from dairy_kernel.models.selling_entry import SellingEntry
from dairy_kernel.selectors.period_aggregator import PeriodAggregator
from dairy_kernel.selectors.settlement_selector import SettlementSelector
from dairy_kernel.services.advance_service import AdvanceService
from dairy_kernel.services.base import BaseService
from dairy_kernel.services.counterparty_service import CounterpartyService
from dairy_kernel.services.locks import CounterpartyLockRegistry, default_lock_registry
from dairy_kernel.services.notifier import NotificationDispatcher
from dairy_kernel.services.unit_of_work import SettlementUnitOfWork

logger = get_logger("services.settlement")


def _payment_method(value: PaymentMethod | str) -> str:
    try:
        return PaymentMethod(value).value
    except ValueError:
        raise InvalidPaymentMethodError(value, tuple(m.value for m in PaymentMethod)) from None


class SettlementService(BaseService):
    """
    Settlement engine.

    Contract:
        ``settle_*`` and ``edit_*`` commit their own unit of work; call them
        on a session with no other pending work you are not prepared to
        commit.  ``summarize_*`` never mutates.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        policies: dict[SettlementFlow, FlowPolicy] | None = None,
        lock_registry: CounterpartyLockRegistry | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ):
        super().__init__(session, clock)
        self.policies = {SettlementFlow.FARMER: FARMER_POLICY, SettlementFlow.MEMBER: MEMBER_POLICY}
        self.policies.update(policies or {})
        self.locks = lock_registry or default_lock_registry
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.counterparties = CounterpartyService(session, self.clock)
        self.advances = AdvanceService(session, self.clock, self.counterparties)
        self.aggregator = PeriodAggregator(session)
        self.selector = SettlementSelector(session)

    # =========================================================================
    # Previews
    # =========================================================================

    def summarize_farmer(
        self,
        owner_id: UUID,
        farmer_id: UUID,
        date_range: DateRange | None = None,
    ) -> SettlementSummary:
        """Pre-payment preview for a farmer.  Read-only and repeatable."""
        policy = self.policies[SettlementFlow.FARMER]
        farmer = self.counterparties.load_farmer(owner_id, farmer_id)
        totals = self.aggregator.unpaid_collections(owner_id, farmer.id, date_range)
        advances = self._outstanding_advances(policy, owner_id, farmer.id)
        computation = compute_settlement(
            self.counterparties.farmer_balance(farmer).amount,
            totals.total_amount,
            advances.total_remaining,
            ZERO,
            policy.currency_places,
        )
        return self._summary(SettlementFlow.FARMER, farmer.id, totals, advances, computation)

    def summarize_member(
        self,
        owner_id: UUID,
        member_id: UUID,
        date_range: DateRange | None = None,
        line_item_ids: Iterable[UUID] | None = None,
    ) -> SettlementSummary:
        """Pre-payment preview for a member.  Read-only and repeatable."""
        policy = self.policies[SettlementFlow.MEMBER]
        member = self.counterparties.load_member(owner_id, member_id)
        totals = self.aggregator.unpaid_selling_entries(
            owner_id, member.id, date_range, line_item_ids
        )
        computation = compute_settlement(
            self.counterparties.member_balance(member).amount,
            totals.total_amount,
            ZERO,
            ZERO,
            policy.currency_places,
        )
        return self._summary(SettlementFlow.MEMBER, member.id, totals, PendingAdvances(), computation)

    @staticmethod
    def _summary(
        flow: SettlementFlow,
        counterparty_id: UUID,
        totals: PeriodTotals,
        advances: PendingAdvances,
        computation: SettlementComputation,
    ) -> SettlementSummary:
        return SettlementSummary(
            flow=flow,
            counterparty_id=counterparty_id,
            previous_balance=computation.previous_balance,
            period_total=computation.period_total,
            period_quantity=totals.total_quantity,
            item_count=totals.count,
            first_item_date=totals.first_date,
            last_item_date=totals.last_date,
            advance_deduction=computation.advance_deduction,
            advance_count=advances.count,
            net_payable=computation.net_payable,
            closing_balance=computation.closing_balance,
        )

    def _outstanding_advances(
        self, policy: FlowPolicy, owner_id: UUID, farmer_id: UUID
    ) -> PendingAdvances:
        if not policy.deduct_advances:
            return PendingAdvances()
        return self.aggregator.pending_advances(owner_id, farmer_id)

    # =========================================================================
    # Farmer settlement
    # =========================================================================

    def settle_farmer(
        self,
        owner_id: UUID,
        farmer_id: UUID,
        amount: Decimal | int | str,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        period_start: date | str | None = None,
        period_end: date | str | None = None,
        manual_period_total: Decimal | int | str | None = None,
        reference: str = "",
        notes: str = "",
    ) -> SettlementInfo:
        """
        Settle a farmer's unpaid collections net of outstanding advances.

        Without explicit bounds the stored period spans the first to the last
        consumed collection (null when nothing was consumed).
        """
        flow = SettlementFlow.FARMER
        policy = self.policies[flow]

        with LogContext.settlement(owner_id, flow, farmer_id):
            state = SettlementState.PREVIEW
            try:
                with self.locks.hold(owner_id, flow.value, farmer_id):
                    with SettlementUnitOfWork(self.session, "settle_farmer", "farmer", farmer_id):
                        period = DateRange(period_start, period_end)
                        method = _payment_method(payment_method)

                        farmer = self.counterparties.load_farmer(owner_id, farmer_id, for_update=True)
                        if policy.enforce_period_overlap and period.is_closed:
                            self._check_overlap(owner_id, farmer.id, period)

                        totals = self.aggregator.unpaid_collections(owner_id, farmer.id, period)
                        advances = self._outstanding_advances(policy, owner_id, farmer.id)
                        period_total = self._period_total(policy, totals, manual_period_total)

                        computation = compute_settlement(
                            self.counterparties.farmer_balance(farmer).amount,
                            period_total,
                            advances.total_remaining,
                            validate_amount(
                                amount,
                                policy.minimum_payment,
                                policy.minimum_inclusive,
                                policy.currency_places,
                            ),
                            policy.currency_places,
                        )
                        state = transition(state, SettlementState.VALIDATED)

                        payment = FarmerPayment(
                            owner_id=owner_id,
                            farmer_id=farmer.id,
                            amount=computation.amount,
                            date=self.clock.today(),
                            payment_method=method,
                            reference=reference.strip(),
                            notes=notes.strip(),
                            period_start=period.start if period.start is not None else totals.first_date,
                            period_end=period.end if period.end is not None else totals.last_date,
                            previous_balance=computation.previous_balance,
                            total_milk_amount=computation.period_total,
                            total_advance_deduction=computation.advance_deduction,
                            net_payable=computation.net_payable,
                            closing_balance=computation.closing_balance,
                            created_by_id=owner_id,
                        )
                        self.session.add(payment)

                        self._mark_paid(MilkCollection, owner_id, totals.item_ids)
                        for item_id in totals.item_ids:
                            payment.settled_collections.append(
                                FarmerPaymentCollection(collection_id=item_id)
                            )
                        for advance, deducted in self.advances.consume_for_settlement(
                            owner_id, advances.advance_ids
                        ):
                            payment.settled_advances.append(
                                FarmerPaymentAdvance(advance_id=advance.id, deducted_amount=deducted)
                            )

                        farmer.pending_amount = ZERO
                        self.counterparties.write_balance(
                            farmer, FarmerLedgerBalance(computation.closing_balance), owner_id
                        )
                        info = SettlementInfo.from_farmer_payment(payment)
            except DairyLedgerError as exc:
                self._rejected(state, exc)
                raise

            self._committed(state, info, totals, manual_period_total is not None)
        return info

    # =========================================================================
    # Member settlement
    # =========================================================================

    def settle_member(
        self,
        owner_id: UUID,
        member_id: UUID,
        amount: Decimal | int | str,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        period_start: date | str | None = None,
        period_end: date | str | None = None,
        manual_period_total: Decimal | int | str | None = None,
        line_item_ids: Iterable[UUID] | None = None,
        reference: str = "",
        notes: str = "",
    ) -> SettlementInfo:
        """
        Settle a member's unpaid selling entries.

        ``line_item_ids``, when given, takes precedence over the date range.
        """
        flow = SettlementFlow.MEMBER
        policy = self.policies[flow]
        if line_item_ids is not None:
            line_item_ids = list(line_item_ids)

        with LogContext.settlement(owner_id, flow, member_id):
            state = SettlementState.PREVIEW
            try:
                with self.locks.hold(owner_id, flow.value, member_id):
                    with SettlementUnitOfWork(self.session, "settle_member", "member", member_id):
                        period = DateRange(period_start, period_end)
                        method = _payment_method(payment_method)

                        member = self.counterparties.load_member(owner_id, member_id, for_update=True)
                        if policy.enforce_period_overlap and period.is_closed:
                            self._check_overlap(owner_id, member.id, period, flow=flow)

                        totals = self.aggregator.unpaid_selling_entries(
                            owner_id, member.id, period, line_item_ids
                        )
                        period_total = self._period_total(policy, totals, manual_period_total)

                        computation = compute_settlement(
                            self.counterparties.member_balance(member).amount,
                            period_total,
                            ZERO,
                            validate_amount(
                                amount,
                                policy.minimum_payment,
                                policy.minimum_inclusive,
                                policy.currency_places,
                            ),
                            policy.currency_places,
                        )
                        state = transition(state, SettlementState.VALIDATED)

                        payment = MemberPayment(
                            owner_id=owner_id,
                            member_id=member.id,
                            amount=computation.amount,
                            date=self.clock.today(),
                            payment_method=method,
                            reference=reference.strip(),
                            notes=notes.strip(),
                            period_start=period.start,
                            period_end=period.end,
                            previous_balance=computation.previous_balance,
                            total_sell_amount=computation.period_total,
                            net_payable=computation.net_payable,
                            closing_balance=computation.closing_balance,
                            created_by_id=owner_id,
                        )
                        self.session.add(payment)

                        self._mark_paid(SellingEntry, owner_id, totals.item_ids)
                        for item_id in totals.item_ids:
                            payment.settled_entries.append(MemberPaymentEntry(entry_id=item_id))

                        self.counterparties.write_balance(
                            member, MemberLedgerBalance(computation.closing_balance), owner_id
                        )
                        info = SettlementInfo.from_member_payment(payment)
            except DairyLedgerError as exc:
                self._rejected(state, exc)
                raise

            self._committed(state, info, totals, manual_period_total is not None)
        return info

    # =========================================================================
    # Corrections
    # =========================================================================

    def edit_farmer_settlement(
        self,
        owner_id: UUID,
        payment_id: UUID,
        amount: Decimal | int | str | None = None,
        period_total: Decimal | int | str | None = None,
        period_start: date | str | None = None,
        period_end: date | str | None = None,
    ) -> SettlementInfo:
        """
        Correct a committed farmer settlement.

        ``None`` leaves a field unchanged.  The live balance moves by the
        paid-amount delta only; a period_total change updates this record's
        net_payable and closing_balance but not the live balance.
        """
        payment = self.session.execute(
            select(FarmerPayment).where(
                FarmerPayment.id == payment_id, FarmerPayment.owner_id == owner_id
            )
        ).scalar_one_or_none()
        if payment is None:
            raise SettlementNotFoundError(str(payment_id))
        return self._edit(
            SettlementFlow.FARMER,
            owner_id,
            payment,
            payment.farmer_id,
            amount,
            period_total,
            period_start,
            period_end,
        )

    def edit_member_settlement(
        self,
        owner_id: UUID,
        payment_id: UUID,
        amount: Decimal | int | str | None = None,
        period_total: Decimal | int | str | None = None,
        period_start: date | str | None = None,
        period_end: date | str | None = None,
    ) -> SettlementInfo:
        """Member counterpart of ``edit_farmer_settlement``."""
        payment = self.session.execute(
            select(MemberPayment).where(
                MemberPayment.id == payment_id, MemberPayment.owner_id == owner_id
            )
        ).scalar_one_or_none()
        if payment is None:
            raise SettlementNotFoundError(str(payment_id))
        return self._edit(
            SettlementFlow.MEMBER,
            owner_id,
            payment,
            payment.member_id,
            amount,
            period_total,
            period_start,
            period_end,
        )

    def _edit(
        self,
        flow: SettlementFlow,
        owner_id: UUID,
        payment: FarmerPayment | MemberPayment,
        counterparty_id: UUID,
        amount,
        period_total,
        period_start,
        period_end,
    ) -> SettlementInfo:
        policy = self.policies[flow]
        payment_id = payment.id

        with LogContext.settlement(owner_id, flow, counterparty_id, payment_id):
            try:
                with self.locks.hold(owner_id, flow.value, counterparty_id):
                    with SettlementUnitOfWork(
                        self.session, f"edit_{flow.value}_settlement", flow.value, counterparty_id
                    ):
                        period = DateRange(
                            payment.period_start if period_start is None else period_start,
                            payment.period_end if period_end is None else period_end,
                        )
                        bounds_changed = (period.start, period.end) != (
                            payment.period_start,
                            payment.period_end,
                        )
                        if policy.enforce_period_overlap and bounds_changed and period.is_closed:
                            self._check_overlap(
                                owner_id, counterparty_id, period, flow=flow, exclude=payment_id
                            )

                        old_amount = Decimal(payment.amount)
                        new_amount = (
                            old_amount
                            if amount is None
                            else validate_amount(
                                amount,
                                policy.minimum_payment,
                                policy.minimum_inclusive,
                                policy.currency_places,
                            )
                        )
                        new_total = (
                            Decimal(payment.period_total)
                            if period_total is None
                            else coerce_amount(period_total, "period_total")
                        )
                        computation = compute_settlement(
                            Decimal(payment.previous_balance),
                            new_total,
                            Decimal(payment.total_advance_deduction),
                            new_amount,
                            policy.currency_places,
                        )

                        payment.amount = computation.amount
                        payment.period_start = period.start
                        payment.period_end = period.end
                        payment.net_payable = computation.net_payable
                        payment.closing_balance = computation.closing_balance
                        payment.updated_by_id = owner_id
                        if flow == SettlementFlow.FARMER:
                            payment.total_milk_amount = computation.period_total
                        else:
                            payment.total_sell_amount = computation.period_total

                        delta = computation.amount - round_money(old_amount, policy.currency_places)
                        if delta:
                            if flow == SettlementFlow.FARMER:
                                counterparty = self.counterparties.load_farmer(
                                    owner_id, counterparty_id, for_update=True, include_inactive=True
                                )
                            else:
                                counterparty = self.counterparties.load_member(
                                    owner_id, counterparty_id, for_update=True, include_inactive=True
                                )
                            self.counterparties.adjust_balance(counterparty, -delta, owner_id)
                        self.session.flush()

                        info = (
                            SettlementInfo.from_farmer_payment(payment)
                            if flow == SettlementFlow.FARMER
                            else SettlementInfo.from_member_payment(payment)
                        )
            except DairyLedgerError as exc:
                logger.warning(
                    "settlement_edit_rejected",
                    extra={"error_code": exc.code, "error_message": str(exc)},
                )
                raise

            logger.info(
                "settlement_edited",
                extra={
                    "old_amount": str(old_amount),
                    "new_amount": str(computation.amount),
                    "balance_delta": str(-delta),
                    "net_payable": str(computation.net_payable),
                    "closing_balance": str(computation.closing_balance),
                },
            )
        return info

    # =========================================================================
    # Shared steps
    # =========================================================================

    def _check_overlap(
        self,
        owner_id: UUID,
        counterparty_id: UUID,
        period: DateRange,
        flow: SettlementFlow = SettlementFlow.FARMER,
        exclude: UUID | None = None,
    ) -> None:
        if flow == SettlementFlow.FARMER:
            existing = self.selector.farmer_settled_periods(owner_id, counterparty_id, exclude)
        else:
            existing = self.selector.member_settled_periods(owner_id, counterparty_id, exclude)
        conflicts = find_overlaps(period, existing)
        if conflicts:
            logger.warning(
                "period_conflict_detected",
                extra={
                    "period_start": period.start,
                    "period_end": period.end,
                    "conflicts": [f"{s} to {e}" for s, e in conflicts],
                },
            )
            raise PeriodConflictError(str(counterparty_id), period.start, period.end, conflicts)

    @staticmethod
    def _period_total(
        policy: FlowPolicy,
        totals: PeriodTotals,
        manual_period_total: Decimal | int | str | None,
    ) -> Decimal:
        if manual_period_total is not None and policy.allow_manual_period_total:
            return coerce_amount(manual_period_total, "manual_period_total")
        return totals.total_amount

    def _mark_paid(self, model, owner_id: UUID, item_ids: tuple[UUID, ...]) -> None:
        """Flip is_paid on exactly the aggregated items, or fail if any was taken."""
        if not item_ids:
            return
        rows = (
            self.session.execute(
                select(model)
                .where(
                    model.owner_id == owner_id,
                    model.id.in_(list(item_ids)),
                    model.is_paid.is_(False),
                )
                .with_for_update()
            )
            .scalars()
            .all()
        )
        if len(rows) != len(item_ids):
            taken = set(item_ids) - {row.id for row in rows}
            raise OptimisticLockError(model.__name__, str(sorted(taken, key=str)[0]))
        for row in rows:
            row.is_paid = True
            row.updated_by_id = owner_id
        self.session.flush()

    def _committed(
        self,
        state: SettlementState,
        info: SettlementInfo,
        totals: PeriodTotals,
        manual_override: bool,
    ) -> None:
        transition(state, SettlementState.COMMITTED)
        with LogContext.bind(settlement_id=info.id):
            logger.info(
                "settlement_committed",
                extra={
                    "amount": str(info.amount),
                    "previous_balance": str(info.previous_balance),
                    "period_total": str(info.period_total),
                    "advance_deduction": str(info.advance_deduction),
                    "net_payable": str(info.net_payable),
                    "closing_balance": str(info.closing_balance),
                    "item_count": totals.count,
                    "manual_period_total": manual_override,
                    "settlement_state": SettlementState.COMMITTED.value,
                },
            )
            self.dispatcher.dispatch(
                SettlementCompletedEvent(
                    flow=info.flow,
                    owner_id=info.owner_id,
                    counterparty_id=info.counterparty_id,
                    settlement_id=info.id,
                    amount=info.amount,
                    period_end=info.period_end,
                    closing_balance=info.closing_balance,
                )
            )

    @staticmethod
    def _rejected(state: SettlementState, exc: DairyLedgerError) -> None:
        transition(state, SettlementState.REJECTED)
        logger.warning(
            "settlement_rejected",
            extra={
                "error_code": exc.code,
                "error_message": str(exc),
                "rejected_from": state.value,
                "settlement_state": SettlementState.REJECTED.value,
            },
        )
