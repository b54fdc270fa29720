"""
Typed Exception Hierarchy for the Dairy Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A settlement either commits completely or is rejected with no state change.
Callers (HTTP routes, CLI tools, tests) must be able to tell the rejection
reasons apart without parsing messages:

    try:
        service.settle_farmer(owner_id, farmer_id, amount=Decimal("1500"))
    except PeriodConflictError as e:
        api_response(code=e.code, conflicts=e.conflicts)
    except InvalidAmountError as e:
        api_response(code=e.code, amount=e.amount, minimum=e.minimum)

Every exception has:
  1. a TYPED class (catch by type, not message)
  2. a class-level CODE attribute (machine-readable, API-safe)
  3. structured attributes carrying the offending data

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    DairyLedgerError (base)
    |
    +-- NotFoundError
    |   +-- CounterpartyNotFoundError
    |   +-- SettlementNotFoundError
    |   +-- LineItemNotFoundError
    |   +-- AdvanceNotFoundError
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidPeriodError
    |   +-- InvalidLineItemError
    |   +-- InvalidPaymentMethodError
    |   +-- DuplicateFarmerCodeError
    |
    +-- PeriodConflictError
    +-- LineItemSettledError
    +-- AdvanceStateError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- PersistenceFailureError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | COUNTERPARTY_NOT_FOUND      | Farmer/member absent, inactive or foreign
                | SETTLEMENT_NOT_FOUND        | Payment id absent under this owner
                | LINE_ITEM_NOT_FOUND         | Collection/selling entry absent
                | ADVANCE_NOT_FOUND           | Advance absent under this owner
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_AMOUNT              | Paid amount non-finite or below minimum
                | INVALID_PERIOD              | period_start after period_end
                | INVALID_LINE_ITEM           | Non-positive quantity, negative rate
                | DUPLICATE_FARMER_CODE       | Farmer code reused under one owner
----------------|-----------------------------|-----------------------------------------
Settlement      | PERIOD_CONFLICT             | Period intersects a prior settlement
                | LINE_ITEM_SETTLED           | Mutating an item a settlement consumed
                | ADVANCE_STATE               | Over-settling or re-settling an advance
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Counterparty balance changed under us
----------------|-----------------------------|-----------------------------------------
Persistence     | PERSISTENCE_FAILURE         | Store write failed; nothing committed

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Domain exceptions inherit from Exception, not ValueError, so that they
   are catchable as a group without mixing in programming errors.

2. Codes are class attributes: ``PeriodConflictError.code`` is available
   without an instance for API documentation.

3. Every piece of context is an attribute.  The structured log formatter
   copies them into ``exc_*`` fields.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal


class DairyLedgerError(Exception):
    """
    Base exception for all dairy kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "DAIRY_LEDGER_ERROR"


# Not-found errors


class NotFoundError(DairyLedgerError):
    """Base exception for records missing under the caller's owner scope."""

    code: str = "NOT_FOUND"


class CounterpartyNotFoundError(NotFoundError):
    """Farmer or member does not exist, is inactive, or belongs to another owner."""

    code: str = "COUNTERPARTY_NOT_FOUND"

    def __init__(self, counterparty_kind: str, counterparty_ref: str):
        self.counterparty_kind = counterparty_kind
        self.counterparty_ref = counterparty_ref
        super().__init__(f"{counterparty_kind.capitalize()} not found: {counterparty_ref}")


class SettlementNotFoundError(NotFoundError):
    """Settlement record was not found."""

    code: str = "SETTLEMENT_NOT_FOUND"

    def __init__(self, settlement_id: str):
        self.settlement_id = settlement_id
        super().__init__(f"Settlement not found: {settlement_id}")


class LineItemNotFoundError(NotFoundError):
    """Milk collection or selling entry was not found."""

    code: str = "LINE_ITEM_NOT_FOUND"

    def __init__(self, line_item_id: str):
        self.line_item_id = line_item_id
        super().__init__(f"Line item not found: {line_item_id}")


class AdvanceNotFoundError(NotFoundError):
    """Advance was not found."""

    code: str = "ADVANCE_NOT_FOUND"

    def __init__(self, advance_id: str):
        self.advance_id = advance_id
        super().__init__(f"Advance not found: {advance_id}")


# Validation errors


class ValidationError(DairyLedgerError):
    """Base exception for rejected caller input."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Paid amount is non-numeric, non-finite, or below the flow minimum."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: object, minimum: Decimal | None = None, reason: str = ""):
        self.amount = str(amount)
        self.minimum = minimum
        self.reason = reason
        detail = reason or (
            f"must be at least {minimum}" if minimum is not None else "must be a finite number"
        )
        super().__init__(f"Invalid amount {amount!r}: {detail}")


class InvalidPeriodError(ValidationError):
    """Period bounds are inverted."""

    code: str = "INVALID_PERIOD"

    def __init__(self, period_start: date, period_end: date):
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(
            f"period_start ({period_start}) cannot be after period_end ({period_end})"
        )


class InvalidLineItemError(ValidationError):
    """Line item inputs violate quantity or rate bounds."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class InvalidPaymentMethodError(ValidationError):
    """Payment method is not one of the supported methods."""

    code: str = "INVALID_PAYMENT_METHOD"

    def __init__(self, payment_method: object, allowed: tuple[str, ...]):
        self.payment_method = str(payment_method)
        self.allowed = allowed
        super().__init__(
            f"Invalid payment method {payment_method!r}: expected one of {', '.join(allowed)}"
        )


class DuplicateFarmerCodeError(ValidationError):
    """Farmer code already used by this owner."""

    code: str = "DUPLICATE_FARMER_CODE"

    def __init__(self, farmer_code: str):
        self.farmer_code = farmer_code
        super().__init__(f"Farmer code already exists: {farmer_code}")


# Settlement errors


class PeriodConflictError(DairyLedgerError):
    """
    Requested settlement period intersects an existing settlement period.

    ``conflicts`` lists every intersecting ``(start, end)`` pair so the
    operator can choose a non-overlapping window.
    """

    code: str = "PERIOD_CONFLICT"

    def __init__(
        self,
        counterparty_id: str,
        period_start: date,
        period_end: date,
        conflicts: list[tuple[date, date]],
    ):
        self.counterparty_id = counterparty_id
        self.period_start = period_start
        self.period_end = period_end
        self.conflicts = conflicts
        ranges = ", ".join(f"{s} to {e}" for s, e in conflicts)
        super().__init__(
            f"Period {period_start} to {period_end} overlaps existing "
            f"settlement period(s): {ranges}"
        )


class LineItemSettledError(DairyLedgerError):
    """Attempted to modify or delete a line item already consumed by a settlement."""

    code: str = "LINE_ITEM_SETTLED"

    def __init__(self, line_item_id: str, operation: str):
        self.line_item_id = line_item_id
        self.operation = operation
        super().__init__(
            f"Cannot {operation} line item {line_item_id}: already settled"
        )


class AdvanceStateError(DairyLedgerError):
    """Advance cannot take the requested settlement."""

    code: str = "ADVANCE_STATE"

    def __init__(self, advance_id: str, status: str, reason: str):
        self.advance_id = advance_id
        self.status = status
        self.reason = reason
        super().__init__(f"Advance {advance_id} ({status}): {reason}")


# Concurrency errors


class ConcurrencyError(DairyLedgerError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Persistence errors


class PersistenceFailureError(DairyLedgerError):
    """Store write failed mid-commit; the unit of work was rolled back."""

    code: str = "PERSISTENCE_FAILURE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")
