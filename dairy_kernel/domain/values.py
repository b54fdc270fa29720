"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    DateRange for optional, inclusive settlement windows, and the two
    running-balance types.  The farmer and member balances are deliberately
    separate types: their sign conventions differ, and mixing them is a
    TypeError instead of a silent accounting bug.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Sign conventions:
    FarmerLedgerBalance  -- positive: the owner owes the farmer (milk amount
                            not yet paid, net of advances); negative: the
                            farmer has been overpaid.
    MemberLedgerBalance  -- positive: the member owes the owner (previous
                            balance + unpaid milk - paid); negative: the
                            member holds credit.

Failure modes:
    - InvalidPeriodError when a DateRange is constructed with start > end.
    - TypeError when arithmetic mixes balance types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Self

from dairy_kernel.exceptions import InvalidPeriodError


def as_calendar_day(value: date | datetime | str | None) -> date | None:
    """Normalize a bound to its calendar day; ISO strings are accepted."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value).date() if "T" in value else date.fromisoformat(value)
    raise TypeError(f"Cannot interpret {value!r} as a calendar day")


@dataclass(frozen=True, slots=True)
class DateRange:
    """
    Inclusive calendar-day window; an omitted bound is unbounded on that side.

    Line item dates are calendar days, so ``[start_of_day(start),
    end_of_day(end)]`` reduces to ``start <= item.date <= end``.
    """

    start: date | None = None
    end: date | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", as_calendar_day(self.start))
        object.__setattr__(self, "end", as_calendar_day(self.end))
        if self.start is not None and self.end is not None and self.start > self.end:
            raise InvalidPeriodError(self.start, self.end)

    @classmethod
    def unbounded(cls) -> DateRange:
        return cls()

    @property
    def is_closed(self) -> bool:
        """Both bounds present."""
        return self.start is not None and self.end is not None

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, day: date) -> bool:
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True

    def overlaps(self, start: date, end: date) -> bool:
        """Closed-interval intersection: self.start <= end AND self.end >= start."""
        if not self.is_closed:
            raise ValueError("Overlap is only defined for a closed range")
        return self.start <= end and self.end >= start

    def __str__(self) -> str:
        return f"{self.start or '-inf'} to {self.end or '+inf'}"


@dataclass(frozen=True, slots=True)
class _LedgerBalance:
    amount: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", Decimal(str(self.amount)))

    @classmethod
    def zero(cls) -> Self:
        return cls(Decimal("0"))

    @classmethod
    def of(cls, value: Decimal | int | str | None) -> Self:
        """Treat a missing stored balance as zero."""
        if value is None:
            return cls.zero()
        return cls(Decimal(str(value)))

    def _check(self, other: object) -> None:
        if type(other) is not type(self):
            raise TypeError(
                f"Cannot combine {type(self).__name__} with {type(other).__name__}"
            )

    def __add__(self, other: Self) -> Self:
        self._check(other)
        return type(self)(self.amount + other.amount)

    def __sub__(self, other: Self) -> Self:
        self._check(other)
        return type(self)(self.amount - other.amount)

    def shifted(self, delta: Decimal) -> Self:
        """Balance moved by a raw monetary delta."""
        return type(self)(self.amount + delta)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0


@dataclass(frozen=True, slots=True)
class FarmerLedgerBalance(_LedgerBalance):
    """Running balance between the owner and a farmer (positive: owner owes farmer)."""

    @property
    def owed_to_farmer(self) -> Decimal:
        return max(self.amount, Decimal("0"))

    @property
    def overpaid(self) -> Decimal:
        return max(-self.amount, Decimal("0"))


@dataclass(frozen=True, slots=True)
class MemberLedgerBalance(_LedgerBalance):
    """Running balance between the owner and a member (positive: member owes owner)."""

    @property
    def receivable(self) -> Decimal:
        return max(self.amount, Decimal("0"))

    @property
    def credit(self) -> Decimal:
        return max(-self.amount, Decimal("0"))
