"""
CounterpartyService -- farmers, members and their running balances.

Responsibility:
    Creates, reads and deactivates farmers and members, and owns the two
    ways a settlement may touch a running balance: ``write_balance`` (full
    overwrite with a closing balance) and ``adjust_balance`` (delta, used
    only by the settlement correction path).

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Every query is scoped by owner; a foreign or inactive counterparty is
      reported as not found to write paths.
    - Farmer codes are unique per owner.
    - Balance writes go through the ``version`` column, so a concurrent
      writer that read an older version fails with StaleDataError at flush.
    - Farmer balances only accept FarmerLedgerBalance and member balances
      only accept MemberLedgerBalance.

Failure modes:
    - CounterpartyNotFoundError, DuplicateFarmerCodeError.
    - TypeError when a balance of the wrong flow is written.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from dairy_kernel.db.types import ZERO, to_decimal
from dairy_kernel.domain.dtos import CounterpartyInfo
from dairy_kernel.domain.values import FarmerLedgerBalance, MemberLedgerBalance
from dairy_kernel.exceptions import (
    CounterpartyNotFoundError,
    DuplicateFarmerCodeError,
    InvalidLineItemError,
)
from dairy_kernel.logging_config import get_logger
from dairy_kernel.models.farmer import Farmer
from dairy_kernel.models.member import DEFAULT_MEMBER_RATE, Member
from dairy_kernel.services.base import BaseService

logger = get_logger("services.counterparty")


def _rate(value: object) -> Decimal:
    rate = to_decimal(value)
    if rate < 0:
        raise InvalidLineItemError("rate_per_liter", value, "must not be negative")
    return rate


class CounterpartyService(BaseService):
    """Write and read paths for farmers and members."""

    # =========================================================================
    # Farmers
    # =========================================================================

    def create_farmer(
        self,
        owner_id: UUID,
        code: str,
        name: str,
        mobile: str = "",
        address: str = "",
        rate_per_liter: Decimal | int | str = ZERO,
    ) -> CounterpartyInfo:
        code = code.strip()
        existing = self.session.execute(
            select(Farmer.id).where(Farmer.owner_id == owner_id, Farmer.code == code)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateFarmerCodeError(code)

        farmer = Farmer(
            owner_id=owner_id,
            code=code,
            name=name,
            mobile=mobile,
            address=address,
            rate_per_liter=_rate(rate_per_liter),
            total_purchase=ZERO,
            total_liters=ZERO,
            pending_amount=ZERO,
            current_balance=ZERO,
            is_active=True,
            created_by_id=owner_id,
        )
        self.session.add(farmer)
        self.session.flush()

        logger.info("farmer_created", extra={"farmer_id": str(farmer.id), "code": code})
        return CounterpartyInfo.from_farmer(farmer)

    def load_farmer(
        self,
        owner_id: UUID,
        farmer_id: UUID,
        *,
        for_update: bool = False,
        include_inactive: bool = False,
    ) -> Farmer:
        """
        Load the ORM row for a write path.

        ``for_update`` takes a row lock (PostgreSQL) and refreshes the
        identity-map copy so the caller computes from the latest committed
        balance.
        """
        stmt = select(Farmer).where(Farmer.id == farmer_id, Farmer.owner_id == owner_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        farmer = self.session.execute(stmt).scalar_one_or_none()
        if farmer is None or (not farmer.is_active and not include_inactive):
            raise CounterpartyNotFoundError("farmer", str(farmer_id))
        return farmer

    def get_farmer(self, owner_id: UUID, farmer_id: UUID) -> CounterpartyInfo:
        return CounterpartyInfo.from_farmer(
            self.load_farmer(owner_id, farmer_id, include_inactive=True)
        )

    def get_farmer_by_code(self, owner_id: UUID, code: str) -> CounterpartyInfo:
        farmer = self.session.execute(
            select(Farmer).where(Farmer.owner_id == owner_id, Farmer.code == code.strip())
        ).scalar_one_or_none()
        if farmer is None:
            raise CounterpartyNotFoundError("farmer", code)
        return CounterpartyInfo.from_farmer(farmer)

    def deactivate_farmer(self, owner_id: UUID, farmer_id: UUID) -> CounterpartyInfo:
        farmer = self.load_farmer(owner_id, farmer_id, include_inactive=True)
        farmer.is_active = False
        farmer.updated_by_id = owner_id
        self.session.flush()
        logger.info("farmer_deactivated", extra={"farmer_id": str(farmer_id)})
        return CounterpartyInfo.from_farmer(farmer)

    # =========================================================================
    # Members
    # =========================================================================

    def create_member(
        self,
        owner_id: UUID,
        name: str,
        mobile: str = "",
        address: str = "",
        rate_per_liter: Decimal | int | str | None = None,
    ) -> CounterpartyInfo:
        member = Member(
            owner_id=owner_id,
            name=name,
            mobile=mobile,
            address=address,
            rate_per_liter=DEFAULT_MEMBER_RATE if rate_per_liter is None else _rate(rate_per_liter),
            total_liters=ZERO,
            total_amount=ZERO,
            pending_amount=ZERO,
            selling_payment_balance=ZERO,
            is_active=True,
            created_by_id=owner_id,
        )
        self.session.add(member)
        self.session.flush()

        logger.info("member_created", extra={"member_id": str(member.id)})
        return CounterpartyInfo.from_member(member)

    def load_member(
        self,
        owner_id: UUID,
        member_id: UUID,
        *,
        for_update: bool = False,
        include_inactive: bool = False,
    ) -> Member:
        """Member counterpart of ``load_farmer``."""
        stmt = select(Member).where(Member.id == member_id, Member.owner_id == owner_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        member = self.session.execute(stmt).scalar_one_or_none()
        if member is None or (not member.is_active and not include_inactive):
            raise CounterpartyNotFoundError("member", str(member_id))
        return member

    def get_member(self, owner_id: UUID, member_id: UUID) -> CounterpartyInfo:
        return CounterpartyInfo.from_member(
            self.load_member(owner_id, member_id, include_inactive=True)
        )

    def deactivate_member(self, owner_id: UUID, member_id: UUID) -> CounterpartyInfo:
        member = self.load_member(owner_id, member_id, include_inactive=True)
        member.is_active = False
        member.updated_by_id = owner_id
        self.session.flush()
        logger.info("member_deactivated", extra={"member_id": str(member_id)})
        return CounterpartyInfo.from_member(member)

    # =========================================================================
    # Running balances
    # =========================================================================

    @staticmethod
    def farmer_balance(farmer: Farmer) -> FarmerLedgerBalance:
        return FarmerLedgerBalance.of(farmer.current_balance)

    @staticmethod
    def member_balance(member: Member) -> MemberLedgerBalance:
        return MemberLedgerBalance.of(member.selling_payment_balance)

    def write_balance(
        self,
        counterparty: Farmer | Member,
        balance: FarmerLedgerBalance | MemberLedgerBalance,
        actor_id: UUID,
    ) -> None:
        """Overwrite the running balance with a settlement's closing balance."""
        if isinstance(counterparty, Farmer):
            if not isinstance(balance, FarmerLedgerBalance):
                raise TypeError("Farmer balance must be a FarmerLedgerBalance")
            previous = counterparty.current_balance
            counterparty.current_balance = balance.amount
        else:
            if not isinstance(balance, MemberLedgerBalance):
                raise TypeError("Member balance must be a MemberLedgerBalance")
            previous = counterparty.selling_payment_balance
            counterparty.selling_payment_balance = balance.amount
        counterparty.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "balance_written",
            extra={
                "counterparty_id": str(counterparty.id),
                "previous_balance": str(previous),
                "new_balance": str(balance.amount),
            },
        )

    def adjust_balance(
        self,
        counterparty: Farmer | Member,
        delta: Decimal,
        actor_id: UUID,
    ) -> None:
        """Nudge the running balance by ``delta``; no recompute from history."""
        if isinstance(counterparty, Farmer):
            balance = self.farmer_balance(counterparty).shifted(delta)
            counterparty.current_balance = balance.amount
        else:
            balance = self.member_balance(counterparty).shifted(delta)
            counterparty.selling_payment_balance = balance.amount
        counterparty.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "balance_adjusted",
            extra={
                "counterparty_id": str(counterparty.id),
                "delta": str(delta),
                "new_balance": str(balance.amount),
            },
        )
