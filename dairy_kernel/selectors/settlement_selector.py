"""
Module: dairy_kernel.selectors.settlement_selector
Responsibility: Read settlement history -- paged listings, single records
    with their frozen item ids, and the existing period bounds the farmer
    overlap check compares against.
Architecture position: Kernel > Selectors.  Read-only.
"""

from uuid import UUID

from sqlalchemy import func, select

from dairy_kernel.domain.dtos import Page, SettlementInfo
from dairy_kernel.domain.values import DateRange
from dairy_kernel.models.payment import FarmerPayment, MemberPayment
from dairy_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


def _normalize_paging(page: int, limit: int) -> tuple[int, int]:
    page = max(int(page), 1)
    limit = min(max(int(limit), 1), MAX_PAGE_SIZE)
    return page, limit


class SettlementSelector(BaseSelector):
    """Queries over FarmerPayment and MemberPayment."""

    def get_farmer_payment(self, owner_id: UUID, payment_id: UUID) -> SettlementInfo | None:
        row = self.session.execute(
            select(FarmerPayment).where(
                FarmerPayment.id == payment_id,
                FarmerPayment.owner_id == owner_id,
            )
        ).scalar_one_or_none()
        return SettlementInfo.from_farmer_payment(row) if row else None

    def get_member_payment(self, owner_id: UUID, payment_id: UUID) -> SettlementInfo | None:
        row = self.session.execute(
            select(MemberPayment).where(
                MemberPayment.id == payment_id,
                MemberPayment.owner_id == owner_id,
            )
        ).scalar_one_or_none()
        return SettlementInfo.from_member_payment(row) if row else None

    def list_farmer_payments(
        self,
        owner_id: UUID,
        farmer_id: UUID | None = None,
        date_range: DateRange | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Page:
        """Farmer payments, newest first."""
        conditions = [FarmerPayment.owner_id == owner_id]
        if farmer_id is not None:
            conditions.append(FarmerPayment.farmer_id == farmer_id)
        conditions.extend(self._date_conditions(FarmerPayment, date_range))
        return self._page(FarmerPayment, conditions, page, limit, SettlementInfo.from_farmer_payment)

    def list_member_payments(
        self,
        owner_id: UUID,
        member_id: UUID | None = None,
        date_range: DateRange | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Page:
        """Member payments, newest first."""
        conditions = [MemberPayment.owner_id == owner_id]
        if member_id is not None:
            conditions.append(MemberPayment.member_id == member_id)
        conditions.extend(self._date_conditions(MemberPayment, date_range))
        return self._page(MemberPayment, conditions, page, limit, SettlementInfo.from_member_payment)

    def farmer_settled_periods(
        self,
        owner_id: UUID,
        farmer_id: UUID,
        exclude_payment_id: UUID | None = None,
    ) -> list[tuple]:
        """``(period_start, period_end)`` of every bounded farmer settlement."""
        stmt = select(FarmerPayment.period_start, FarmerPayment.period_end).where(
            FarmerPayment.owner_id == owner_id,
            FarmerPayment.farmer_id == farmer_id,
            FarmerPayment.period_start.is_not(None),
            FarmerPayment.period_end.is_not(None),
        )
        if exclude_payment_id is not None:
            stmt = stmt.where(FarmerPayment.id != exclude_payment_id)
        return [(start, end) for start, end in self.session.execute(stmt).all()]

    def member_settled_periods(
        self,
        owner_id: UUID,
        member_id: UUID,
        exclude_payment_id: UUID | None = None,
    ) -> list[tuple]:
        """Member counterpart of ``farmer_settled_periods``."""
        stmt = select(MemberPayment.period_start, MemberPayment.period_end).where(
            MemberPayment.owner_id == owner_id,
            MemberPayment.member_id == member_id,
            MemberPayment.period_start.is_not(None),
            MemberPayment.period_end.is_not(None),
        )
        if exclude_payment_id is not None:
            stmt = stmt.where(MemberPayment.id != exclude_payment_id)
        return [(start, end) for start, end in self.session.execute(stmt).all()]

    @staticmethod
    def _date_conditions(model, date_range: DateRange | None) -> list:
        conditions = []
        if date_range is not None:
            if date_range.start is not None:
                conditions.append(model.date >= date_range.start)
            if date_range.end is not None:
                conditions.append(model.date <= date_range.end)
        return conditions

    def _page(self, model, conditions, page: int, limit: int, to_dto) -> Page:
        page, limit = _normalize_paging(page, limit)
        total = self.session.execute(
            select(func.count()).select_from(model).where(*conditions)
        ).scalar_one()
        rows = (
            self.session.execute(
                select(model)
                .where(*conditions)
                .order_by(model.date.desc(), model.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return Page(items=tuple(to_dto(row) for row in rows), total=total, page=page, limit=limit)
