"""
SettlementUnitOfWork -- the single commit/rollback boundary of a settlement.

Responsibility:
    Wraps one SQLAlchemy session transaction around the settlement record
    insert, the line-item flag update, the advance updates and the
    counterparty balance write.  Services only flush; this object commits.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - All-or-nothing: on any exception inside the block the session is
      rolled back, so no partial settlement is ever visible.
    - Store failures (``SQLAlchemyError``) are re-raised as
      ``PersistenceFailureError``; a lost optimistic-version race
      (``StaleDataError``) is re-raised as ``OptimisticLockError``.
      Domain errors propagate unchanged.

Usage:
    with SettlementUnitOfWork(session, "settle_farmer") as uow:
        ...            # services flush
    # committed here
"""

from __future__ import annotations

from types import TracebackType

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from dairy_kernel.exceptions import OptimisticLockError, PersistenceFailureError
from dairy_kernel.logging_config import get_logger

logger = get_logger("services.unit_of_work")


class SettlementUnitOfWork:
    """Context manager owning commit/rollback for one settlement operation."""

    def __init__(
        self,
        session: Session,
        operation: str,
        entity_type: str = "counterparty",
        entity_id: object = "",
    ):
        self.session = session
        self.operation = operation
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.committed = False

    def __enter__(self) -> SettlementUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc is not None:
            self.rollback()
            translated = self._translate(exc)
            if translated is not None:
                raise translated from exc
            return False

        try:
            self.commit()
        except SQLAlchemyError as commit_exc:
            self.rollback()
            raise self._translate(commit_exc) from commit_exc
        return False

    def commit(self) -> None:
        self.session.commit()
        self.committed = True
        logger.debug("unit_of_work_committed", extra={"operation": self.operation})

    def rollback(self) -> None:
        self.session.rollback()
        logger.debug("unit_of_work_rolled_back", extra={"operation": self.operation})

    def _translate(self, exc: BaseException) -> Exception | None:
        if isinstance(exc, StaleDataError):
            logger.warning(
                "optimistic_lock_conflict",
                extra={"operation": self.operation, "detail": str(exc)},
            )
            return OptimisticLockError(self.entity_type, self.entity_id)
        if isinstance(exc, SQLAlchemyError):
            logger.error(
                "persistence_failure",
                extra={"operation": self.operation, "detail": str(exc)},
            )
            return PersistenceFailureError(self.operation, str(exc))
        return None
