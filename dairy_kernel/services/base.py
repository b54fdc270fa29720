"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-path service.  Concrete services receive a SQLAlchemy
    ``Session`` and use ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (SettlementUnitOfWork, session_scope, or the test harness) owns
      commit/rollback.

Failure modes:
    - If a subclass calls ``session.commit()`` the settlement is no longer
      atomic: the record could commit while the balance write fails.
"""

from abc import ABC

from sqlalchemy.orm import Session

from dairy_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and an optional
        ``Clock``; persists with ``session.flush()`` only.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
