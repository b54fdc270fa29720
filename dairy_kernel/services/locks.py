"""
CounterpartyLockRegistry -- per-counterparty serialization of settlements.

Responsibility:
    Hands out one re-entrant lock per ``(owner, flow, counterparty)`` key so
    that two settlements for the same farmer or member never interleave
    their read-compute-commit sequences inside this process.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - The same key always maps to the same lock object for the lifetime of
      the registry.
    - Keys for different counterparties never share a lock, so unrelated
      settlements proceed in parallel.

Memory:
    Locks are never evicted.  The registry grows to one small RLock per
    (owner, flow, counterparty) ever settled in this process, so its size is
    bounded by the number of farmers and members, not by request volume.
    Eviction would break the same-key-same-lock guarantee for a waiter that
    already fetched the old lock.

Non-goals:
    - Cross-process exclusion.  Multi-process deployments rely on
      ``SELECT ... FOR UPDATE`` and the counterparty ``version`` column.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from dairy_kernel.logging_config import get_logger

logger = get_logger("services.locks")

LockKey = tuple[str, str, str]


class CounterpartyLockRegistry:
    """Registry of re-entrant locks keyed by owner, flow and counterparty."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[LockKey, threading.RLock] = {}

    @staticmethod
    def key(owner_id: UUID, flow: str, counterparty_id: UUID) -> LockKey:
        return (str(owner_id), str(flow), str(counterparty_id))

    def lock_for(self, owner_id: UUID, flow: str, counterparty_id: UUID) -> threading.RLock:
        key = self.key(owner_id, flow, counterparty_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, owner_id: UUID, flow: str, counterparty_id: UUID) -> Iterator[None]:
        """Hold the counterparty's lock for the duration of the block."""
        lock = self.lock_for(owner_id, flow, counterparty_id)
        lock.acquire()
        logger.debug(
            "counterparty_lock_acquired",
            extra={"lock_flow": str(flow), "lock_counterparty": str(counterparty_id)},
        )
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Process-wide default used when a service is built without an explicit registry
default_lock_registry = CounterpartyLockRegistry()
