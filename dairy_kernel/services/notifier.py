"""
Notifier boundary -- post-commit settlement notifications.

Responsibility:
    Defines the ``SettlementNotifier`` port and dispatches a
    ``SettlementCompletedEvent`` to every registered notifier once a
    settlement has committed.

Architecture position:
    Kernel > Services -- imperative shell.  Concrete delivery (push, SMS,
    referral crediting) lives outside the kernel and plugs in through the
    protocol.

Invariants enforced:
    - Dispatch happens only after the unit of work committed.
    - A failing notifier is logged at WARNING with ``exc_info`` and never
      propagates: the settlement stays committed and the remaining
      notifiers still run.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from dairy_kernel.domain.dtos import SettlementCompletedEvent
from dairy_kernel.logging_config import get_logger

logger = get_logger("services.notifier")

EVENT_SETTLEMENT_COMPLETED = "settlement_completed"


@runtime_checkable
class SettlementNotifier(Protocol):
    """Receives settlement-completed events; delivery is fire-and-forget."""

    def settlement_completed(self, event: SettlementCompletedEvent) -> None: ...


class LoggingNotifier:
    """Default notifier: records the event in the structured log."""

    def settlement_completed(self, event: SettlementCompletedEvent) -> None:
        logger.info(
            EVENT_SETTLEMENT_COMPLETED,
            extra={
                "event_flow": event.flow.value,
                "event_counterparty_id": str(event.counterparty_id),
                "event_settlement_id": str(event.settlement_id),
                "amount": str(event.amount),
                "period_end": event.period_end.isoformat() if event.period_end else None,
                "closing_balance": str(event.closing_balance),
            },
        )


class NotificationDispatcher:
    """Fans an event out to registered notifiers, isolating their failures."""

    def __init__(self, notifiers: Iterable[SettlementNotifier] | None = None):
        self._notifiers: list[SettlementNotifier] = (
            list(notifiers) if notifiers is not None else [LoggingNotifier()]
        )

    def register(self, notifier: SettlementNotifier) -> None:
        if not isinstance(notifier, SettlementNotifier):
            raise TypeError(f"{type(notifier).__name__} does not implement settlement_completed")
        self._notifiers.append(notifier)

    @property
    def notifiers(self) -> tuple[SettlementNotifier, ...]:
        return tuple(self._notifiers)

    def dispatch(self, event: SettlementCompletedEvent) -> int:
        """Deliver ``event``; returns how many notifiers failed."""
        failures = 0
        for notifier in self._notifiers:
            try:
                notifier.settlement_completed(event)
            except Exception:
                failures += 1
                logger.warning(
                    "notifier_failed",
                    exc_info=True,
                    extra={
                        "notifier": type(notifier).__name__,
                        "event_settlement_id": str(event.settlement_id),
                    },
                )
        return failures
