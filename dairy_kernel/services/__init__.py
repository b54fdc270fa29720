"""Write-path services.  Each flushes within the caller's transaction."""

from dairy_kernel.services.advance_service import AdvanceService
from dairy_kernel.services.base import BaseService
from dairy_kernel.services.counterparty_service import CounterpartyService
from dairy_kernel.services.line_item_service import LineItemService
from dairy_kernel.services.locks import CounterpartyLockRegistry, default_lock_registry
from dairy_kernel.services.notifier import (
    LoggingNotifier,
    NotificationDispatcher,
    SettlementNotifier,
)
from dairy_kernel.services.settlement_service import SettlementService
from dairy_kernel.services.unit_of_work import SettlementUnitOfWork

__all__ = [
    "AdvanceService",
    "BaseService",
    "CounterpartyService",
    "CounterpartyLockRegistry",
    "LineItemService",
    "LoggingNotifier",
    "NotificationDispatcher",
    "SettlementNotifier",
    "SettlementService",
    "SettlementUnitOfWork",
    "default_lock_registry",
]
