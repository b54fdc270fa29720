"""
Module: dairy_kernel.db.listeners
Responsibility: Session-level flush hooks that keep derived line-item
    columns in step with their inputs.
Architecture position: Kernel > DB.  Imports models lazily inside the
    listener to stay importable from db/engine.py.

Invariants enforced:
    - MilkCollection.amount == quantity * rate on every INSERT/UPDATE.
    - SellingEntry.amount == (morning_quantity + evening_quantity) * rate on
      every INSERT/UPDATE.
    Recomputing in before_flush means no code path (service, script, test
    fixture) can persist a stale amount, whichever attribute it changed.

Failure modes:
    - None expected; the hook only assigns attributes.
"""

from sqlalchemy import event
from sqlalchemy.orm import Session

from dairy_kernel.logging_config import get_logger

logger = get_logger("db.listeners")


def _derive_line_item_amounts(session: Session, flush_context, instances) -> None:
    """before_flush: recompute amount for every new or dirty line item."""
    from dairy_kernel.models.milk_collection import MilkCollection
    from dairy_kernel.models.selling_entry import SellingEntry

    for obj in list(session.new) + list(session.dirty):
        if isinstance(obj, (MilkCollection, SellingEntry)):
            derived = obj.derive_amount()
            if obj.amount is None or obj.amount != derived:
                obj.amount = derived


def register_amount_listeners() -> None:
    """Install the amount-derivation hook on every Session (idempotent)."""
    if not event.contains(Session, "before_flush", _derive_line_item_amounts):
        event.listen(Session, "before_flush", _derive_line_item_amounts)
        logger.debug("amount_listeners_registered")


def unregister_amount_listeners() -> None:
    """Remove the amount-derivation hook. Primarily for tests."""
    if event.contains(Session, "before_flush", _derive_line_item_amounts):
        event.remove(Session, "before_flush", _derive_line_item_amounts)
