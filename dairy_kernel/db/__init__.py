"""Database layer - engine, base classes, types, and flush listeners."""

from dairy_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from dairy_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from dairy_kernel.db.types import Money, Quantity, Rate, round_money, to_decimal

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Quantity",
    "Rate",
    "round_money",
    "to_decimal",
]
