"""
Structured JSON logging for the dairy kernel.

Every record is one JSON object per line. Settlement code binds the owner,
flow, counterparty and (once known) settlement id into ``LogContext`` so
that every line emitted while a settlement runs, including lines from the
unit of work and counterparty service, can be joined back to it.

Level resolution for ``configure_logging``: an explicit ``level`` argument,
then the ``DAIRY_LEDGER_LOG_LEVEL`` environment variable, then INFO.
"""

__all__ = [
    "LOG_LEVEL_ENV_VAR",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import os
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

LOG_LEVEL_ENV_VAR = "DAIRY_LEDGER_LOG_LEVEL"

_LOGGER_PREFIX = "dairy_kernel"


# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = (
    "correlation_id",
    "owner_id",
    "flow",
    "counterparty_id",
    "settlement_id",
)

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"dairy_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


def _context_var(name: str) -> ContextVar[str | None]:
    try:
        return _context_vars[name]
    except KeyError:
        raise TypeError(
            f"Unknown log context field {name!r}; expected one of {', '.join(_CONTEXT_FIELDS)}"
        ) from None


def _as_context_value(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class LogContext:
    """
    Request-scoped log fields, safe across threads and asyncio tasks.

    Values are stored as strings; ``None`` never overwrites a field.
    """

    FIELDS = _CONTEXT_FIELDS

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set fields for the rest of the current context."""
        for name, value in fields.items():
            var = _context_var(name)
            if value is not None:
                var.set(_as_context_value(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Non-empty fields, in declaration order."""
        return {
            name: value
            for name, var in _context_vars.items()
            if (value := var.get()) is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _context_vars.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block, then restore them."""
        bound = [(_context_var(name), value) for name, value in fields.items()]
        tokens: list[tuple[ContextVar[str | None], Token]] = [
            (var, var.set(_as_context_value(value))) for var, value in bound if value is not None
        ]
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)

    @classmethod
    def settlement(
        cls,
        owner_id: UUID,
        flow: Any,
        counterparty_id: UUID,
        settlement_id: UUID | None = None,
    ):
        """Bind the fields identifying one settlement request."""
        return cls.bind(
            owner_id=owner_id,
            flow=flow,
            counterparty_id=counterparty_id,
            settlement_id=settlement_id,
        )


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    # Money and quantities keep their exact decimal text
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, UUID):
        return str(obj)
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # DairyLedgerError subclasses keep their structured attributes public
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Logger factory and initialization
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the dairy_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV_VAR, "INFO")
    if isinstance(level, int):
        return level
    try:
        return logging.getLevelNamesMapping()[level.strip().upper()]
    except KeyError:
        raise ValueError(f"Unknown log level: {level!r}") from None


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str | None = None,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Configure the dairy_kernel logger hierarchy (idempotent)."""
    global _configured
    resolved = _resolve_level(level)
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(resolved)
    root_logger.propagate = False

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Reset logging configuration. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
