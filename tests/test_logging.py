"""Tests for the structured logging system (dairy_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from dairy_kernel.domain.dtos import SettlementFlow
from dairy_kernel.exceptions import InvalidPeriodError
from dairy_kernel.logging_config import (
    LOG_LEVEL_ENV_VAR,
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Give each test a fresh configuration, then restore the suite's."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        get_logger("test").info("hello")

        record = _parse_all_logs(stream)[0]
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "dairy_kernel.test"
        assert "ts" in record

    def test_extra_fields_and_encodings(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        settlement_id = uuid4()

        get_logger("test").info(
            "settled",
            extra={
                "settlement_ref": settlement_id,
                "amount": Decimal("600.00"),
                "period_end": date(2024, 1, 31),
            },
        )

        record = _parse_all_logs(stream)[0]
        assert record["settlement_ref"] == str(settlement_id)
        assert record["amount"] == "600.00"
        assert record["period_end"] == "2024-01-31"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", flow="farmer")

        get_logger("test").info("with_context")

        record = _parse_all_logs(stream)[0]
        assert record["correlation_id"] == "abc-123"
        assert record["flow"] == "farmer"
        assert "owner_id" not in record

    def test_ledger_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        try:
            raise InvalidPeriodError(date(2024, 1, 31), date(2024, 1, 1))
        except InvalidPeriodError:
            get_logger("test").error("period_error", exc_info=True)

        record = _parse_all_logs(stream)[0]
        assert record["exc_type"] == "InvalidPeriodError"
        assert record["exc_code"] == "INVALID_PERIOD"
        assert record["exc_period_start"] == "2024-01-31"
        assert record["exc_period_end"] == "2024-01-01"
        assert "traceback" in record

    def test_level_filters_debug(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["first", "second"]


class TestConfigureLogging:
    def test_idempotent(self):
        first, first_stream = _make_handler()
        second, second_stream = _make_handler()

        configure_logging(handler=first)
        configure_logging(handler=second)
        get_logger("test").info("once")

        assert len(_parse_all_logs(first_stream)) == 1
        assert second_stream.getvalue() == ""
        assert logging.getLogger("dairy_kernel").propagate is False

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "warning")
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        get_logger("test").info("hidden")
        get_logger("test").warning("shown")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["shown"]

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            configure_logging(level="chatty")

    def test_reset_clears_handlers(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)

        reset_logging()

        assert logging.getLogger("dairy_kernel").handlers == []


class TestLogContext:
    def test_set_is_additive(self):
        LogContext.set(correlation_id="a")
        LogContext.set(owner_id="b")

        assert LogContext.get_all() == {"correlation_id": "a", "owner_id": "b"}

    def test_clear(self):
        LogContext.set(settlement_id="x")
        LogContext.clear()

        assert LogContext.get_all() == {}

    def test_bind_restores_previous_value(self):
        LogContext.set(counterparty_id="outer")

        with LogContext.bind(counterparty_id="inner", flow="member"):
            assert LogContext.get_all() == {"counterparty_id": "inner", "flow": "member"}

        assert LogContext.get_all() == {"counterparty_id": "outer"}

    def test_bind_stringifies_values(self):
        owner = uuid4()

        with LogContext.bind(owner_id=owner, flow=SettlementFlow.MEMBER):
            assert LogContext.get_all() == {"owner_id": str(owner), "flow": "member"}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            LogContext.set(entry_id="x")
        with pytest.raises(TypeError):
            with LogContext.bind(not_a_field="x"):
                pass

    def test_settlement_binding(self):
        owner, farmer, payment = uuid4(), uuid4(), uuid4()

        with LogContext.settlement(owner, SettlementFlow.FARMER, farmer, payment):
            assert LogContext.get_all() == {
                "owner_id": str(owner),
                "flow": "farmer",
                "counterparty_id": str(farmer),
                "settlement_id": str(payment),
            }

        assert LogContext.get_all() == {}
