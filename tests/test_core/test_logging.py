import asyncio
import json
import logging

import pytest

from branch_logistics.core.errors import InternalError, InvalidStateTransition
from branch_logistics.core.logging import (
    JsonFormatter,
    _redact,
    bind_actor,
    branch_id_var,
    request_id_var,
    run_id_var,
    set_request_id,
    set_run_id,
    user_id_var,
)
from branch_logistics.core.observability import log_step
from branch_logistics.models.enums import TransferStatus


def test_log_step_decorator_async():
    """Test the @log_step decorator with async functions."""

    @log_step("test.async_function")
    async def test_async_function(param1: str, param2: int):
        return f"result: {param1}-{param2}"

    result = asyncio.run(test_async_function("test", 42))
    assert result == "result: test-42"


def test_log_step_decorator_sync():
    """Test the @log_step decorator with sync functions."""

    @log_step("test.sync_function")
    def test_sync_function(param1: str, param2: int):
        return f"result: {param1}-{param2}"

    result = test_sync_function("test", 42)
    assert result == "result: test-42"


def test_log_step_logs_unexpected_errors_with_traceback(caplog):
    caplog.set_level(logging.DEBUG, logger="steps")

    @log_step("test.failing_function")
    def test_failing_function():
        raise ValueError("Test error")

    with pytest.raises(ValueError, match="Test error"):
        test_failing_function()

    record = next(r for r in caplog.records if r.name == "steps" and r.levelno == logging.ERROR)
    assert record.getMessage() == "ERROR test.failing_function: Test error"
    assert record.exc_info is not None


def test_log_step_logs_business_refusals_at_info(caplog):
    caplog.set_level(logging.DEBUG, logger="steps")

    @log_step("transfers.cancel")
    async def cancel():
        raise InvalidStateTransition(TransferStatus.RECEIVED, TransferStatus.CANCELLED)

    with pytest.raises(InvalidStateTransition):
        asyncio.run(cancel())

    records = [r for r in caplog.records if r.name == "steps" and r.levelno >= logging.INFO]
    assert [r.levelno for r in records] == [logging.INFO]
    assert records[0].getMessage() == "REFUSED transfers.cancel: INVALID_STATE"
    assert records[0].extra["error"] == {
        "code": "INVALID_STATE",
        "message": "Cannot move transfer order from RECEIVED to CANCELLED",
        "current": "RECEIVED",
        "requested": "CANCELLED",
    }


def test_log_step_logs_internal_errors_without_second_traceback(caplog):
    caplog.set_level(logging.DEBUG, logger="steps")

    @log_step("transfers.create")
    async def create():
        raise InternalError("create")

    with pytest.raises(InternalError):
        asyncio.run(create())

    record = next(r for r in caplog.records if r.name == "steps" and r.levelno == logging.ERROR)
    assert record.getMessage() == "FAILED transfers.create: INTERNAL_ERROR"
    assert record.exc_info is None


def test_context_vars_logging():
    """Test that context variables are properly set and retrieved."""
    assert set_run_id("test-run-123") == "test-run-123"
    assert run_id_var.get() == "test-run-123"

    assert set_request_id("test-request-456") == "test-request-456"
    assert request_id_var.get() == "test-request-456"

    bind_actor("user-7", None)
    assert user_id_var.get() == "user-7"
    assert branch_id_var.get() is None


def test_json_formatter():
    """Test JSON log formatter output."""
    formatter = JsonFormatter()

    set_run_id("test-run-123")
    bind_actor("user-7", "branch-1")
    record = logging.LogRecord(
        name="test_logger",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg="Test message",
        args=(),
        exc_info=None
    )
    record.extra = {"test_field": "test_value", "password": "secret", "serials": {"SN-001"}}

    parsed = json.loads(formatter.format(record))

    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "test_logger"
    assert parsed["message"] == "Test message"
    assert parsed["run_id"] == "test-run-123"
    assert parsed["user_id"] == "user-7"
    assert parsed["branch_id"] == "branch-1"
    assert parsed["test_field"] == "test_value"
    assert parsed["password"] == "***"
    assert parsed["serials"] == ["SN-001"]


def test_redaction_functionality():
    """Test that sensitive data is properly redacted."""
    test_data = {
        "username": "testuser",
        "password": "secret123",
        "Authorization": "Bearer token123",
        "apikey": "key123",
        "normal_field": "normal_value",
        "nested": {
            "password": "nested_secret",
            "data": "normal_data"
        }
    }

    redacted = _redact(test_data)

    assert redacted["username"] == "testuser"
    assert redacted["password"] == "***"
    assert redacted["Authorization"] == "***"
    assert redacted["apikey"] == "***"
    assert redacted["normal_field"] == "normal_value"
    assert redacted["nested"]["password"] == "***"
    assert redacted["nested"]["data"] == "normal_data"
