"""
Tests for prosync.exceptions and prosync.logging_config.
"""

import json
import logging

import pytest

from prosync.exceptions import (
    AnthropicAPIError,
    APIConnectionError,
    APITimeoutError,
    AuthenticationRequiredError,
    DatabaseError,
    DataStoreError,
    FeatureDisabledError,
    MissingAPIKeyError,
    ProSyncError,
    RecordNotFoundError,
    ValidationError,
    exception_to_http_status,
    handle_exception,
)
from prosync.logging_config import (
    LogContext,
    PerformanceTracker,
    StructuredFormatter,
    log_error,
    log_event,
    safe_extra,
)


class TestExceptions:
    @pytest.mark.parametrize(
        "exc, status",
        [
            (ValidationError("is required", field="title"), 400),
            (AuthenticationRequiredError(), 401),
            (RecordNotFoundError("Task", "t-1"), 404),
            (FeatureDisabledError("AI assistant"), 404),
            (APITimeoutError("anthropic", timeout_seconds=30), 504),
            (APIConnectionError("anthropic"), 503),
            (AnthropicAPIError("boom", status_code=500), 502),
            (MissingAPIKeyError("anthropic", env_var="ANTHROPIC_API_KEY"), 503),
            (DatabaseError(operation="insert", table="tasks"), 503),
            (DataStoreError("Unknown table", table="nope"), 500),
            (ProSyncError("generic"), 500),
        ],
    )
    def test_status_mapping(self, exc, status):
        assert exception_to_http_status(exc) == status

    def test_validation_message_names_field(self):
        exc = ValidationError("is required", field="title")
        assert exc.field == "title"
        assert exc.to_dict()["message"] == "title: is required"
        assert exc.to_dict()["error"] == "validation_error"

    def test_not_found_detail(self):
        body = RecordNotFoundError("Task", "t-1").to_dict()
        assert body["error"] == "not_found"
        assert body["detail"] == "Task with ID 't-1' not found"

    def test_handle_exception_hides_internals(self):
        body = handle_exception(KeyError("secret"), request_id="req-9")
        assert body["error"] == "internal_error"
        assert "secret" not in json.dumps(body)
        assert body["request_id"] == "req-9"

    def test_handle_exception_keeps_prosync_errors(self):
        body = handle_exception(RecordNotFoundError("Task"), request_id="req-1")
        assert body["error"] == "not_found"
        assert body["request_id"] == "req-1"


class TestLogging:
    def _record(self, **extra):
        record = logging.LogRecord("prosync.test", logging.INFO, __file__, 10, "task_created", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_structured_formatter_includes_context_and_extra(self):
        LogContext.clear()
        LogContext.set(request_id="req-42", user_id="alice")
        try:
            line = StructuredFormatter(service_name="prosync-test").format(self._record(task_id="t-1"))
        finally:
            LogContext.clear()
        entry = json.loads(line)
        assert entry["message"] == "task_created"
        assert entry["service"] == "prosync-test"
        assert entry["request_id"] == "req-42"
        assert entry["user_id"] == "alice"
        assert entry["task_id"] == "t-1"

    def test_unknown_context_field(self):
        with pytest.raises(KeyError):
            LogContext.set(password="nope")

    def test_performance_tracker_logs_duration(self, caplog):
        with caplog.at_level(logging.INFO, logger="prosync.performance"):
            with PerformanceTracker("capacity_report", user_id="alice"):
                pass
        record = next(r for r in caplog.records if r.getMessage() == "capacity_report_completed")
        assert record.user_id == "alice"
        assert record.duration_ms >= 0

    def test_performance_tracker_logs_failures(self, caplog):
        with caplog.at_level(logging.INFO, logger="prosync.performance"):
            with pytest.raises(RuntimeError):
                with PerformanceTracker("ai_chat"):
                    raise RuntimeError("upstream")
        assert any(r.getMessage() == "ai_chat_failed" for r in caplog.records)

    def test_safe_extra_prefixes_reserved_keys(self):
        assert safe_extra({"module": "task", "message": "hi", "kind": "assigned"}) == {
            "extra_module": "task",
            "extra_message": "hi",
            "kind": "assigned",
        }

    def test_log_error_accepts_reserved_keys(self, caplog):
        with caplog.at_level(logging.ERROR, logger="prosync.error"):
            log_error("notification_failed", ValueError("bad template"), module="task", filename="x.py")
        record = next(r for r in caplog.records if r.getMessage() == "notification_failed")
        assert record.extra_module == "task"
        assert record.extra_filename == "x.py"
        assert record.exc_info[0] is ValueError

    def test_log_event_level(self, caplog):
        with caplog.at_level(logging.INFO, logger="prosync.event"):
            log_event("budget_threshold_crossed", level="WARNING", project_id="p-1", name="Apollo")
            log_event("ai_chat_completed", model="claude")
        by_message = {r.getMessage(): r for r in caplog.records}
        assert by_message["budget_threshold_crossed"].levelno == logging.WARNING
        assert by_message["budget_threshold_crossed"].extra_name == "Apollo"
        assert by_message["ai_chat_completed"].levelno == logging.INFO
