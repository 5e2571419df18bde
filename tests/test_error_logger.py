"""
Tests for the server-side error logger façade.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from db_pipeline.error_log_store import ErrorStoreError
from models import ErrorLevel, ErrorLog, ErrorService
from services.error_logger import (
    ErrorLogger,
    ReportedError,
    determine_error_level,
    generate_request_id,
)
from services.fingerprint import first_stack_line, fingerprint


def _raise(exc):
    try:
        raise exc
    except Exception as e:
        return e


class TestBuildRecord:
    """Tests for record normalization."""

    def test_defaults_context(self, error_logger):
        record = error_logger.build_record("warn", "slow", None, None)

        assert record.context.url == "unknown"
        assert record.context.method == "unknown"
        assert record.context.request_id.startswith("req_")
        assert record.service == ErrorService.WORKER
        assert record.stack is None
        assert record.error_code is None

    def test_keeps_supplied_request_id(self, error_logger):
        record = error_logger.build_record("error", "x", None, {"request_id": "abc-123"})
        assert record.context.request_id == "abc-123"

    def test_extracts_python_exception(self, error_logger):
        exc = _raise(KeyError("sku"))
        record = error_logger.build_record("error", "lookup failed", exc, {"url": "/p"})

        assert record.error_code == "KeyError"
        assert "Traceback (most recent call last)" in record.stack
        assert record.fingerprint == fingerprint(
            "lookup failed", "KeyError", "/p", first_stack_line(record.stack)
        )

    def test_reported_error_uses_client_stack(self, error_logger):
        stack = "TypeError: x\n    at f (app.js:1:1)"
        record = error_logger.build_record("error", "x", ReportedError("x", stack=stack), {"url": "/p"})

        assert record.stack == stack
        assert record.error_code == "Error"
        assert record.fingerprint == fingerprint("x", "Error", "/p", "at f (app.js:1:1)")

    def test_fingerprint_uses_raw_url(self, error_logger):
        record = error_logger.build_record("error", "x", None, {})
        assert record.fingerprint == fingerprint("x", None, "", "")

    def test_timestamp_is_millisecond_bucket(self, error_logger):
        record = error_logger.build_record("error", "x")
        assert record.timestamp.tzinfo is not None
        assert record.timestamp.microsecond % 1000 == 0

    def test_rejects_unknown_level(self, error_logger):
        with pytest.raises(ValueError):
            error_logger.build_record("bogus", "x")


class TestLogError:
    """Tests for the never-fails logging path."""

    def test_persists_record(self, error_logger, session_factory):
        error_logger.log_error(
            "critical", "db down", _raise(RuntimeError("db down")),
            {"url": "/api", "method": "GET", "user_id": "u1"}, "data-store",
        )

        with session_factory() as session:
            row = session.execute(select(ErrorLog)).scalar_one()
        assert row.level == "critical"
        assert row.service == "data-store"
        assert row.method == "GET"
        assert row.user_id == "u1"
        assert row.error_code == "RuntimeError"

    def test_store_failure_is_swallowed(self, log_messages):
        store = MagicMock()
        store.upsert.side_effect = ErrorStoreError("disk full")
        ErrorLogger(store).log_error("error", "boom", None, {"url": "/x"})

        assert any("error logging failed" in m for m in log_messages)
        assert any("original error" in m for m in log_messages)

    def test_invalid_level_is_swallowed(self, error_logger, log_messages):
        error_logger.log_error("bogus", "boom")
        assert any("error logging failed" in m for m in log_messages)


class TestStats:
    """Tests for statistics, thresholds and cleanup."""

    def test_error_rate(self, error_logger):
        for msg in ("a", "b", "c"):
            error_logger.log_error("error", msg, None, {"url": "/x"})
        error_logger.log_error("critical", "d", None, {"url": "/x"})
        error_logger.log_error("info", "e", None, {"url": "/x"})

        stats = error_logger.get_error_stats(60)
        assert stats.total_errors == 5
        assert stats.error_rate == round(5 / 60, 2)
        assert stats.critical_count == 1
        assert stats.error_count == 3
        assert stats.warn_count == 0
        assert len(stats.recent_errors) == 5

    def test_empty_window(self, error_logger):
        stats = error_logger.get_error_stats(10)
        assert stats.total_errors == 0
        assert stats.error_rate == 0.0
        assert stats.recent_errors == []

    def test_threshold_is_absolute_per_minute(self, error_logger):
        for msg in ("a", "b", "c"):
            error_logger.log_error("error", msg, None, {"url": "/x"})

        assert error_logger.check_error_rate_threshold(1.0, 1) is True
        assert error_logger.check_error_rate_threshold(3.0, 1) is False
        assert error_logger.check_error_rate_threshold(1.0, 60) is False

    def test_stats_failure_propagates(self):
        store = MagicMock()
        store.query_window.side_effect = ErrorStoreError("gone")
        with pytest.raises(ErrorStoreError):
            ErrorLogger(store).get_error_stats(5)

    def test_cleanup_uses_retention(self):
        store = MagicMock()
        store.purge_older_than.return_value = 7
        before = datetime.now(timezone.utc)

        assert ErrorLogger(store, retention_days=10).cleanup_old_logs() == 7

        cutoff = store.purge_older_than.call_args.args[0]
        assert before - timedelta(days=10, seconds=5) < cutoff <= before - timedelta(days=10) + timedelta(seconds=5)


class TestHelpers:
    def test_generate_request_id(self):
        rid = generate_request_id()
        prefix, millis, suffix = rid.split("_")
        assert prefix == "req"
        assert millis.isdigit()
        assert len(suffix) == 9

    @pytest.mark.parametrize(
        "exc, level",
        [
            (type("DatabaseError", (Exception,), {})(), ErrorLevel.CRITICAL),
            (type("AuthFailure", (Exception,), {})(), ErrorLevel.CRITICAL),
            (TimeoutError(), ErrorLevel.WARN),
            (type("ValidationError", (Exception,), {})(), ErrorLevel.WARN),
            (ValueError(), ErrorLevel.ERROR),
            ("not an exception", ErrorLevel.ERROR),
        ],
    )
    def test_determine_error_level(self, exc, level):
        assert determine_error_level(exc) == level

    def test_level_severity_order(self):
        ordered = sorted(ErrorLevel, key=lambda lv: lv.severity, reverse=True)
        assert ordered == [ErrorLevel.CRITICAL, ErrorLevel.ERROR, ErrorLevel.WARN, ErrorLevel.INFO]
