"""Tests for the structured logging system (sitemap_kernel/logging_config.py)."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from sitemap_kernel.exceptions import BlobNotFoundError
from sitemap_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        (record,) = _parse_all_logs(stream)
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "sitemap_kernel.test"
        assert "timestamp" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("batch_submitted", extra={"file_count": 3})

        (record,) = _parse_all_logs(stream)
        assert record["file_count"] == 3

    def test_uuid_serialized_as_string(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        batch_id = uuid4()
        get_logger("test").info("x", extra={"ref": batch_id})

        (record,) = _parse_all_logs(stream)
        assert record["ref"] == str(batch_id)

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise BlobNotFoundError("b/records/t.json")
        except BlobNotFoundError:
            get_logger("test").warning("load_failed", exc_info=True)

        (record,) = _parse_all_logs(stream)
        assert record["exc_type"] == "BlobNotFoundError"
        assert record["exc_code"] == "BLOB_NOT_FOUND"
        assert record["exc_category"] == "storage"
        assert record["exc_key"] == "b/records/t.json"
        assert "traceback" in record


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_context_fields_in_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(batch_id="b-1", task_id="t-1")
        get_logger("test").info("task_dispatched")

        (record,) = _parse_all_logs(stream)
        assert record["batch_id"] == "b-1"
        assert record["task_id"] == "t-1"

    def test_bind_restores_previous_values(self):
        LogContext.set(batch_id="outer")
        with LogContext.bind(batch_id="inner", record_set_id="b/t"):
            assert LogContext.get_all() == {"batch_id": "inner", "record_set_id": "b/t"}
        assert LogContext.get_all() == {"batch_id": "outer"}

    def test_none_values_are_not_bound(self):
        with LogContext.bind(batch_id=None, task_id="t"):
            assert LogContext.get_all() == {"task_id": "t"}

    def test_clear(self):
        LogContext.set(correlation_id="c", batch_id="b")
        LogContext.clear()
        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        assert len(logging.getLogger("sitemap_kernel").handlers) == 1

    def test_level_by_name(self):
        handler, stream = _make_handler()
        configure_logging(level="warning", handler=handler)
        log = get_logger("test")
        log.info("hidden")
        log.warning("shown")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["shown"]

    def test_plain_text_output(self):
        stream = StringIO()
        configure_logging(stream=stream, json_output=False)
        get_logger("test").info("plain_event")
        assert "plain_event" in stream.getvalue()
        assert not stream.getvalue().startswith("{")
