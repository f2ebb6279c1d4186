"""
Pytest fixtures for the sitemap pipeline test suite.

Provides:
- Structured logging setup and a log capture fixture
- A deterministic clock and an in-memory blob store
- An in-memory SQLite session factory for the SQL blob store
- A BatchConfiguration builder
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO

import pytest

from sitemap_config.schema import BatchConfiguration
from sitemap_kernel.db.engine import create_tables, engine_for_url, session_factory_for
from sitemap_kernel.domain.clock import DeterministicClock
from sitemap_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from sitemap_kernel.services.blob_store import InMemoryBlobStore

FIXED_NOW = datetime(2026, 2, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture sitemap_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, scheduler):
            scheduler.submit(...)
            logs = captured_logs()
            assert any(r["message"] == "batch_submitted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("sitemap_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        handler.flush()
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock and storage
# =============================================================================


@pytest.fixture
def clock():
    """Provide a deterministic clock fixed at 2026-02-01 12:00 UTC."""
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def sql_session_factory():
    """In-memory SQLite with the blob table, shared across threads."""
    engine = engine_for_url("sqlite:///:memory:")
    create_tables(engine)
    yield session_factory_for(engine)
    engine.dispose()


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def make_config():
    """Factory for BatchConfiguration with test-friendly defaults."""

    def _make(**overrides) -> BatchConfiguration:
        values = {
            "column_mapping": {"link": "url"},
            "url_template": "https://shop.example.com/{link}",
            "retry_delay_ms": 0,
        }
        values.update(overrides)
        return BatchConfiguration(**values)

    return _make
