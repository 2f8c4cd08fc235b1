"""
Pytest fixtures for the cleanops test suite.

Provides:
- Structured log capture
- Deterministic clock and configuration
- Memory and SQLite-backed stores
- An OperationsEngine seeded with customers and personnel
- FlakyStore, a store wrapper that fails chosen writes
"""

import json
import logging
from dataclasses import replace
from datetime import date
from io import StringIO
from typing import Any

import pytest

from cleanops_config import SweepConfig, get_active_config
from cleanops_kernel.db.engine import create_tables, init_engine_from_url, reset_engine
from cleanops_kernel.domain.clock import DeterministicClock
from cleanops_kernel.domain.entities import Customer, Personnel
from cleanops_kernel.domain.identity import Caller
from cleanops_kernel.exceptions import StoreUnavailableError
from cleanops_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from cleanops_kernel.store.base import Store, StoreEntry
from cleanops_kernel.store.memory import MemoryStore
from cleanops_kernel.store.sql import SqlStore
from cleanops_services.operations import OperationsEngine

TODAY = date(2024, 1, 1)

ADMIN = Caller(id="u-admin", name="Admin", role="admin")
SECRETARY = Caller(id="u-sec", name="Secretary", role="secretary")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
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
    Capture cleanops logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            engine.create_work_order(...)
            logs = captured_logs()
            assert any(r["message"] == "work_order_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("cleanops")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock and configuration
# =============================================================================


@pytest.fixture
def clock():
    """Clock fixed at 2024-01-01 12:00 UTC."""
    return DeterministicClock()


@pytest.fixture
def config():
    """Default configuration with the list-triggered sweep switched off."""
    return replace(get_active_config(), sweep=SweepConfig(enabled=False))


@pytest.fixture
def categories(config):
    return config.categories


@pytest.fixture
def admin():
    return ADMIN


@pytest.fixture
def secretary():
    return SECRETARY


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def sql_store():
    """SqlStore on a private in-memory SQLite database, tiny scan pages."""
    init_engine_from_url("sqlite://")
    create_tables()
    yield SqlStore(page_size=3)
    reset_engine()


@pytest.fixture(params=["memory", "sql"])
def any_store(request):
    """Each store adapter in turn."""
    return request.getfixturevalue(f"{request.param}_store")


class FlakyStore(Store):
    """
    Delegating store whose writes fail for keys starting with ``fail_prefix``.

    ``fail_prefix`` may be changed (or set to None) mid-test.
    """

    def __init__(self, inner: Store, fail_prefix: str | None = None):
        self.inner = inner
        self.fail_prefix = fail_prefix
        self.failed_writes: list[str] = []

    def _check(self, operation: str, key: str) -> None:
        if self.fail_prefix is not None and key.startswith(self.fail_prefix):
            self.failed_writes.append(key)
            raise StoreUnavailableError(operation, key, "simulated outage", retryable=False)

    def get_entry(self, key: str) -> StoreEntry | None:
        return self.inner.get_entry(key)

    def set(self, key: str, value: dict[str, Any], expected_version: int | None = None) -> int:
        self._check("set", key)
        return self.inner.set(key, value, expected_version)

    def delete(self, key: str) -> bool:
        self._check("delete", key)
        return self.inner.delete(key)

    def scan_items(self, prefix: str) -> list[StoreEntry]:
        return self.inner.scan_items(prefix)

    def last_before(self, prefix: str, bound: str) -> StoreEntry | None:
        return self.inner.last_before(prefix, bound)


@pytest.fixture
def flaky_store(memory_store):
    return FlakyStore(memory_store)


# =============================================================================
# Engine
# =============================================================================


def seed_directory(engine: OperationsEngine) -> None:
    engine.directory.put_customer(
        Customer(id="c1", name="Acme Offices", address="12 Harbour St", phone="555-0101")
    )
    engine.directory.put_customer(
        Customer(id="c2", name="Blue Cafe", address="4 Market Sq", phone="555-0102")
    )
    engine.directory.put_personnel(Personnel(id="p1", name="Ayse", phone="555-0201"))
    engine.directory.put_personnel(Personnel(id="p2", name="Mehmet", phone="555-0202"))
    engine.directory.put_personnel(Personnel(id="p3", name="Zeynep", active=False))


def _build_engine(store, config, clock) -> OperationsEngine:
    engine = OperationsEngine(store, config, clock=clock)
    seed_directory(engine)
    return engine


@pytest.fixture
def engine(memory_store, config, clock):
    """OperationsEngine on a MemoryStore with seeded reference data."""
    return _build_engine(memory_store, config, clock)


@pytest.fixture
def sql_engine(sql_store, config, clock):
    """OperationsEngine on SQLite with seeded reference data."""
    return _build_engine(sql_store, config, clock)


@pytest.fixture
def flaky_engine(flaky_store, config, clock):
    """OperationsEngine whose store can be told to fail writes."""
    return _build_engine(flaky_store, config, clock)


@pytest.fixture
def make_order(engine, admin):
    """Create a work order on ``engine`` with sensible defaults."""

    def _make(**fields: Any):
        data = {
            "customer_id": "c1",
            "date": "2024-01-01",
            "description": "Office clean",
            "total_amount": "300",
        }
        data.update(fields)
        return engine.create_work_order(admin, data)

    return _make
