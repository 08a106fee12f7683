"""
Pytest configuration and fixtures for report-digest tests

This module provides shared fixtures for unit and integration tests:
configurations, in-memory storage backends with failure injection, and a
PostgreSQL container for the live-collection backend.
"""
import itertools
import os
from typing import Generator

import pytest
from testcontainers.postgres import PostgresContainer

from report_digest.core.config import DEFAULT_DEPARTMENTS, DigestConfigBuilder
from report_digest.core.errors import PersistenceError
from report_digest.core.models import ReportRecord
from report_digest.store.base import CollectionBackend, SnapshotBackend
from report_digest.store.connection import DatabaseConnectionPool

TEST_PASSPHRASE = "correct horse battery staple"


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# RECORD FIXTURES
# =======================

@pytest.fixture
def make_record():
    """
    Factory for ReportRecords with sensible defaults

    Returns:
        Callable(employee_name, date, department, **fields) -> ReportRecord
    """
    def _make(
        employee_name: str = "王强",
        date: str = "2024-05-01",
        department: str = "蔬果",
        content: str = "1. 整理货架",
        **fields,
    ) -> ReportRecord:
        return ReportRecord(
            employee_name=employee_name,
            date=date,
            department=department,
            content=content,
            **fields,
        )

    return _make


@pytest.fixture
def passphrase() -> str:
    """Operator passphrase configured in digest_config"""
    return TEST_PASSPHRASE


@pytest.fixture
def departments() -> list[str]:
    return list(DEFAULT_DEPARTMENTS)


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture
def digest_config(tmp_path):
    """Snapshot-mode configuration writing to a temporary JSON file"""
    return (
        DigestConfigBuilder()
        .with_keywords("损耗", "报修")
        .with_snapshot_file(tmp_path / "reports.json")
        .with_passphrase(TEST_PASSPHRASE)
        .build()
    )


@pytest.fixture(scope="session")
def test_env_vars():
    """
    Set test environment variables

    This fixture loads config/test.env when present
    """
    from dotenv import load_dotenv

    env_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)),
        "config",
        "test.env"
    )

    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)


# =======================
# IN-MEMORY BACKENDS
# =======================

class InMemorySnapshotBackend(SnapshotBackend):
    """Snapshot backend holding the blob in memory, with switchable failures"""

    name = "memory"

    def __init__(self, records: list[ReportRecord] | None = None):
        self.stored: list[ReportRecord] = list(records or [])
        self.fail_reads = False
        self.fail_writes = False
        self.writes = 0
        self.closed = False

    def read(self) -> list[ReportRecord]:
        if self.fail_reads:
            raise PersistenceError("simulated read failure", backend=self.name)
        return list(self.stored)

    def write(self, records: list[ReportRecord]) -> None:
        if self.fail_writes:
            raise PersistenceError("simulated write failure", backend=self.name)
        self.writes += 1
        self.stored = list(records)

    def close(self) -> None:
        self.closed = True


class InMemoryCollectionBackend(CollectionBackend):
    """
    Collection backend pushing synchronously to subscribers after each change

    fail_create_after: number of successful creates before creates start failing
    """

    name = "memory-collection"

    def __init__(self):
        self.rows: list[ReportRecord] = []
        self.subscribers = []
        self.fail_create_after: int | None = None
        self.fail_deletes = False
        self.creates = 0
        self.deleted_ids: list[str] = []
        self._ids = itertools.count(1)

    def create(self, record: ReportRecord) -> ReportRecord:
        if self.fail_create_after is not None and self.creates >= self.fail_create_after:
            raise PersistenceError("simulated create failure", backend=self.name)
        self.creates += 1
        stored = record.model_copy(update={"id": f"row-{next(self._ids)}"})
        self.rows.insert(0, stored)
        self._notify()
        return stored

    def delete(self, record_id: str) -> None:
        if self.fail_deletes:
            raise PersistenceError("simulated delete failure", backend=self.name)
        self.deleted_ids.append(record_id)
        self.rows = [row for row in self.rows if row.id != record_id]
        self._notify()

    def list_records(self) -> list[ReportRecord]:
        return list(self.rows)

    def subscribe(self, on_state, on_error):
        subscriber = (on_state, on_error)
        self.subscribers.append(subscriber)
        on_state(list(self.rows))

        def unsubscribe():
            self.subscribers.remove(subscriber)

        return unsubscribe

    def push_external(self, records: list[ReportRecord]) -> None:
        """Simulate a change made by another client"""
        self.rows = list(records)
        self._notify()

    def fail_push(self) -> None:
        for _, on_error in list(self.subscribers):
            on_error(PersistenceError("simulated push failure", backend=self.name))

    def _notify(self) -> None:
        for on_state, _ in list(self.subscribers):
            on_state(list(self.rows))


@pytest.fixture
def snapshot_backend() -> InMemorySnapshotBackend:
    return InMemorySnapshotBackend()


@pytest.fixture
def collection_backend() -> InMemoryCollectionBackend:
    return InMemoryCollectionBackend()


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_digest",
        password="test_password",
        dbname="test_reports"
    ) as postgres:
        # Wait for container to be ready
        postgres.get_connection_url()
        yield postgres


@pytest.fixture
def pg_pool(postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Open connection pool against the test container

    Yields:
        DatabaseConnectionPool (closed after the test)
    """
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_reports",
        user="test_digest",
        password="test_password",
    )
    pool.open()
    yield pool
    pool.close()
