"""
Integration tests for the PostgreSQL live-collection backend.

Tests create/delete/list and LISTEN/NOTIFY pushes using testcontainers.
"""

import threading
import uuid

import pytest

from report_digest.core.errors import AuthorizationError
from report_digest.store import PostgresCollectionBackend
from report_digest.sync import LiveCollectionCoordinator

DEPARTMENTS = ["蔬果", "水产", "后勤"]


@pytest.fixture
def backend(pg_pool):
    """Backend on a fresh table per test"""
    table = f"report_{uuid.uuid4().hex[:8]}"
    backend = PostgresCollectionBackend(pg_pool, table=table, poll_interval=0.2)
    backend.ensure_schema()
    return backend


class StateRecorder:
    """Collects pushes and lets a test wait for a matching one"""

    def __init__(self):
        self.states = []
        self.errors = []
        self._changed = threading.Condition()

    def on_state(self, records):
        with self._changed:
            self.states.append(records)
            self._changed.notify_all()

    def on_error(self, error):
        with self._changed:
            self.errors.append(error)
            self._changed.notify_all()

    def wait_for(self, predicate, timeout=10.0):
        with self._changed:
            return self._changed.wait_for(
                lambda: self.states and predicate(self.states[-1]), timeout=timeout
            )


@pytest.mark.integration
class TestPostgresCollectionBackend:
    """Tests for PostgresCollectionBackend"""

    def test_create_assigns_id(self, backend, make_record):
        stored = backend.create(make_record(content="1. 上架\n  2. 盘点"))

        assert stored.id
        uuid.UUID(stored.id)
        listed = backend.list_records()
        assert listed == [stored]
        assert listed[0].content == "1. 上架\n  2. 盘点"

    def test_list_newest_first(self, backend, make_record):
        first = backend.create(make_record(employee_name="张三"))
        second = backend.create(make_record(employee_name="王五"))

        assert [r.id for r in backend.list_records()] == [second.id, first.id]

    def test_keywords_round_trip(self, backend, make_record):
        backend.create(make_record(matched_keywords=["损耗", "报修"]))

        assert backend.list_records()[0].matched_keywords == ["损耗", "报修"]

    def test_delete(self, backend, make_record):
        stored = backend.create(make_record())

        backend.delete(stored.id)

        assert backend.list_records() == []

    def test_delete_missing_or_malformed_id_is_noop(self, backend, make_record):
        backend.create(make_record())

        backend.delete(str(uuid.uuid4()))
        backend.delete("not-a-uuid")

        assert len(backend.list_records()) == 1

    def test_ensure_schema_is_idempotent(self, backend):
        backend.ensure_schema()
        assert backend.list_records() == []

    def test_invalid_table_name(self, pg_pool):
        with pytest.raises(ValueError):
            PostgresCollectionBackend(pg_pool, table="reports; DROP TABLE x")

    @pytest.mark.slow
    def test_subscribe_pushes_full_state(self, backend, make_record):
        recorder = StateRecorder()
        unsubscribe = backend.subscribe(recorder.on_state, recorder.on_error)
        try:
            assert recorder.wait_for(lambda state: state == [])

            stored = backend.create(make_record())
            assert recorder.wait_for(lambda state: [r.id for r in state] == [stored.id])

            backend.delete(stored.id)
            assert recorder.wait_for(lambda state: state == [])
        finally:
            unsubscribe()

        assert recorder.errors == []


@pytest.mark.integration
@pytest.mark.slow
def test_live_coordinator_over_postgres(backend, make_record, passphrase):
    """Ingest, merge and clear through the coordinator against a real database"""
    coordinator = LiveCollectionCoordinator(
        backend, DEPARTMENTS, "后勤", operator_passphrase=passphrase
    )
    coordinator.load()

    coordinator.ingest([make_record(employee_name="李静", content="早班")])
    coordinator.ingest([make_record(employee_name="李静 Lijing", content="晚班")])

    rows = backend.list_records()
    assert len(rows) == 1
    assert rows[0].employee_name == "李静 Lijing"
    assert coordinator.records == rows

    with pytest.raises(AuthorizationError):
        coordinator.bulk_clear(confirmed=True, passphrase="wrong")

    assert coordinator.bulk_clear(confirmed=True, passphrase=passphrase) == 1
    assert backend.list_records() == []
