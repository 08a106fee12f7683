"""
PostgreSQL live-collection backend.

One row per report. Ids are allocated by the database. A statement-level
trigger issues NOTIFY on every change; subscribers re-read the whole
collection on each notification and receive it as the new state.
"""

import re
import threading
import uuid

import psycopg
from psycopg import sql

from report_digest.core.errors import PersistenceError
from report_digest.core.models import ReportRecord
from report_digest.observability.logger import get_logger
from report_digest.observability.metrics import record_storage_operation

from .base import CollectionBackend, ErrorCallback, StateCallback, Unsubscribe
from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[a-z_][a-z0-9_]{0,40}$")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    seq bigserial NOT NULL,
    employee_name text NOT NULL,
    report_date date NOT NULL,
    department text NOT NULL,
    content text NOT NULL DEFAULT '',
    next_steps text NOT NULL DEFAULT '',
    blockers text NOT NULL DEFAULT '',
    matched_keywords text[] NOT NULL DEFAULT '{{}}',
    created_at timestamptz NOT NULL DEFAULT now()
);

CREATE OR REPLACE FUNCTION {function}() RETURNS trigger AS $$
BEGIN
    PERFORM pg_notify({channel}, TG_OP);
    RETURN NULL;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS {trigger} ON {table};
CREATE TRIGGER {trigger}
    AFTER INSERT OR UPDATE OR DELETE ON {table}
    FOR EACH STATEMENT EXECUTE FUNCTION {function}();
"""


class PostgresCollectionBackend(CollectionBackend):
    """
    Live collection stored in a PostgreSQL table.

    The collection is ordered newest first (by insertion sequence).
    """

    name = "postgres"

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        table: str = "daily_report",
        poll_interval: float = 1.0,
    ):
        """
        Args:
            pool: Open (or openable) connection pool
            table: Table name (lowercase identifier)
            poll_interval: Seconds between checks of the stop flag while listening
        """
        if not IDENTIFIER_PATTERN.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self.pool = pool
        self.table = table
        self.channel = f"{table}_changed"
        self.poll_interval = poll_interval

    def ensure_schema(self) -> None:
        """Create the table and change-notification trigger if missing."""
        statement = sql.SQL(SCHEMA_SQL).format(
            table=sql.Identifier(self.table),
            function=sql.Identifier(f"{self.table}_notify"),
            trigger=sql.Identifier(f"{self.table}_notify_trigger"),
            channel=sql.Literal(self.channel),
        )
        try:
            with self.pool.get_connection() as conn:
                conn.execute(statement)
        except psycopg.Error as e:
            raise PersistenceError(f"Failed to create schema: {e}", backend=self.name) from e
        logger.info(f"Schema ready for table {self.table}")

    def create(self, record: ReportRecord) -> ReportRecord:
        query = sql.SQL(
            """
            INSERT INTO {table} (
                employee_name, report_date, department, content, next_steps, blockers, matched_keywords
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING id
            """
        ).format(table=sql.Identifier(self.table))

        try:
            rows = self.pool.execute_query(
                query,
                (
                    record.employee_name,
                    record.date,
                    record.department,
                    record.content,
                    record.next_steps,
                    record.blockers,
                    list(record.matched_keywords),
                ),
            )
        except psycopg.Error as e:
            record_storage_operation(self.name, "create", success=False)
            raise PersistenceError(f"Failed to store report: {e}", backend=self.name) from e

        record_storage_operation(self.name, "create", success=True)
        return record.model_copy(update={"id": str(rows[0]["id"])})

    def delete(self, record_id: str) -> None:
        try:
            key = uuid.UUID(record_id)
        except (ValueError, TypeError):
            logger.warning(f"Ignoring delete of malformed id {record_id!r}")
            return

        command = sql.SQL("DELETE FROM {table} WHERE id = %s").format(
            table=sql.Identifier(self.table)
        )
        try:
            deleted = self.pool.execute_command(command, (key,))
        except psycopg.Error as e:
            record_storage_operation(self.name, "delete", success=False)
            raise PersistenceError(f"Failed to delete report {record_id}: {e}", backend=self.name) from e

        record_storage_operation(self.name, "delete", success=True)
        if not deleted:
            logger.info(f"Report {record_id} was already gone")

    def list_records(self) -> list[ReportRecord]:
        query = sql.SQL(
            """
            SELECT id, employee_name, report_date, department, content, next_steps, blockers, matched_keywords
            FROM {table}
            ORDER BY seq DESC
            """
        ).format(table=sql.Identifier(self.table))

        try:
            rows = self.pool.execute_query(query)
        except psycopg.Error as e:
            record_storage_operation(self.name, "list", success=False)
            raise PersistenceError(f"Failed to load reports: {e}", backend=self.name) from e

        record_storage_operation(self.name, "list", success=True)
        return [self._row_to_record(row) for row in rows]

    def subscribe(self, on_state: StateCallback, on_error: ErrorCallback) -> Unsubscribe:
        try:
            conn = self.pool.listen_connection()
            conn.execute(sql.SQL("LISTEN {}").format(sql.Identifier(self.channel)))
        except psycopg.Error as e:
            raise PersistenceError(f"Failed to subscribe: {e}", backend=self.name) from e

        stop = threading.Event()
        listener = threading.Thread(
            target=self._listen,
            args=(conn, stop, on_state, on_error),
            name=f"{self.table}-listener",
            daemon=True,
        )
        listener.start()
        logger.info(f"Subscribed to {self.channel}")

        def unsubscribe() -> None:
            stop.set()
            listener.join(timeout=self.poll_interval * 2 + 1)
            logger.info(f"Unsubscribed from {self.channel}")

        return unsubscribe

    def _listen(self, conn, stop: threading.Event, on_state: StateCallback, on_error: ErrorCallback) -> None:
        try:
            self._push(on_state, on_error)
            while not stop.is_set():
                for _notify in conn.notifies(timeout=self.poll_interval):
                    if stop.is_set():
                        break
                    self._push(on_state, on_error)
        except psycopg.Error as e:
            if not stop.is_set():
                on_error(PersistenceError(f"Lost connection to change feed: {e}", backend=self.name))
        finally:
            conn.close()

    def _push(self, on_state: StateCallback, on_error: ErrorCallback) -> None:
        try:
            records = self.list_records()
        except PersistenceError as e:
            on_error(e)
            return
        on_state(records)

    def close(self) -> None:
        self.pool.close()

    @staticmethod
    def _row_to_record(row: dict) -> ReportRecord:
        return ReportRecord(
            id=str(row["id"]),
            employee_name=row["employee_name"],
            date=row["report_date"].isoformat(),
            department=row["department"],
            content=row["content"],
            next_steps=row["next_steps"],
            blockers=row["blockers"],
            matched_keywords=list(row["matched_keywords"] or []),
        )
