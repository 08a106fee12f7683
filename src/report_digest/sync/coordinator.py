"""
Sync/merge coordinator: single owner of the authoritative record set.

Two variants share one interface. SnapshotCoordinator writes the whole set
as one blob after every mutation; LiveCollectionCoordinator mirrors a
collection backend and applies mutations record by record. Either way a
failed mutation leaves the in-memory set exactly as it was before the call.
"""

import hmac
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Callable, Optional

from report_digest.core.config import DEFAULT_SOFT_LIMIT_BYTES, DigestConfig
from report_digest.core.errors import AuthorizationError, PersistenceError, StorageCapacityError
from report_digest.core.identity import MergePlan, identity_of, merge_reports
from report_digest.core.models import ReportRecord
from report_digest.observability.logger import get_logger
from report_digest.observability.metrics import (
    authorization_failures_total,
    department_coercions_total,
    increment_counter,
    live_pushes_total,
    record_set_size,
    set_gauge,
    snapshot_size_bytes,
    storage_capacity_refusals_total,
)
from report_digest.store import (
    CollectionBackend,
    SnapshotBackend,
    build_collection_backend,
    build_snapshot_backend,
    serialized_size,
)

logger = get_logger(__name__)

ChangeCallback = Callable[[list[ReportRecord]], None]


class BaseCoordinator(ABC):
    """
    Owns the authoritative record set and serializes every mutation.

    Readers get copies; only the coordinator replaces the internal list.
    """

    mode = "base"
    supports_push = False

    def __init__(
        self,
        departments: list[str],
        default_department: str,
        operator_passphrase: str | None = None,
    ):
        self.departments = list(departments)
        self.default_department = default_department
        self.operator_passphrase = operator_passphrase
        self._lock = threading.RLock()
        self._records: list[ReportRecord] = []

    @property
    def records(self) -> list[ReportRecord]:
        """Copy of the current record set, display order."""
        with self._lock:
            return list(self._records)

    @abstractmethod
    def load(self) -> list[ReportRecord]:
        """Replace the in-memory set with the stored one."""

    @abstractmethod
    def ingest(self, incoming: list[ReportRecord]) -> MergePlan:
        """Merge validated records into the set and persist the result."""

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        """Remove one record. Returns False when no such record exists."""

    @abstractmethod
    def bulk_clear(self, confirmed: bool, passphrase: str | None) -> int:
        """Remove every record. Returns the number of records removed."""

    def start(self, on_change: Optional[ChangeCallback] = None) -> None:
        """Follow changes made by other clients. A no-op for stores without pushes."""

    def stop(self) -> None:
        """Stop following changes."""

    def close(self) -> None:
        """Release backend resources."""

    def _replace(self, records: list[ReportRecord]) -> None:
        self._records = records
        set_gauge(record_set_size, len(records), mode=self.mode)

    def _normalize(self, records: list[ReportRecord]) -> list[ReportRecord]:
        """Coerce departments outside the enumeration in externally supplied records."""
        normalized = []
        for record in records:
            if record.department not in self.departments:
                logger.warning(
                    f"Stored report has unknown department {record.department!r}, "
                    f"using {self.default_department!r}",
                    extra={"record_id": record.id},
                )
                increment_counter(department_coercions_total)
                record = record.model_copy(update={"department": self.default_department})
            normalized.append(record)
        return normalized

    def _authorize_clear(self, confirmed: bool, passphrase: str | None) -> None:
        """
        Shared-passphrase gate for bulk clear. This is a stand-in, not an
        authorization system: anyone holding the passphrase may clear.

        Raises:
            AuthorizationError: Unless confirmed and the passphrase matches exactly
        """
        reason = None
        if not confirmed:
            reason = "Clearing all reports requires explicit confirmation"
        elif not self.operator_passphrase:
            reason = "No operator passphrase is configured; clearing is disabled"
        elif passphrase is None or not hmac.compare_digest(
            passphrase.encode("utf-8"), self.operator_passphrase.encode("utf-8")
        ):
            reason = "Operator passphrase does not match"

        if reason is not None:
            increment_counter(authorization_failures_total, 1, operation="bulk_clear")
            logger.warning(f"Bulk clear refused: {reason}")
            raise AuthorizationError(reason)


class SnapshotCoordinator(BaseCoordinator):
    """
    Coordinator over a whole-set blob store.

    Writes are refused before they reach the backend when the serialized
    payload is larger than soft_limit_bytes. Concurrent writers from other
    clients are last-writer-wins.
    """

    mode = "snapshot"

    def __init__(
        self,
        backend: SnapshotBackend,
        departments: list[str],
        default_department: str,
        operator_passphrase: str | None = None,
        soft_limit_bytes: int = DEFAULT_SOFT_LIMIT_BYTES,
    ):
        super().__init__(departments, default_department, operator_passphrase)
        self.backend = backend
        self.soft_limit_bytes = soft_limit_bytes

    def load(self) -> list[ReportRecord]:
        with self._lock:
            records = self._normalize(self.backend.read())
            # Blobs written without ids get them now; the next write persists them
            records = _with_ids(records)
            self._replace(records)
            logger.info(f"Loaded {len(records)} reports from {self.backend.name}")
            return list(records)

    def ingest(self, incoming: list[ReportRecord]) -> MergePlan:
        with self._lock:
            plan = merge_reports(self._records, incoming)
            if not plan.changed:
                logger.info("Nothing new to store", extra={"incoming": len(incoming)})
                return plan

            # The blob store has no id allocator
            records = _with_ids(plan.records)
            created_keys = {identity_of(record) for record in plan.created}
            plan.records = records
            plan.created = [record for record in records if identity_of(record) in created_keys]

            self._write(records, enforce_limit=True)
            self._replace(records)
            return plan

    def delete(self, record_id: str) -> bool:
        with self._lock:
            remaining = [record for record in self._records if record.id != record_id]
            if len(remaining) == len(self._records):
                logger.info(f"No report with id {record_id}")
                return False
            # Shrinking writes are always allowed, even above the soft limit
            self._write(remaining, enforce_limit=False)
            self._replace(remaining)
            return True

    def bulk_clear(self, confirmed: bool, passphrase: str | None) -> int:
        with self._lock:
            self._authorize_clear(confirmed, passphrase)
            removed = len(self._records)
            self._write([], enforce_limit=False)
            self._replace([])
            logger.info(f"Cleared {removed} reports")
            return removed

    def _write(self, records: list[ReportRecord], enforce_limit: bool) -> None:
        size = serialized_size(records)
        set_gauge(snapshot_size_bytes, size, backend=self.backend.name)

        if enforce_limit and size > self.soft_limit_bytes:
            increment_counter(storage_capacity_refusals_total, 1, backend=self.backend.name)
            logger.warning(
                "Snapshot write refused: over capacity",
                extra={"size_bytes": size, "limit_bytes": self.soft_limit_bytes},
            )
            raise StorageCapacityError(size, self.soft_limit_bytes)

        self.backend.write(records)

    def close(self) -> None:
        self.backend.close()


def _with_ids(records: list[ReportRecord]) -> list[ReportRecord]:
    return [
        record if record.id else record.model_copy(update={"id": uuid.uuid4().hex})
        for record in records
    ]


class LiveCollectionCoordinator(BaseCoordinator):
    """
    Coordinator mirroring a push-based collection store.

    Every push replaces the mirror wholesale, discarding any optimistic
    state. Mutations update the mirror optimistically; on failure the
    mirror is restored and rows created by the failed call are removed.
    """

    mode = "live"
    supports_push = True

    def __init__(
        self,
        backend: CollectionBackend,
        departments: list[str],
        default_department: str,
        operator_passphrase: str | None = None,
    ):
        super().__init__(departments, default_department, operator_passphrase)
        self.backend = backend
        self.last_error: PersistenceError | None = None
        self._unsubscribe = None
        self._on_change: Optional[ChangeCallback] = None

    def start(self, on_change: Optional[ChangeCallback] = None) -> None:
        """
        Subscribe to collection pushes.

        Args:
            on_change: Called with the new record set after every applied push
        """
        with self._lock:
            self._on_change = on_change
            if self._unsubscribe is None:
                self._unsubscribe = self.backend.subscribe(self._on_state, self._on_error)

    def stop(self) -> None:
        with self._lock:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    def load(self) -> list[ReportRecord]:
        with self._lock:
            records = self._normalize(self.backend.list_records())
            self._replace(records)
            logger.info(f"Loaded {len(records)} reports from {self.backend.name}")
            return list(records)

    def _on_state(self, records: list[ReportRecord]) -> None:
        with self._lock:
            self._replace(self._normalize(records))
            self.last_error = None
            applied = list(self._records)
            on_change = self._on_change
        increment_counter(live_pushes_total, 1, status="applied")
        logger.debug(f"Applied push with {len(records)} reports")
        if on_change is not None:
            on_change(applied)

    def _on_error(self, error: PersistenceError) -> None:
        with self._lock:
            self.last_error = error
        increment_counter(live_pushes_total, 1, status="error")
        logger.error(f"Live collection error: {error}", extra={"backend": error.backend})

    def ingest(self, incoming: list[ReportRecord]) -> MergePlan:
        with self._lock:
            plan = merge_reports(self._records, incoming)
            if not plan.changed:
                logger.info("Nothing new to store", extra={"incoming": len(incoming)})
                return plan

            previous = self._records
            self._replace(plan.records)

            replaced = set(plan.replaced_ids)
            replacements = [record for record in plan.created if record.id in replaced]
            fresh = [record for record in plan.created if record.id not in replaced]

            # Newest-first listing: the first fresh record must be inserted last
            created: list[tuple[ReportRecord, str | None]] = []
            deleted: set[str] = set()
            try:
                for record in reversed(replacements + fresh):
                    stored = self.backend.create(record.model_copy(update={"id": None}))
                    created.append((stored, record.id))
                for record_id in plan.replaced_ids:
                    self.backend.delete(record_id)
                    deleted.add(record_id)
            except PersistenceError:
                self._replace(previous)
                self._compensate(created, deleted)
                raise

            stored_by_identity = {identity_of(stored): stored for stored, _ in created}
            records = [
                stored_by_identity.get(identity_of(record), record)
                if record.id is None or record.id in replaced
                else record
                for record in plan.records
            ]
            self._replace(records)
            plan.records = records
            plan.created = [stored for stored, _ in reversed(created)]
            return plan

    def _compensate(self, created: list[tuple[ReportRecord, str | None]], deleted: set[str]) -> None:
        """Delete rows created by a failed ingest, unless they replace an already deleted row."""
        for stored, replaced_id in created:
            if replaced_id is not None and replaced_id in deleted:
                continue
            try:
                self.backend.delete(stored.id)
            except PersistenceError as e:
                logger.error(
                    f"Could not roll back report {stored.id}: {e}",
                    extra={"record_id": stored.id},
                )

    def delete(self, record_id: str) -> bool:
        with self._lock:
            remaining = [record for record in self._records if record.id != record_id]
            existed = len(remaining) != len(self._records)
            self.backend.delete(record_id)
            self._replace(remaining)
            return existed

    def bulk_clear(self, confirmed: bool, passphrase: str | None) -> int:
        with self._lock:
            self._authorize_clear(confirmed, passphrase)
            # Clear what the store holds, not only what this mirror has seen
            stored = self.backend.list_records()
            for record in stored:
                self.backend.delete(record.id)
            self._replace([])
            logger.info(f"Cleared {len(stored)} reports")
            return len(stored)

    def close(self) -> None:
        self.stop()
        self.backend.close()


def build_coordinator(config: DigestConfig) -> BaseCoordinator:
    """
    Create the coordinator and backend selected by the storage settings.

    Raises:
        PersistenceError: If the live backend cannot be prepared
    """
    if config.storage.mode == "snapshot":
        return SnapshotCoordinator(
            build_snapshot_backend(config),
            departments=config.departments,
            default_department=config.default_department,
            operator_passphrase=config.operator_passphrase,
            soft_limit_bytes=config.storage.soft_limit_bytes,
        )

    return LiveCollectionCoordinator(
        build_collection_backend(config),
        departments=config.departments,
        default_department=config.default_department,
        operator_passphrase=config.operator_passphrase,
    )
