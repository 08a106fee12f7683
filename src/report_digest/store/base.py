"""
Storage backend interfaces.

Two persistence strategies exist side by side:

* snapshot backends hold the whole record list as one overwritable blob;
* collection backends hold one addressable row per record and push the
  full collection state to subscribers whenever it changes.

Backends raise PersistenceError for every transport, permission or backend
failure. They never enforce size limits; that sits in the coordinator.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Callable

from report_digest.core.errors import PersistenceError
from report_digest.core.models import ReportRecord

StateCallback = Callable[[list[ReportRecord]], None]
ErrorCallback = Callable[[PersistenceError], None]
Unsubscribe = Callable[[], None]


def serialize_records(records: list[ReportRecord]) -> str:
    """JSON text of a record list, non-ASCII kept as is."""
    return json.dumps([record.to_payload() for record in records], ensure_ascii=False)


def serialized_size(records: list[ReportRecord]) -> int:
    """Size in bytes of the UTF-8 encoded snapshot payload."""
    return len(serialize_records(records).encode("utf-8"))


def parse_records(payload: Any, backend: str) -> list[ReportRecord]:
    """
    Parse a stored list of record payloads.

    Raises:
        PersistenceError: If the payload is not a list of valid records
    """
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise PersistenceError(
            f"Stored payload must be a list of reports, got {type(payload).__name__}",
            backend=backend,
        )
    try:
        return [ReportRecord.model_validate(item) for item in payload]
    except ValueError as e:
        raise PersistenceError(f"Stored reports are corrupted: {e}", backend=backend) from e


class SnapshotBackend(ABC):
    """One blob holding the entire record list."""

    name = "snapshot"

    @abstractmethod
    def read(self) -> list[ReportRecord]:
        """Return the stored record list (empty when nothing was stored yet)."""

    @abstractmethod
    def write(self, records: list[ReportRecord]) -> None:
        """Overwrite the stored record list."""

    def close(self) -> None:
        """Release backend resources."""


class CollectionBackend(ABC):
    """Individually addressable records with push-based state sync."""

    name = "collection"

    @abstractmethod
    def create(self, record: ReportRecord) -> ReportRecord:
        """Store one record and return it with its store-assigned id."""

    @abstractmethod
    def delete(self, record_id: str) -> None:
        """Delete one record by id. Deleting a missing id is not an error."""

    @abstractmethod
    def list_records(self) -> list[ReportRecord]:
        """Return the current collection, newest first."""

    @abstractmethod
    def subscribe(self, on_state: StateCallback, on_error: ErrorCallback) -> Unsubscribe:
        """
        Deliver the full collection to on_state now and after every change.

        Returns:
            Callable that stops the subscription
        """

    def close(self) -> None:
        """Release backend resources."""
