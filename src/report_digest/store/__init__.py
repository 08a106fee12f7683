"""
Storage backends for the record set.
"""

import psycopg

from report_digest.core.config import DigestConfig
from report_digest.core.errors import ConfigurationError, PersistenceError

from .base import (
    CollectionBackend,
    SnapshotBackend,
    parse_records,
    serialize_records,
    serialized_size,
)
from .connection import DatabaseConnectionPool
from .jsonbin import JsonBinSnapshotBackend
from .local_file import LocalFileSnapshotBackend
from .postgres_collection import PostgresCollectionBackend


def build_snapshot_backend(config: DigestConfig) -> SnapshotBackend:
    """Create the snapshot backend named in the storage settings."""
    storage = config.storage
    if storage.backend == "local_file":
        return LocalFileSnapshotBackend(storage.path)
    if storage.backend == "jsonbin":
        if not config.jsonbin.bin_id or not config.jsonbin.api_key:
            raise ConfigurationError("jsonbin backend needs JSONBIN_BIN_ID and JSONBIN_API_KEY")
        return JsonBinSnapshotBackend(
            bin_id=config.jsonbin.bin_id,
            api_key=config.jsonbin.api_key,
            base_url=config.jsonbin.base_url,
            timeout=config.jsonbin.timeout,
        )
    raise ValueError(f"Backend '{storage.backend}' is not a snapshot backend")


def build_collection_backend(config: DigestConfig) -> CollectionBackend:
    """Create and prepare the live-collection backend named in the storage settings."""
    storage = config.storage
    if storage.backend != "postgres":
        raise ValueError(f"Backend '{storage.backend}' is not a collection backend")

    try:
        pool = DatabaseConnectionPool.from_settings(config.postgres)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    try:
        pool.open()
    except psycopg.OperationalError as e:
        raise PersistenceError(str(e), backend="postgres") from e
    backend = PostgresCollectionBackend(pool, table=config.postgres.table)
    backend.ensure_schema()
    return backend


__all__ = [
    "CollectionBackend",
    "SnapshotBackend",
    "DatabaseConnectionPool",
    "JsonBinSnapshotBackend",
    "LocalFileSnapshotBackend",
    "PostgresCollectionBackend",
    "build_collection_backend",
    "build_snapshot_backend",
    "parse_records",
    "serialize_records",
    "serialized_size",
]
