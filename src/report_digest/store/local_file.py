"""
Local JSON file snapshot backend.
"""

import json
import os
import tempfile
from pathlib import Path

from report_digest.core.errors import PersistenceError
from report_digest.core.models import ReportRecord
from report_digest.observability.logger import get_logger
from report_digest.observability.metrics import record_storage_operation

from .base import SnapshotBackend, parse_records, serialize_records

logger = get_logger(__name__)


class LocalFileSnapshotBackend(SnapshotBackend):
    """
    Stores the record list as one UTF-8 JSON file.

    Writes go to a temporary file in the same directory and replace the
    target atomically, so a failed write leaves the previous snapshot intact.
    """

    name = "local_file"

    def __init__(self, path: str | Path):
        """
        Args:
            path: JSON file holding the snapshot (created on first write)
        """
        self.path = Path(path)

    def read(self) -> list[ReportRecord]:
        if not self.path.exists():
            logger.info(f"No snapshot at {self.path}, starting empty")
            return []

        try:
            with open(self.path, encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            record_storage_operation(self.name, "read", success=False)
            raise PersistenceError(f"Failed to read {self.path}: {e}", backend=self.name) from e

        records = parse_records(payload, backend=self.name)
        record_storage_operation(self.name, "read", success=True)
        return records

    def write(self, records: list[ReportRecord]) -> None:
        text = serialize_records(records)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(text)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            record_storage_operation(self.name, "write", success=False)
            raise PersistenceError(f"Failed to write {self.path}: {e}", backend=self.name) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        record_storage_operation(self.name, "write", success=True)
        logger.debug(f"Wrote {len(records)} reports to {self.path}")
