"""
REST blob snapshot backend (JSONBin v3 API).
"""

import requests

from report_digest.core.errors import PersistenceError
from report_digest.core.models import ReportRecord
from report_digest.observability.logger import get_logger
from report_digest.observability.metrics import record_storage_operation

from .base import SnapshotBackend, parse_records, serialize_records

logger = get_logger(__name__)


class JsonBinSnapshotBackend(SnapshotBackend):
    """
    Stores the record list in one JSONBin bin.

    GET {base_url}/{bin_id}/latest returns the list wrapped under "record";
    PUT {base_url}/{bin_id} replaces it.
    """

    name = "jsonbin"

    def __init__(
        self,
        bin_id: str,
        api_key: str,
        base_url: str = "https://api.jsonbin.io/v3/b",
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ):
        """
        Args:
            bin_id: Target bin
            api_key: X-Master-Key for the account
            base_url: API root
            timeout: Per-request timeout in seconds
            session: Optional requests session (injected in tests)
        """
        if not bin_id or not api_key:
            raise ValueError("JSONBin backend requires bin_id and api_key")
        self.bin_id = bin_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "X-Master-Key": api_key,
            "Content-Type": "application/json",
        }

    def read(self) -> list[ReportRecord]:
        url = f"{self.base_url}/{self.bin_id}/latest"
        try:
            response = self.session.get(url, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            record_storage_operation(self.name, "read", success=False)
            raise PersistenceError(f"Cloud read failed: {e}", backend=self.name) from e
        except ValueError as e:
            record_storage_operation(self.name, "read", success=False)
            raise PersistenceError(f"Cloud read returned invalid JSON: {e}", backend=self.name) from e

        payload = data.get("record") if isinstance(data, dict) else None
        # A bin that was never written holds a placeholder object, not a list
        if not isinstance(payload, list):
            logger.info("Cloud bin holds no report list yet", extra={"bin_id": self.bin_id})
            payload = []

        records = parse_records(payload, backend=self.name)
        record_storage_operation(self.name, "read", success=True)
        return records

    def write(self, records: list[ReportRecord]) -> None:
        url = f"{self.base_url}/{self.bin_id}"
        body = serialize_records(records).encode("utf-8")
        try:
            response = self.session.put(url, data=body, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            record_storage_operation(self.name, "write", success=False)
            raise PersistenceError(f"Cloud save failed: {e}", backend=self.name) from e

        record_storage_operation(self.name, "write", success=True)
        logger.debug(f"Saved {len(records)} reports to bin {self.bin_id}")
