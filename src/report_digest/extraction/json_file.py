"""
Offline extractor reading entries that were extracted earlier.
"""

from pathlib import Path
from typing import Any

from report_digest.core.errors import ExtractionError
from report_digest.observability.logger import get_logger

from .base import Extractor, parse_json_payload

logger = get_logger(__name__)


class JsonFileExtractor(Extractor):
    """
    Treats the input as extractor output already.

    With a path, extract() ignores raw_text and reads the file; otherwise
    raw_text itself is parsed as the JSON payload.
    """

    name = "json_file"

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else None

    def extract(self, raw_text: str, keywords: list[str]) -> list[Any]:
        if self.path is not None:
            try:
                raw_text = self.path.read_text(encoding="utf-8")
            except OSError as e:
                raise ExtractionError(f"Cannot read extracted entries from {self.path}: {e}") from e

        entries = parse_json_payload(raw_text)
        logger.info(f"Read {len(entries)} pre-extracted entries")
        return entries
