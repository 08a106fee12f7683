"""
Extraction interface: unstructured chat text in, loosely structured entries out.

Extractor output is untrusted. Entries may miss fields or carry the wrong
types; the record validator decides what becomes a record.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any

from report_digest.core.errors import ExtractionError

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?", flags=re.IGNORECASE)


def parse_json_payload(text: str) -> list[Any]:
    """
    Parse the entry list out of a model response.

    Tolerates code fences and prose around the JSON. A JSON object holding
    the list under "reports" or "items" is unwrapped.

    Raises:
        ExtractionError: If no JSON array can be found
    """
    if not text or not text.strip():
        return []

    cleaned = CODE_FENCE_PATTERN.sub("", text).strip()
    starts = [position for position in (cleaned.find("["), cleaned.find("{")) if position != -1]
    if not starts:
        raise ExtractionError("Extraction response contains no JSON")

    decoder = json.JSONDecoder()
    try:
        payload, _end = decoder.raw_decode(cleaned[min(starts):])
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Extraction response was not valid JSON: {e}") from e

    if isinstance(payload, dict):
        for key in ("reports", "items"):
            if isinstance(payload.get(key), list):
                return payload[key]
        raise ExtractionError("Extraction response is an object without a report list")
    if not isinstance(payload, list):
        raise ExtractionError(f"Extraction response must be a JSON array, got {type(payload).__name__}")
    return payload


class Extractor(ABC):
    """Turns one paste of chat text into a list of raw report entries."""

    name = "extractor"

    @abstractmethod
    def extract(self, raw_text: str, keywords: list[str]) -> list[Any]:
        """
        Args:
            raw_text: Pasted chat log
            keywords: Keywords the extractor may flag (advisory only)

        Returns:
            Raw entries, one per report

        Raises:
            ExtractionError: On service failure or unparseable output
        """
