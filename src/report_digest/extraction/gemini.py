"""
Gemini extractor over the generateContent REST endpoint.
"""

from typing import Any

import requests

from report_digest.core.config import ExtractionSettings
from report_digest.core.errors import ExtractionError
from report_digest.observability.logger import get_logger
from report_digest.observability.metrics import (
    extraction_duration_seconds,
    extraction_failures_total,
    increment_counter,
    track_duration,
)

from .base import Extractor, parse_json_payload

logger = get_logger(__name__)

SYSTEM_INSTRUCTION = """
You are an administrative assistant for a retail supermarket team.
Parse unstructured daily work reports from a group chat into a JSON array,
one object per report.

Rules:
1. NO TRANSLATION: copy the text exactly as written, in its original language.
2. PRESERVE FORMATTING: keep every line break, blank line, indentation,
   numbering (1., 2., 3.) and bullet exactly as entered. Do not flatten lists.
   Example input: "1. A\\n2. B". Example output: "1. A\\n2. B".
3. DEPARTMENT: classify each report into exactly ONE of: {departments}.
   Infer from the items mentioned. If that is impossible, use '{default}'.

For each report:
- employeeName: the author as written
- reportDate: YYYY-MM-DD, or MM-DD when the year is not stated; today's date if missing
- contentSummary: today's work, formatting kept
- nextSteps: tomorrow's plan, formatting kept (empty string if none)
- blockers: problems or help needed, formatting kept (empty string if none)
- matchedKeywords: keywords from the provided list that occur in the report
""".strip()


def build_response_schema(departments: list[str]) -> dict[str, Any]:
    """JSON schema the model must answer with."""
    verbatim = "Exact original text with all newlines and numbering preserved."
    return {
        "type": "ARRAY",
        "items": {
            "type": "OBJECT",
            "properties": {
                "employeeName": {"type": "STRING"},
                "department": {"type": "STRING", "description": f"One of: {', '.join(departments)}"},
                "reportDate": {"type": "STRING"},
                "contentSummary": {"type": "STRING", "description": verbatim},
                "nextSteps": {"type": "STRING", "description": verbatim},
                "blockers": {"type": "STRING", "description": verbatim},
                "matchedKeywords": {
                    "type": "ARRAY",
                    "items": {"type": "STRING"},
                    "description": "List of keywords found in this report",
                },
            },
            "required": ["employeeName", "department", "reportDate", "contentSummary"],
        },
    }


class GeminiExtractor(Extractor):
    """
    Calls a Gemini model with a response schema and parses its JSON answer.

    The model is instructed not to translate or reformat. Its department
    choice and keyword list are advisory; validation recomputes both.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        departments: list[str],
        default_department: str,
        model: str = "gemini-2.5-flash",
        endpoint: str = "https://generativelanguage.googleapis.com/v1beta/models",
        timeout: float = 120.0,
        session: requests.Session | None = None,
    ):
        if not api_key:
            raise ExtractionError("Gemini API key is missing. Set GEMINI_API_KEY or extraction.api_key.")
        self.api_key = api_key
        self.departments = list(departments)
        self.default_department = default_department
        self.model = model
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(
        cls, settings: ExtractionSettings, departments: list[str], default_department: str
    ) -> "GeminiExtractor":
        return cls(
            api_key=settings.api_key,
            departments=departments,
            default_department=default_department,
            model=settings.model,
            endpoint=settings.endpoint,
            timeout=settings.timeout,
        )

    def build_request(self, raw_text: str, keywords: list[str]) -> dict[str, Any]:
        instruction = SYSTEM_INSTRUCTION.format(
            departments=", ".join(f"'{d}'" for d in self.departments),
            default=self.default_department,
        )
        prompt = f"Target Keywords to Flag: [{', '.join(keywords)}]\n\nRaw Chat Logs:\n{raw_text}"
        return {
            "systemInstruction": {"parts": [{"text": instruction}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": 0.1,
                "responseMimeType": "application/json",
                "responseSchema": build_response_schema(self.departments),
            },
        }

    def extract(self, raw_text: str, keywords: list[str]) -> list[Any]:
        if not raw_text or not raw_text.strip():
            return []

        url = f"{self.endpoint}/{self.model}:generateContent"
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}
        body = self.build_request(raw_text, keywords)

        try:
            with track_duration(extraction_duration_seconds, extractor=self.name):
                response = self.session.post(url, json=body, headers=headers, timeout=self.timeout)
                response.raise_for_status()
                data = response.json()
        except requests.RequestException as e:
            increment_counter(extraction_failures_total, 1, extractor=self.name)
            raise ExtractionError(f"Extraction service request failed: {e}") from e
        except ValueError as e:
            increment_counter(extraction_failures_total, 1, extractor=self.name)
            raise ExtractionError(f"Extraction service returned invalid JSON: {e}") from e

        try:
            entries = parse_json_payload(self._response_text(data))
        except ExtractionError:
            increment_counter(extraction_failures_total, 1, extractor=self.name)
            raise

        logger.info(f"Model returned {len(entries)} entries", extra={"model": self.model})
        return entries

    @staticmethod
    def _response_text(data: Any) -> str:
        """Concatenate the text parts of the first candidate."""
        if not isinstance(data, dict):
            raise ExtractionError("Extraction service response is not an object")

        candidates = data.get("candidates") or []
        if not isinstance(candidates, list):
            raise ExtractionError("Extraction service response has malformed candidates")
        if not candidates:
            feedback = data.get("promptFeedback", {})
            reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            if reason:
                raise ExtractionError(f"Extraction request was blocked: {reason}")
            return ""

        candidate = candidates[0]
        if not isinstance(candidate, dict):
            raise ExtractionError("Extraction service candidate is not an object")
        content = candidate.get("content") or {}
        if not isinstance(content, dict):
            raise ExtractionError("Extraction service candidate content is not an object")
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise ExtractionError("Extraction service candidate parts are not a list")

        texts = []
        for part in parts:
            if not isinstance(part, dict):
                raise ExtractionError("Extraction service returned a malformed content part")
            text = part.get("text", "")
            if not isinstance(text, str):
                raise ExtractionError("Extraction service returned a non-text content part")
            texts.append(text)
        return "".join(texts)
