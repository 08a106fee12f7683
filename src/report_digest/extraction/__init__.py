"""
Extractors turning pasted chat logs into raw report entries.
"""

from report_digest.core.config import DigestConfig

from .base import Extractor, parse_json_payload
from .gemini import GeminiExtractor
from .json_file import JsonFileExtractor


def build_extractor(config: DigestConfig, extracted: bool = False) -> Extractor:
    """
    Args:
        config: Digest configuration
        extracted: Input is already extractor output (no model call)
    """
    if extracted:
        return JsonFileExtractor()
    return GeminiExtractor.from_settings(
        config.extraction, config.departments, config.default_department
    )


__all__ = [
    "Extractor",
    "GeminiExtractor",
    "JsonFileExtractor",
    "build_extractor",
    "parse_json_payload",
]
