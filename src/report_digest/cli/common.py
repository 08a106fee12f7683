"""
Shared CLI plumbing: configuration, service construction and status output.
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

from report_digest.core.config import (
    DigestConfig,
    DigestConfigLoader,
    apply_env_overrides,
    build_config,
)
from report_digest.core.errors import DigestError
from report_digest.core.filters import ReportFilter
from report_digest.core.models import OperationStatus
from report_digest.extraction import build_extractor
from report_digest.observability.logger import get_logger
from report_digest.observability.metrics import generate_metrics
from report_digest.service import DigestService
from report_digest.sync import build_coordinator

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config/digest.yaml"


def add_config_argument(parser) -> None:
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to digest configuration YAML (default: {DEFAULT_CONFIG_PATH})"
    )


def add_filter_arguments(parser) -> None:
    parser.add_argument("--start", help="First report date to include (YYYY-MM-DD)")
    parser.add_argument("--end", help="Last report date to include (YYYY-MM-DD)")
    parser.add_argument(
        "--keywords-only",
        action="store_true",
        help="Only reports with at least one matched keyword"
    )
    parser.add_argument("--department", help="Only reports of one department")


def filter_from_args(args) -> ReportFilter:
    return ReportFilter(
        date_start=args.start,
        date_end=args.end,
        only_matched_keywords=args.keywords_only,
        department=args.department,
    )


def load_config(config_path: str) -> DigestConfig:
    """Load the YAML config, or fall back to defaults plus environment when absent."""
    load_dotenv()
    if Path(config_path).exists():
        return DigestConfigLoader(config_path).load()
    logger.info(f"No config file at {config_path}, using defaults")
    return build_config(apply_env_overrides({}))


def open_service(args, extracted: bool = False, with_extractor: bool = False) -> DigestService:
    """
    Build and load the digest service described by --config.

    Exits with status 1 when configuration or storage is unavailable.
    """
    try:
        config = load_config(args.config)
        extractor = build_extractor(config, extracted=extracted) if with_extractor else None
        coordinator = build_coordinator(config)
    except DigestError as e:
        logger.error(f"Cannot start: {e.message}", extra={"error_kind": e.kind})
        print(f"\nError ({e.kind}): {e.message}")
        sys.exit(1)

    service = DigestService(config, coordinator, extractor)
    status = service.load()
    if not status.ok:
        service.close()
        print_status(status)
        sys.exit(1)
    return service


def print_metrics() -> None:
    """Write this process's metrics in Prometheus text format."""
    sys.stdout.write(generate_metrics().decode("utf-8"))


def print_status(status: OperationStatus) -> None:
    """Print an operation status; warnings go under the message."""
    if status.ok:
        print(f"\n{status.message}")
    else:
        hint = " (retry may succeed)" if status.retryable else ""
        print(f"\nError ({status.error_kind}): {status.message}{hint}")

    for warning in status.warnings:
        print(f"  ! {warning}")
