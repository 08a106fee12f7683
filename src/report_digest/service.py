"""
Digest service: the operations users invoke, with failures turned into statuses.

The service wires extractor, record validator and coordinator together.
Read operations work on a copy of the authoritative set; mutating
operations go through the coordinator. Every DigestError is converted into
an OperationStatus here and never escapes to the caller.
"""

from datetime import date
from pathlib import Path
from typing import Any, Callable, Optional

from report_digest.core.aggregation import (
    build_matrix,
    department_distribution,
    sort_for_display,
    workload,
)
from report_digest.core.config import DigestConfig
from report_digest.core.errors import ConfigurationError, DigestError
from report_digest.core.filters import ReportFilter, filter_records
from report_digest.core.models import DigestStats, MatrixRow, OperationStatus, ReportRecord
from report_digest.core.validators import RecordValidator
from report_digest.export import export_filename, flat_table, matrix_table, write_csv, write_xlsx
from report_digest.extraction import Extractor
from report_digest.observability.logger import get_logger, log_operation
from report_digest.observability.metrics import record_ingested, record_validation
from report_digest.sync import BaseCoordinator

logger = get_logger(__name__)

EXPORT_STEMS = {"flat": "dingtalk_reports", "matrix": "daily_summary"}
WRITERS = {"csv": write_csv, "xlsx": write_xlsx}


def failure_status(error: DigestError, **fields) -> OperationStatus:
    return OperationStatus(
        ok=False,
        error_kind=error.kind,
        message=error.message,
        retryable=error.retryable,
        **fields,
    )


class DigestService:
    """
    Entry point for ingest, query, export and administrative operations.

    Example:
        service = DigestService(config, build_coordinator(config), extractor)
        service.load()
        status = service.ingest_text(pasted_chat)
    """

    def __init__(
        self,
        config: DigestConfig,
        coordinator: BaseCoordinator,
        extractor: Extractor | None = None,
        today: date | None = None,
    ):
        self.config = config
        self.coordinator = coordinator
        self.extractor = extractor
        self.validator = RecordValidator.from_config(config, today=today)

    def load(self) -> OperationStatus:
        """Load the authoritative set from storage."""
        try:
            records = self.coordinator.load()
        except DigestError as e:
            logger.error(f"Load failed: {e.message}", extra={"error_kind": e.kind})
            return failure_status(e)
        return OperationStatus(ok=True, message=f"Loaded {len(records)} reports")

    def ingest_text(self, raw_text: str) -> OperationStatus:
        """Extract reports from pasted chat text and merge them into the set."""
        if self.extractor is None:
            raise RuntimeError("No extractor configured")

        try:
            with log_operation("Extract reports", logger=logger, extractor=self.extractor.name):
                entries = self.extractor.extract(raw_text, self.config.active_keywords)
        except DigestError as e:
            return failure_status(e)

        return self.ingest_entries(entries)

    def ingest_entries(self, entries: list[Any]) -> OperationStatus:
        """Validate raw extractor entries and merge the valid ones into the set."""
        outcome = self.validator.validate(entries)
        record_validation(outcome)

        warnings = list(outcome.warnings)
        for rejection in outcome.rejected:
            logger.warning(
                f"Rejected entry {rejection.index}: {rejection.reason()}",
                extra={"failed_rules": rejection.failed_rules},
            )
            warnings.append(f"entry {rejection.index} rejected: {rejection.reason()}")

        if not outcome.valid:
            return OperationStatus(
                ok=True,
                message="No valid reports found",
                rejected=len(outcome.rejected),
                warnings=warnings,
            )

        try:
            with log_operation("Store reports", logger=logger, valid=len(outcome.valid)):
                plan = self.coordinator.ingest(outcome.valid)
        except DigestError as e:
            return failure_status(e, rejected=len(outcome.rejected), warnings=warnings)

        record_ingested(outcome.valid)

        message = f"Stored {len(plan.created)} reports"
        if plan.merged:
            message += f" ({plan.merged} merged into existing reports)"
        return OperationStatus(
            ok=True,
            message=message,
            added=len(plan.created),
            rejected=len(outcome.rejected),
            warnings=warnings,
        )

    def list_reports(self, criteria: ReportFilter | None = None) -> list[ReportRecord]:
        """Filtered records, newest date first."""
        return filter_records(sort_for_display(self.coordinator.records), criteria)

    def matrix(self, criteria: ReportFilter | None = None) -> list[MatrixRow]:
        return build_matrix(self.list_reports(criteria), self.config.departments)

    def stats(self, criteria: ReportFilter | None = None) -> DigestStats:
        records = self.list_reports(criteria)
        return DigestStats(
            total=len(records),
            departments=department_distribution(records, self.config.departments),
            workload=workload(records),
        )

    def export(
        self,
        fmt: str = "csv",
        layout: str = "flat",
        criteria: ReportFilter | None = None,
        output_dir: str | Path = ".",
        today: date | None = None,
    ) -> OperationStatus:
        """
        Export the filtered records to a file.

        Args:
            fmt: "csv" or "xlsx"
            layout: "flat" (one row per report) or "matrix" (date x department)
            criteria: Active display filter; its date range is encoded in the filename
            output_dir: Target directory
            today: Date used in the filename when no date filter is active
        """
        if fmt not in WRITERS:
            raise ValueError(f"Unsupported export format: {fmt}")
        if layout not in EXPORT_STEMS:
            raise ValueError(f"Unsupported export layout: {layout}")

        records = self.list_reports(criteria)
        if not records:
            return OperationStatus(ok=True, message="No reports match; nothing exported")

        if layout == "matrix":
            table = matrix_table(records, self.config.departments)
        else:
            table = flat_table(records)

        path = Path(output_dir) / export_filename(EXPORT_STEMS[layout], criteria, fmt, today=today)
        try:
            WRITERS[fmt](table, path)
        except OSError as e:
            logger.error(f"Export failed: {e}", exc_info=True)
            return OperationStatus(ok=False, error_kind="error", message=f"Export failed: {e}")

        return OperationStatus(
            ok=True,
            message=f"Exported {len(records)} reports to {path}",
            output_path=str(path),
        )

    def delete(self, record_id: str) -> OperationStatus:
        try:
            existed = self.coordinator.delete(record_id)
        except DigestError as e:
            return failure_status(e)
        if not existed:
            return OperationStatus(ok=True, message=f"No report with id {record_id}")
        return OperationStatus(ok=True, message=f"Deleted report {record_id}")

    def clear_all(self, confirmed: bool, passphrase: str | None) -> OperationStatus:
        """Delete every report. Requires confirmation and the operator passphrase."""
        try:
            removed = self.coordinator.bulk_clear(confirmed, passphrase)
        except DigestError as e:
            return failure_status(e)
        return OperationStatus(ok=True, message=f"Cleared {removed} reports")

    def start_sync(
        self, on_change: Optional[Callable[[list[ReportRecord]], None]] = None
    ) -> OperationStatus:
        """
        Follow changes other clients make to a live collection.

        Snapshot storage has no change feed, so this fails with a
        configuration status there.
        """
        if not self.coordinator.supports_push:
            error = ConfigurationError(
                f"Storage mode '{self.coordinator.mode}' does not push changes"
            )
            return failure_status(error)
        try:
            self.coordinator.start(on_change)
        except DigestError as e:
            logger.error(f"Subscribe failed: {e.message}", extra={"error_kind": e.kind})
            return failure_status(e)
        return OperationStatus(ok=True, message="Following live collection changes")

    def close(self) -> None:
        self.coordinator.close()
