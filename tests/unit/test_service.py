"""
Unit tests for the digest service: operations end to end over in-memory storage.
"""

from datetime import date

import pytest

from report_digest.core.errors import ExtractionError
from report_digest.core.filters import ReportFilter
from report_digest.extraction import Extractor, JsonFileExtractor
from report_digest.observability.metrics import REGISTRY
from report_digest.service import DigestService
from report_digest.sync import LiveCollectionCoordinator, SnapshotCoordinator


class FailingExtractor(Extractor):
    name = "failing"

    def extract(self, raw_text, keywords):
        raise ExtractionError("model unavailable")


def entry(name, day="2024-05-01", department="蔬果", content="1. 上架"):
    return {"employeeName": name, "reportDate": day, "department": department, "contentSummary": content}


@pytest.fixture
def coordinator(digest_config, snapshot_backend):
    return SnapshotCoordinator(
        snapshot_backend,
        departments=digest_config.departments,
        default_department=digest_config.default_department,
        operator_passphrase=digest_config.operator_passphrase,
        soft_limit_bytes=digest_config.storage.soft_limit_bytes,
    )


@pytest.fixture
def service(digest_config, coordinator):
    return DigestService(digest_config, coordinator, JsonFileExtractor(), today=date(2024, 6, 15))


@pytest.mark.unit
class TestIngest:
    """Tests for ingest operations"""

    def test_ingest_text_stores_valid_and_reports_rejections(self, service):
        payload = (
            '[{"employeeName": "王强", "reportDate": "2024-05-01", "department": "蔬果", '
            '"contentSummary": "叶菜损耗"}, {"employeeName": "", "reportDate": "2024-05-01"}]'
        )

        status = service.ingest_text(payload)

        assert status.ok
        assert status.added == 1
        assert status.rejected == 1
        assert any("rejected" in w for w in status.warnings)
        assert service.list_reports()[0].matched_keywords == ["损耗"]

    def test_extraction_failure_commits_nothing(self, digest_config, coordinator):
        service = DigestService(digest_config, coordinator, FailingExtractor())

        status = service.ingest_text("chat")

        assert not status.ok
        assert status.error_kind == "extraction"
        assert status.retryable
        assert service.list_reports() == []

    def test_all_rejected_is_not_an_error(self, service):
        status = service.ingest_entries([{"employeeName": ""}])

        assert status.ok
        assert status.added == 0
        assert status.rejected == 1

    def test_capacity_error_surfaces_as_status(self, service):
        before = REGISTRY.get_sample_value("digest_reports_ingested_total", {"department": "蔬果"}) or 0.0

        status = service.ingest_entries([entry("王强", content="x" * 950_000)])

        assert not status.ok
        assert status.error_kind == "storage_capacity"
        assert not status.retryable
        assert service.list_reports() == []
        after = REGISTRY.get_sample_value("digest_reports_ingested_total", {"department": "蔬果"}) or 0.0
        assert after == before

    def test_persistence_error_surfaces_as_status(self, service, snapshot_backend):
        snapshot_backend.fail_writes = True

        status = service.ingest_entries([entry("王强")])

        assert not status.ok
        assert status.error_kind == "persistence"
        assert status.retryable

    def test_unencodable_text_is_rejected_not_raised(self, service, snapshot_backend):
        payload = (
            '[{"employeeName": "李静", "reportDate": "2024-05-01", "department": "蔬果", '
            '"contentSummary": "a\\ud800b"}]'
        )

        status = service.ingest_text(payload)

        assert status.ok
        assert status.rejected == 1
        assert snapshot_backend.writes == 0

    def test_coercion_warning_passed_through(self, service):
        status = service.ingest_entries([entry("王强", department="水产肉品")])

        assert status.ok
        assert any("水产肉品" in w for w in status.warnings)
        assert service.list_reports()[0].department == "后勤"


@pytest.mark.unit
class TestQueries:
    """Tests for list, matrix and stats"""

    @pytest.fixture(autouse=True)
    def seeded(self, service):
        service.ingest_entries(
            [
                entry("王强", "2024-05-01", "蔬果"),
                entry("李静", "2024-05-02", "水产", content="冷柜报修"),
                entry("李静 Lijing", "2024-05-03", "水产"),
            ]
        )

    def test_list_newest_first(self, service):
        assert [r.date for r in service.list_reports()] == ["2024-05-03", "2024-05-02", "2024-05-01"]

    def test_list_filtered(self, service):
        criteria = ReportFilter(only_matched_keywords=True)
        assert [r.employee_name for r in service.list_reports(criteria)] == ["李静"]

    def test_matrix(self, service):
        rows = service.matrix()

        assert len(rows) == 3
        assert rows[0].cell("蔬果").missing
        assert rows[2].cell("蔬果").count == 1

    def test_stats(self, service):
        stats = service.stats()

        assert stats.total == 3
        assert stats.departments[0].department == "水产"
        assert stats.workload[0].display_name == "李静 Lijing"
        assert stats.workload[0].count == 2


@pytest.mark.unit
class TestExportAndAdmin:
    """Tests for export, delete and clear"""

    def test_export_flat_csv(self, service, tmp_path):
        service.ingest_entries([entry("王强")])

        status = service.export(fmt="csv", layout="flat", output_dir=tmp_path, today=date(2024, 6, 15))

        assert status.ok
        assert status.output_path.endswith("dingtalk_reports_2024-06-15.csv")

    def test_export_matrix_xlsx_with_range(self, service, tmp_path):
        service.ingest_entries([entry("王强", "2024-05-02")])
        criteria = ReportFilter(date_start="2024-05-01", date_end="2024-05-07")

        status = service.export(fmt="xlsx", layout="matrix", criteria=criteria, output_dir=tmp_path)

        assert status.output_path.endswith("daily_summary_2024-05-01_to_2024-05-07.xlsx")

    def test_export_nothing(self, service, tmp_path):
        status = service.export(output_dir=tmp_path)

        assert status.ok
        assert status.output_path is None
        assert list(tmp_path.iterdir()) == []

    def test_export_unknown_format(self, service):
        with pytest.raises(ValueError):
            service.export(fmt="pdf")

    def test_delete(self, service):
        service.ingest_entries([entry("王强")])
        record_id = service.list_reports()[0].id

        assert service.delete(record_id).ok
        assert service.list_reports() == []

    def test_clear_wrong_passphrase(self, service):
        service.ingest_entries([entry("王强")])

        status = service.clear_all(confirmed=True, passphrase="wrong")

        assert not status.ok
        assert status.error_kind == "authorization"
        assert len(service.list_reports()) == 1

    def test_clear(self, service, passphrase):
        service.ingest_entries([entry("王强"), entry("李静")])

        status = service.clear_all(confirmed=True, passphrase=passphrase)

        assert status.ok
        assert service.list_reports() == []


@pytest.mark.unit
class TestStartSync:
    """Tests for following live collection changes"""

    def test_live_pushes_reach_callback(self, digest_config, collection_backend, make_record):
        coordinator = LiveCollectionCoordinator(
            collection_backend, digest_config.departments, digest_config.default_department
        )
        service = DigestService(digest_config, coordinator)
        counts = []

        status = service.start_sync(on_change=lambda records: counts.append(len(records)))
        collection_backend.push_external([make_record(id="a"), make_record(employee_name="李静", id="b")])

        assert status.ok
        assert counts == [0, 2]
        assert [r.id for r in service.list_reports()] == ["a", "b"]

        service.close()
        assert collection_backend.subscribers == []

    def test_snapshot_mode_has_no_change_feed(self, service, snapshot_backend):
        status = service.start_sync()

        assert not status.ok
        assert status.error_kind == "configuration"
        assert not status.retryable
