"""
Unit tests for the command line entry points over a local snapshot file.
"""

import json
import sys

import pytest
import yaml

from report_digest.cli import admin_cli, digest_cli


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "digest.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "departments": ["蔬果", "水产", "后勤"],
                "default_department": "后勤",
                "keywords": ["损耗"],
                "storage": {
                    "mode": "snapshot",
                    "backend": "local_file",
                    "path": str(tmp_path / "reports.json"),
                },
            },
            allow_unicode=True,
        ),
        encoding="utf-8",
    )
    return path


def run(module, monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", [module.__name__, *argv])
    module.main()


@pytest.mark.unit
class TestDigestCli:
    """Tests for report-digest"""

    def test_metrics_flag_prints_metrics_of_this_run(self, config_path, tmp_path, monkeypatch, capsys):
        entries = tmp_path / "entries.json"
        entries.write_text(
            json.dumps(
                [{"employeeName": "王强", "reportDate": "2024-05-01", "department": "蔬果",
                  "contentSummary": "叶菜损耗"}],
                ensure_ascii=False,
            ),
            encoding="utf-8",
        )

        run(digest_cli, monkeypatch, "--config", str(config_path), "--metrics",
            "ingest", "--input", str(entries), "--extracted")

        out = capsys.readouterr().out
        assert "added: 1" in out
        assert 'digest_reports_ingested_total{department="蔬果"}' in out
        assert "digest_storage_operations_total" in out

    def test_no_metrics_without_flag(self, config_path, monkeypatch, capsys):
        run(digest_cli, monkeypatch, "--config", str(config_path), "stats")

        out = capsys.readouterr().out
        assert "Total reports: 0" in out
        assert "# HELP" not in out

    def test_watch_refused_for_snapshot_storage(self, config_path, monkeypatch, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run(digest_cli, monkeypatch, "--config", str(config_path), "watch", "--interval", "0.01")

        assert exc_info.value.code == 1
        assert "Error (configuration)" in capsys.readouterr().out


@pytest.mark.unit
class TestAdminCli:
    """Tests for report-digest-admin"""

    def test_metrics_command_removed(self, config_path, monkeypatch):
        with pytest.raises(SystemExit) as exc_info:
            run(admin_cli, monkeypatch, "--config", str(config_path), "metrics")

        assert exc_info.value.code == 2

    def test_delete_unknown_id(self, config_path, monkeypatch, capsys):
        run(admin_cli, monkeypatch, "--config", str(config_path), "delete", "--id", "missing")

        assert "No report with id missing" in capsys.readouterr().out
