"""
Unit tests for the aggregation engine.

Includes property-based tests for the count invariants.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from report_digest.core.aggregation import (
    build_matrix,
    department_distribution,
    matrix_total,
    sort_for_display,
    workload,
)
from report_digest.core.models import ReportRecord

DEPARTMENTS = ["蔬果", "水产", "肉品冻品", "熟食", "烘焙", "食百", "后勤", "仓库"]

record_strategy = st.builds(
    ReportRecord,
    employee_name=st.sampled_from(["李静", "李静 Lijing", "王强", "Mary Chen", "张三"]),
    date=st.sampled_from(["2024-05-01", "2024-05-02", "2024-05-03"]),
    department=st.sampled_from(DEPARTMENTS),
    content=st.text(max_size=20),
)


@pytest.mark.unit
class TestBuildMatrix:
    """Tests for the date x department matrix"""

    def test_missing_department_is_explicit(self, make_record):
        """A date with reports only for 蔬果 marks 水产 (and the rest) as missing"""
        rows = build_matrix([make_record(department="蔬果")], DEPARTMENTS)

        assert len(rows) == 1
        assert rows[0].cell("蔬果").count == 1
        assert rows[0].cell("水产").missing
        assert [cell.department for cell in rows[0].cells] == DEPARTMENTS

    def test_dates_descending(self, make_record):
        records = [
            make_record(date="2024-05-01"),
            make_record(date="2024-05-03"),
            make_record(date="2024-05-02"),
        ]

        assert [row.date for row in build_matrix(records, DEPARTMENTS)] == [
            "2024-05-03", "2024-05-02", "2024-05-01",
        ]

    def test_cell_keeps_record_order(self, make_record):
        records = [make_record(employee_name="王强"), make_record(employee_name="李静")]
        cell = build_matrix(records, DEPARTMENTS)[0].cell("蔬果")

        assert [r.employee_name for r in cell.records] == ["王强", "李静"]

    def test_unknown_department_raises(self, make_record):
        with pytest.raises(ValueError):
            build_matrix([make_record(department="外包")], DEPARTMENTS)

    def test_empty_input(self):
        assert build_matrix([], DEPARTMENTS) == []


@pytest.mark.unit
class TestDistributionAndWorkload:
    """Tests for department distribution and workload"""

    def test_distribution_sorted_descending(self, make_record):
        records = [
            make_record(department="水产"),
            make_record(department="蔬果"),
            make_record(department="水产"),
        ]

        result = department_distribution(records, DEPARTMENTS)

        assert [(d.department, d.count) for d in result] == [("水产", 2), ("蔬果", 1)]

    def test_distribution_ties_follow_enumeration(self, make_record):
        records = [make_record(department="后勤"), make_record(department="蔬果")]

        result = department_distribution(records, DEPARTMENTS)

        assert [d.department for d in result] == ["蔬果", "后勤"]

    def test_workload_groups_alias_variants(self, make_record):
        records = [
            make_record(employee_name="李静", date="2024-05-01"),
            make_record(employee_name="李静 Lijing", date="2024-05-02"),
            make_record(employee_name="王强", date="2024-05-02"),
        ]

        result = workload(records)

        assert result[0].canonical_key == "李静"
        assert result[0].display_name == "李静 Lijing"
        assert result[0].count == 2
        assert result[1].display_name == "王强"

    def test_workload_ties_keep_first_appearance(self, make_record):
        records = [make_record(employee_name="张三"), make_record(employee_name="王强")]

        assert [w.display_name for w in workload(records)] == ["张三", "王强"]

    def test_sort_for_display_is_stable(self, make_record):
        records = [
            make_record(employee_name="A", date="2024-05-01"),
            make_record(employee_name="B", date="2024-05-02"),
            make_record(employee_name="C", date="2024-05-01"),
        ]

        assert [r.employee_name for r in sort_for_display(records)] == ["B", "A", "C"]


@pytest.mark.unit
class TestCountInvariants:
    """Property tests: every view accounts for every record exactly once"""

    @given(st.lists(record_strategy, max_size=30))
    def test_property_views_agree_on_total(self, records):
        rows = build_matrix(records, DEPARTMENTS)
        distribution = department_distribution(records, DEPARTMENTS)
        per_person = workload(records)

        assert matrix_total(rows) == len(records)
        assert sum(d.count for d in distribution) == len(records)
        assert sum(w.count for w in per_person) == len(records)

    @given(st.lists(record_strategy, max_size=30))
    def test_property_deterministic(self, records):
        assert build_matrix(records, DEPARTMENTS) == build_matrix(list(records), DEPARTMENTS)
        assert workload(records) == workload(list(records))
