"""
Unit tests for identity resolution and report merging.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from report_digest.core.identity import (
    APPEND_SEPARATOR,
    canonical_key,
    identity_of,
    merge_display_name,
    merge_records,
    merge_reports,
    resolve_identities,
)


@pytest.mark.unit
class TestCanonicalKey:
    """Tests for canonical_key"""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("李静", "李静"),
            ("李静 Lijing", "李静"),
            ("Lijing 李静", "李静"),
            ("李 静", "李静"),
            ("  Mary Chen ", "Mary Chen"),
            ("王强(店长)", "王强店长"),
        ],
    )
    def test_keys(self, name, expected):
        assert canonical_key(name) == expected

    def test_extension_b_ideographs_kept(self):
        assert canonical_key("\U00020000明 Ming") == "\U00020000明"

    def test_same_ideographs_different_alias_collapse(self):
        """
        Heuristic limit: two different people named 李静 with different
        Latin aliases share one identity. This is the accepted false-merge risk.
        """
        assert canonical_key("李静 Lijing") == canonical_key("李静 Jing Li")

    @given(st.text(alphabet=st.characters(min_codepoint=0x4E00, max_codepoint=0x9FFF), min_size=1))
    def test_property_pure_ideographic_names_are_their_own_key(self, name):
        assert canonical_key(name) == name

    @given(st.text())
    def test_property_key_is_idempotent(self, name):
        assert canonical_key(canonical_key(name)) == canonical_key(name)


@pytest.mark.unit
class TestDisplayNames:
    """Tests for display name selection"""

    def test_longer_variant_wins(self):
        assert merge_display_name("李静", "李静 Lijing") == "李静 Lijing"

    def test_tie_keeps_existing(self):
        assert merge_display_name("李静 A", "李静 B") == "李静 A"

    def test_resolve_identities_example(self, make_record):
        """'李静' and '李静 Lijing' resolve to one identity shown as the longer name"""
        records = [
            make_record(employee_name="李静", date="2024-05-01"),
            make_record(employee_name="李静 Lijing", date="2024-05-02"),
            make_record(employee_name="王强", date="2024-05-02"),
        ]

        assert resolve_identities(records) == {"李静": "李静 Lijing", "王强": "王强"}


@pytest.mark.unit
class TestMergeRecords:
    """Tests for folding two reports of one person and day"""

    def test_blocks_appended_with_separator(self, make_record):
        first = make_record(content="1. 上午收货", blockers="")
        second = make_record(content="2. 下午盘点", blockers="冷柜故障")

        merged = merge_records(first, second)

        assert merged.content == "1. 上午收货" + APPEND_SEPARATOR + "2. 下午盘点"
        assert merged.blockers == "冷柜故障"

    def test_repeated_paste_not_duplicated(self, make_record):
        first = make_record(content="1. 上午收货\n2. 下午盘点")
        second = make_record(content="2. 下午盘点")

        assert merge_records(first, second).content == first.content

    def test_keeps_existing_id_and_department(self, make_record):
        first = make_record(id="r1", department="水产")
        second = make_record(department="蔬果", content="补充")

        merged = merge_records(first, second)

        assert merged.id == "r1"
        assert merged.department == "水产"

    def test_keywords_unioned_in_order(self, make_record):
        first = make_record(matched_keywords=["损耗"])
        second = make_record(content="x", matched_keywords=["报修", "损耗"])

        assert merge_records(first, second).matched_keywords == ["损耗", "报修"]


@pytest.mark.unit
class TestMergeReports:
    """Tests for merging a batch into the authoritative set"""

    def test_new_records_prepended(self, make_record):
        existing = [make_record(employee_name="张三", id="e1")]
        incoming = [make_record(employee_name="王强"), make_record(employee_name="李静")]

        plan = merge_reports(existing, incoming)

        assert [r.employee_name for r in plan.records] == ["王强", "李静", "张三"]
        assert len(plan.created) == 2
        assert plan.replaced_ids == []

    def test_alias_variant_merges_into_existing(self, make_record):
        existing = [make_record(employee_name="李静", content="早班", id="e1")]
        incoming = [make_record(employee_name="李静 Lijing", content="晚班")]

        plan = merge_reports(existing, incoming)

        assert len(plan.records) == 1
        merged = plan.records[0]
        assert merged.employee_name == "李静 Lijing"
        assert merged.content == "早班" + APPEND_SEPARATOR + "晚班"
        assert plan.replaced_ids == ["e1"]
        assert plan.merged == 1

    def test_same_person_different_day_kept_apart(self, make_record):
        existing = [make_record(employee_name="李静", date="2024-05-01", id="e1")]
        incoming = [make_record(employee_name="李静", date="2024-05-02")]

        plan = merge_reports(existing, incoming)

        assert len(plan.records) == 2
        assert plan.replaced_ids == []

    def test_duplicates_within_batch_folded(self, make_record):
        incoming = [
            make_record(employee_name="王强", content="A"),
            make_record(employee_name="王强 Wang", content="B"),
        ]

        plan = merge_reports([], incoming)

        assert len(plan.records) == 1
        assert plan.records[0].content == "A" + APPEND_SEPARATOR + "B"
        assert plan.records[0].employee_name == "王强 Wang"

    def test_exact_repeat_changes_nothing(self, make_record):
        existing = [make_record(id="e1")]
        plan = merge_reports(existing, [make_record()])

        assert not plan.changed
        assert plan.records == existing

    def test_inputs_not_mutated(self, make_record):
        existing = [make_record(id="e1", content="A")]
        snapshot = [r.model_copy() for r in existing]

        merge_reports(existing, [make_record(content="B")])

        assert existing == snapshot

    @given(
        st.lists(
            st.tuples(st.sampled_from(["李静", "李静 Lijing", "王强", "Mary"]),
                      st.sampled_from(["2024-05-01", "2024-05-02"]),
                      st.sampled_from(["A", "B", "C"])),
            max_size=12,
        )
    )
    def test_property_one_record_per_identity_and_date(self, rows):
        from report_digest.core.models import ReportRecord

        incoming = [
            ReportRecord(employee_name=name, date=day, department="蔬果", content=text)
            for name, day, text in rows
        ]
        plan = merge_reports([], incoming)

        keys = [identity_of(r) for r in plan.records]
        assert len(keys) == len(set(keys))
