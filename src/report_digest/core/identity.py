"""
Identity and de-duplication of report authors.

The same person shows up as "李静", "李静 Lijing" or "李 静" across pastes.
Grouping uses a canonical key built from the ideographic characters of the
name. This is a heuristic: two different people with the same Chinese name
but different alias text collapse into one identity.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable

from report_digest.core.models import ReportRecord

# CJK unified ideographs, extension A, compatibility ideographs and extension B
IDEOGRAPH_PATTERN = re.compile(
    "[\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff\U00020000-\U0002a6df]"
)

# Separator between text blocks appended to one person's report for one day
APPEND_SEPARATOR = "\n\n"


def canonical_key(name: str) -> str:
    """
    Return the grouping key for an employee name.

    The key is the ideographic subsequence of the name when it has one,
    otherwise the whitespace-trimmed name.

    Examples:
        >>> canonical_key("李静 Lijing")
        '李静'
        >>> canonical_key("  Mary Chen ")
        'Mary Chen'
    """
    ideographs = "".join(IDEOGRAPH_PATTERN.findall(name))
    return ideographs or name.strip()


def merge_display_name(existing: str, candidate: str) -> str:
    """Keep the longer of two name variants; on a tie the existing one wins."""
    return candidate if len(candidate) > len(existing) else existing


def resolve_identities(records: Iterable[ReportRecord]) -> dict[str, str]:
    """
    Map every canonical key in the records to its display name.

    Recomputed on every call; nothing is cached across record-set changes.
    Key order follows first appearance.
    """
    names: dict[str, str] = {}
    for record in records:
        key = canonical_key(record.employee_name)
        if key in names:
            names[key] = merge_display_name(names[key], record.employee_name)
        else:
            names[key] = record.employee_name
    return names


def identity_of(record: ReportRecord) -> tuple[str, str]:
    """The (canonical key, date) tuple that must be unique in the record set."""
    return canonical_key(record.employee_name), record.date


def merge_records(existing: ReportRecord, incoming: ReportRecord) -> ReportRecord:
    """
    Fold a second report for the same person and day into the first.

    Text blocks are appended verbatim after a blank line unless the incoming
    block already appears in the existing one (a repeated paste). The
    department and id of the existing record are kept.
    """
    keywords = list(existing.matched_keywords)
    for keyword in incoming.matched_keywords:
        if keyword not in keywords:
            keywords.append(keyword)

    return existing.model_copy(
        update={
            "employee_name": merge_display_name(existing.employee_name, incoming.employee_name),
            "content": _append_block(existing.content, incoming.content),
            "next_steps": _append_block(existing.next_steps, incoming.next_steps),
            "blockers": _append_block(existing.blockers, incoming.blockers),
            "matched_keywords": keywords,
        }
    )


def _append_block(existing: str, incoming: str) -> str:
    if not incoming or incoming in existing:
        return existing
    if not existing:
        return incoming
    return existing + APPEND_SEPARATOR + incoming


@dataclass
class MergePlan:
    """
    Result of merging new records into the authoritative set.

    Attributes:
        records: The complete merged set, new records first
        created: Records that do not exist in the store yet (new or re-created merges)
        replaced_ids: Store ids of records superseded by a merged version
        merged: Number of incoming records folded into another record
    """

    records: list[ReportRecord] = field(default_factory=list)
    created: list[ReportRecord] = field(default_factory=list)
    replaced_ids: list[str] = field(default_factory=list)
    merged: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.created or self.replaced_ids)


def merge_reports(existing: list[ReportRecord], incoming: list[ReportRecord]) -> MergePlan:
    """
    Prepend incoming records to the existing set, keeping one record per
    (canonical identity, date).

    An incoming record that matches an existing record replaces it in place
    with the merged version; one that matches an earlier incoming record is
    folded into it. A merge that changes nothing (exact repeat) is dropped.

    Args:
        existing: Current authoritative records, display order
        incoming: Newly validated records, extractor order

    Returns:
        MergePlan describing the new set and the store operations needed
    """
    plan = MergePlan()
    fresh: list[ReportRecord] = []
    fresh_index: dict[tuple[str, str], int] = {}

    current = list(existing)
    existing_index: dict[tuple[str, str], int] = {}
    for position, record in enumerate(current):
        existing_index.setdefault(identity_of(record), position)

    for record in incoming:
        key = identity_of(record)
        if key in fresh_index:
            position = fresh_index[key]
            fresh[position] = merge_records(fresh[position], record)
            plan.merged += 1
        elif key in existing_index:
            position = existing_index[key]
            merged = merge_records(current[position], record)
            plan.merged += 1
            if merged == current[position]:
                continue
            if current[position].id is not None and current[position].id not in plan.replaced_ids:
                plan.replaced_ids.append(current[position].id)
            current[position] = merged
        else:
            fresh_index[key] = len(fresh)
            fresh.append(record)

    replaced = set(plan.replaced_ids)
    plan.created = list(fresh) + [
        record for record in current if record.id in replaced
    ]
    plan.records = fresh + current
    return plan
