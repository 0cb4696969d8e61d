from collections import Counter
from typing import Dict, List, Sequence

from scoresplit.domain.models import Staff
from scoresplit.features.layout.logic import group_by_system
from scoresplit.features.layout.models import (
    DuplicateLabels,
    LabelCompleteness,
    LabelConsistencyReport,
    StaffCountReport,
    SystemMismatch,
)


def validate_staff_count_consistency(staffs: Sequence[Staff]) -> StaffCountReport:
    """
    Checks that every system holds the same number of staffs.

    The expected count is the most common one; ties go to the larger count.
    """
    if not staffs:
        return StaffCountReport(is_consistent=True, expected_count=None)

    counts: Dict[str, int] = Counter(s.system_id for s in staffs)
    pages = {s.system_id: s.page_index for s in staffs}

    frequency = Counter(counts.values())
    expected = max(frequency, key=lambda c: (frequency[c], c))

    mismatches = sorted(
        (
            SystemMismatch(page_index=pages[sid], system_id=sid, count=n)
            for sid, n in counts.items()
            if n != expected
        ),
        key=lambda m: (m.page_index, m.system_id),
    )
    return StaffCountReport(
        is_consistent=not mismatches,
        expected_count=expected,
        mismatches=tuple(mismatches),
    )


def validate_label_completeness(staffs: Sequence[Staff]) -> LabelCompleteness:
    return LabelCompleteness(
        unlabeled_count=sum(1 for s in staffs if not s.label),
        total_count=len(staffs),
    )


def validate_duplicate_labels_in_systems(staffs: Sequence[Staff]) -> List[DuplicateLabels]:
    results = []
    for system_id, group in group_by_system(staffs).items():
        counts = Counter(s.label for s in group if s.label)
        dupes = tuple(label for label, n in counts.items() if n > 1)
        if dupes:
            results.append(
                DuplicateLabels(
                    page_index=group[0].page_index,
                    system_id=system_id,
                    duplicate_labels=dupes,
                )
            )
    return results


def validate_label_consistency(staffs: Sequence[Staff]) -> LabelConsistencyReport:
    """
    Compares each system's label sequence against the first fully labeled one.
    """
    grouped = sorted(group_by_system(staffs).items())
    if not grouped:
        return LabelConsistencyReport(is_consistent=True, expected_labels=())

    expected = tuple(s.label for s in grouped[0][1])
    for _, group in grouped:
        if all(s.label for s in group):
            expected = tuple(s.label for s in group)
            break

    mismatches = []
    for system_id, group in grouped:
        labels = tuple(s.label for s in group)
        if labels != expected:
            mismatches.append(
                SystemMismatch(
                    page_index=group[0].page_index, system_id=system_id, labels=labels
                )
            )

    return LabelConsistencyReport(
        is_consistent=not mismatches,
        expected_labels=expected,
        mismatches=tuple(mismatches),
    )
