from dataclasses import dataclass, field
from typing import Optional, Tuple

# Default staff height is 2 * STAFF_HALF_HEIGHT document points
STAFF_HALF_HEIGHT = 25.0
MIN_SPLIT_HEIGHT = 10.0
MIN_STAFF_HEIGHT = 10.0


@dataclass(frozen=True)
class Separator:
    """
    A draggable boundary between two staffs on a page, in document space.
    Edge separators have only one neighbour.
    """

    kind: str  # "edge" | "part"
    y: float
    staff_above_id: Optional[str]
    staff_below_id: Optional[str]


@dataclass(frozen=True)
class SystemMismatch:
    page_index: int
    system_id: str
    count: int = 0
    labels: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StaffCountReport:
    is_consistent: bool
    expected_count: Optional[int]
    mismatches: Tuple[SystemMismatch, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class LabelCompleteness:
    unlabeled_count: int
    total_count: int


@dataclass(frozen=True)
class DuplicateLabels:
    page_index: int
    system_id: str
    duplicate_labels: Tuple[str, ...]


@dataclass(frozen=True)
class LabelConsistencyReport:
    is_consistent: bool
    expected_labels: Tuple[str, ...]
    mismatches: Tuple[SystemMismatch, ...] = field(default_factory=tuple)
