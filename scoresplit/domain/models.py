from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class WizardStep(str, Enum):
    IMPORT = "import"
    SYSTEMS = "systems"
    STAFFS = "staffs"
    LABEL = "label"
    EXPORT = "export"


@dataclass(frozen=True)
class PageDimension:
    """
    Page size in document points, fixed at load time.
    """

    width: float
    height: float


@dataclass(frozen=True)
class System:
    """
    A group of staves played together, in document space.

    Document space has its origin at the bottom of the page, so top > bottom.
    """

    id: str
    page_index: int
    top: float
    bottom: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pageIndex": self.page_index,
            "top": self.top,
            "bottom": self.bottom,
        }


@dataclass(frozen=True)
class Staff:
    """
    One labeled instrument line inside a System.
    """

    id: str
    page_index: int
    top: float
    bottom: float
    label: str = ""
    system_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pageIndex": self.page_index,
            "top": self.top,
            "bottom": self.bottom,
            "label": self.label,
            "systemId": self.system_id,
        }


@dataclass(frozen=True)
class Part:
    """
    All staffs sharing a label, in reading order. Consumed by export writers.
    """

    label: str
    staffs: Tuple[Staff, ...]


@dataclass(frozen=True)
class Snapshot:
    """
    The undoable subset of ProjectState.
    """

    staffs: Tuple[Staff, ...] = ()
    systems: Tuple[System, ...] = ()


@dataclass(frozen=True)
class ProjectState:
    step: WizardStep = WizardStep.IMPORT
    source_file_name: str = ""
    source_bytes: Optional[bytes] = None
    document: Optional[Any] = field(default=None, compare=False)
    page_count: int = 0
    page_dimensions: Tuple[PageDimension, ...] = ()
    staffs: Tuple[Staff, ...] = ()
    systems: Tuple[System, ...] = ()
    current_page_index: int = 0

    def snapshot(self) -> Snapshot:
        return Snapshot(staffs=self.staffs, systems=self.systems)


INITIAL_STATE = ProjectState()
