from dataclasses import dataclass
from typing import Any, ClassVar, Tuple, Union

from scoresplit.domain.models import PageDimension, Staff, System, WizardStep


@dataclass(frozen=True)
class SetStep:
    kind: ClassVar[str] = "SET_STEP"
    step: WizardStep


@dataclass(frozen=True)
class LoadDocument:
    kind: ClassVar[str] = "LOAD_DOCUMENT"
    file_name: str
    source_bytes: bytes
    document: Any
    page_count: int
    page_dimensions: Tuple[PageDimension, ...]


@dataclass(frozen=True)
class SetStaffs:
    kind: ClassVar[str] = "SET_STAFFS"
    staffs: Tuple[Staff, ...]


@dataclass(frozen=True)
class SetStaffsAndSystems:
    kind: ClassVar[str] = "SET_STAFFS_AND_SYSTEMS"
    staffs: Tuple[Staff, ...]
    systems: Tuple[System, ...]


@dataclass(frozen=True)
class SetSystems:
    kind: ClassVar[str] = "SET_SYSTEMS"
    systems: Tuple[System, ...]


@dataclass(frozen=True)
class UpdateStaff:
    kind: ClassVar[str] = "UPDATE_STAFF"
    staff: Staff


@dataclass(frozen=True)
class AddStaff:
    kind: ClassVar[str] = "ADD_STAFF"
    staff: Staff


@dataclass(frozen=True)
class DeleteStaff:
    kind: ClassVar[str] = "DELETE_STAFF"
    staff_id: str


@dataclass(frozen=True)
class SetCurrentPage:
    kind: ClassVar[str] = "SET_CURRENT_PAGE"
    page_index: int


@dataclass(frozen=True)
class RefreshDocument:
    kind: ClassVar[str] = "REFRESH_DOCUMENT"
    document: Any


@dataclass(frozen=True)
class Reset:
    kind: ClassVar[str] = "RESET"


@dataclass(frozen=True)
class Undo:
    kind: ClassVar[str] = "UNDO"


@dataclass(frozen=True)
class Redo:
    kind: ClassVar[str] = "REDO"


ProjectAction = Union[
    SetStep,
    LoadDocument,
    SetStaffs,
    SetStaffsAndSystems,
    SetSystems,
    UpdateStaff,
    AddStaff,
    DeleteStaff,
    SetCurrentPage,
    RefreshDocument,
    Reset,
    Undo,
    Redo,
]

# Edits that are recorded in the undo history
UNDOABLE_KINDS = frozenset(
    {
        SetStaffs.kind,
        SetStaffsAndSystems.kind,
        SetSystems.kind,
        UpdateStaff.kind,
        AddStaff.kind,
        DeleteStaff.kind,
    }
)
