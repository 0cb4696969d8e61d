from dataclasses import dataclass, replace

from scoresplit.domain.actions import (
    AddStaff,
    DeleteStaff,
    LoadDocument,
    ProjectAction,
    Redo,
    RefreshDocument,
    Reset,
    SetCurrentPage,
    SetStaffs,
    SetStaffsAndSystems,
    SetStep,
    SetSystems,
    UNDOABLE_KINDS,
    Undo,
    UpdateStaff,
)
from scoresplit.domain.history import (
    MAX_UNDO,
    UndoHistory,
    create_history,
    push_state,
    redo as redo_history,
    undo as undo_history,
)
from scoresplit.domain.models import INITIAL_STATE, ProjectState, Snapshot


def project_reducer(state: ProjectState, action: ProjectAction) -> ProjectState:
    """
    Applies one action to the project. Total and pure.

    Unknown actions return the very same state object.
    """
    if isinstance(action, SetStep):
        return replace(state, step=action.step, current_page_index=0)

    if isinstance(action, LoadDocument):
        return replace(
            state,
            source_file_name=action.file_name,
            source_bytes=action.source_bytes,
            document=action.document,
            page_count=action.page_count,
            page_dimensions=tuple(action.page_dimensions),
            staffs=(),
            systems=(),
            current_page_index=0,
        )

    if isinstance(action, SetStaffs):
        return replace(state, staffs=tuple(action.staffs))

    if isinstance(action, SetStaffsAndSystems):
        return replace(state, staffs=tuple(action.staffs), systems=tuple(action.systems))

    if isinstance(action, SetSystems):
        return replace(state, systems=tuple(action.systems))

    if isinstance(action, UpdateStaff):
        return replace(
            state,
            staffs=tuple(
                action.staff if s.id == action.staff.id else s for s in state.staffs
            ),
        )

    if isinstance(action, AddStaff):
        return replace(state, staffs=state.staffs + (action.staff,))

    if isinstance(action, DeleteStaff):
        return replace(
            state, staffs=tuple(s for s in state.staffs if s.id != action.staff_id)
        )

    if isinstance(action, SetCurrentPage):
        return replace(state, current_page_index=action.page_index)

    if isinstance(action, RefreshDocument):
        return replace(state, document=action.document)

    if isinstance(action, Reset):
        return INITIAL_STATE

    return state


@dataclass(frozen=True)
class CombinedState:
    project: ProjectState
    history: UndoHistory[Snapshot]


INITIAL_COMBINED = CombinedState(
    project=INITIAL_STATE,
    history=create_history(INITIAL_STATE.snapshot()),
)


def _restore(state: CombinedState, history: UndoHistory[Snapshot]) -> CombinedState:
    if history is state.history:
        return state
    project = replace(
        state.project,
        staffs=history.present.staffs,
        systems=history.present.systems,
    )
    return CombinedState(project=project, history=history)


def combined_reducer(
    state: CombinedState, action: ProjectAction, max_undo: int = MAX_UNDO
) -> CombinedState:
    """
    Wraps project_reducer with undo/redo tracking.

    Only UNDOABLE_KINDS are recorded. Loading a document or resetting starts a
    fresh history. Every other action leaves the history object untouched.
    """
    if isinstance(action, Undo):
        return _restore(state, undo_history(state.history))

    if isinstance(action, Redo):
        return _restore(state, redo_history(state.history))

    project = project_reducer(state.project, action)

    if isinstance(action, (LoadDocument, Reset)):
        return CombinedState(project=project, history=create_history(project.snapshot()))

    kind = getattr(action, "kind", None)
    if kind in UNDOABLE_KINDS:
        return CombinedState(
            project=project,
            history=push_state(state.history, project.snapshot(), max_undo),
        )

    if project is state.project:
        return state
    return CombinedState(project=project, history=state.history)
