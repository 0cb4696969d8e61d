from typing import List, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from scoresplit.domain.actions import ProjectAction, Redo, SetCurrentPage, Undo
from scoresplit.domain.history import can_redo, can_undo
from scoresplit.domain.models import Part, ProjectState, Staff, System
from scoresplit.domain.reducer import INITIAL_COMBINED, CombinedState, combined_reducer
from scoresplit.features.layout.logic import derive_parts_from_staffs
from scoresplit.kernel.system.config import APP_CONFIG
from scoresplit.kernel.system.logging import get_logger

logger = get_logger(__name__)


class ProjectSession(QObject):
    """
    Owns the editable project and its undo history for one desktop session.

    All edits go through dispatch(). Signals fire only when the corresponding
    state object actually changed.
    """

    state_changed = pyqtSignal()
    history_changed = pyqtSignal(bool, bool)  # can_undo, can_redo
    page_changed = pyqtSignal(int)

    def __init__(
        self, initial: CombinedState = INITIAL_COMBINED, max_undo: Optional[int] = None
    ):
        super().__init__()
        self._state = initial
        self._max_undo = max_undo or APP_CONFIG.max_undo

    @property
    def combined(self) -> CombinedState:
        return self._state

    @property
    def project(self) -> ProjectState:
        return self._state.project

    @property
    def staffs(self) -> tuple[Staff, ...]:
        return self._state.project.staffs

    @property
    def systems(self) -> tuple[System, ...]:
        return self._state.project.systems

    @property
    def current_page_index(self) -> int:
        return self._state.project.current_page_index

    @property
    def can_undo(self) -> bool:
        return can_undo(self._state.history)

    @property
    def can_redo(self) -> bool:
        return can_redo(self._state.history)

    def dispatch(self, action: ProjectAction) -> None:
        previous = self._state
        self._state = combined_reducer(previous, action, self._max_undo)
        if self._state is previous:
            return

        logger.debug(f"Applied {getattr(action, 'kind', type(action).__name__)}")
        if self._state.history is not previous.history:
            self.history_changed.emit(self.can_undo, self.can_redo)
        if self._state.project.current_page_index != previous.project.current_page_index:
            self.page_changed.emit(self._state.project.current_page_index)
        if self._state.project is not previous.project:
            self.state_changed.emit()

    def undo(self) -> None:
        self.dispatch(Undo())

    def redo(self) -> None:
        self.dispatch(Redo())

    def next_page(self) -> None:
        if self.current_page_index < self.project.page_count - 1:
            self.dispatch(SetCurrentPage(self.current_page_index + 1))

    def prev_page(self) -> None:
        if self.current_page_index > 0:
            self.dispatch(SetCurrentPage(self.current_page_index - 1))

    def parts(self) -> List[Part]:
        """
        Labeled parts in score order, for the export writers.
        """
        return derive_parts_from_staffs(self.staffs, self.systems)
