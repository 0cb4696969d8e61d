from dataclasses import dataclass
from typing import Generic, Tuple, TypeVar

T = TypeVar("T")

MAX_UNDO = 50


@dataclass(frozen=True)
class UndoHistory(Generic[T]):
    past: Tuple[T, ...]
    present: T
    future: Tuple[T, ...]


def create_history(initial: T) -> UndoHistory[T]:
    return UndoHistory(past=(), present=initial, future=())


def push_state(
    history: UndoHistory[T], new_present: T, max_size: int = MAX_UNDO
) -> UndoHistory[T]:
    """
    Records the current present and moves to new_present.

    The oldest entries are evicted once past exceeds max_size. Future is dropped.
    """
    past = history.past + (history.present,)
    if len(past) > max_size:
        past = past[len(past) - max_size :]
    return UndoHistory(past=past, present=new_present, future=())


def undo(history: UndoHistory[T]) -> UndoHistory[T]:
    if not history.past:
        return history
    return UndoHistory(
        past=history.past[:-1],
        present=history.past[-1],
        future=(history.present,) + history.future,
    )


def redo(history: UndoHistory[T]) -> UndoHistory[T]:
    if not history.future:
        return history
    return UndoHistory(
        past=history.past + (history.present,),
        present=history.future[0],
        future=history.future[1:],
    )


def can_undo(history: UndoHistory[T]) -> bool:
    return len(history.past) > 0


def can_redo(history: UndoHistory[T]) -> bool:
    return len(history.future) > 0


def clear_history(history: UndoHistory[T]) -> UndoHistory[T]:
    return UndoHistory(past=(), present=history.present, future=())
