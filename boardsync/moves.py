"""
Move engine: drag-and-drop reorder commands.

Commands form a closed set:
    ListMove(source_index, dest_index)
    TaskMove(source_list_id, dest_list_id, source_index, dest_index)

apply_move() is pure. It returns a new BoardState, or the very same object
when the move is a no-op (callers use identity to skip a sync push).

Ordering rules:
  - a destination index at or beyond the sequence length appends
  - an out-of-range source index is a ValidationError (state unchanged)
  - after any task splice, `order` is recomputed for the WHOLE source and
    destination sequences, never patched for the moved task only
"""
import logging
from dataclasses import dataclass, replace
from typing import Union, List

from .errors import ValidationError
from .schema import BoardState, reindex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListMove:
    """Reorder a column on the board."""
    source_index: int
    dest_index: int


@dataclass(frozen=True)
class TaskMove:
    """Reorder a card within a list, or move it to another list."""
    source_list_id: str
    dest_list_id: str
    source_index: int
    dest_index: int


MoveCommand = Union[ListMove, TaskMove]


def _check_source(seq, index: int, what: str) -> None:
    if not 0 <= index < len(seq):
        raise ValidationError(
            f"Source index {index} out of range for {what} (length {len(seq)})"
        )


def _check_dest(index: int) -> None:
    if index < 0:
        raise ValidationError(f"Destination index {index} must not be negative")


def _splice(seq: List[str], item: str, index: int) -> None:
    """Insert ``item`` at ``index``; indices past the end append."""
    if index >= len(seq):
        seq.append(item)
    else:
        seq.insert(index, item)


def is_noop(state: BoardState, command: MoveCommand) -> bool:
    """True when ``command`` would leave the board exactly as it is.

    Assumes the command already passed validation.
    """
    if isinstance(command, ListMove):
        last = len(state.list_ids) - 1
        return min(command.dest_index, last) == command.source_index
    if isinstance(command, TaskMove):
        if command.source_list_id != command.dest_list_id:
            return False
        last = len(state.lists[command.source_list_id].task_ids) - 1
        return min(command.dest_index, last) == command.source_index
    raise TypeError(f"Unknown move command: {command!r}")


def _move_list(state: BoardState, command: ListMove) -> BoardState:
    _check_source(state.list_ids, command.source_index, "board lists")
    _check_dest(command.dest_index)
    if is_noop(state, command):
        logger.debug(f"List move {command.source_index}->{command.dest_index} is a no-op")
        return state

    list_ids = list(state.list_ids)
    moved = list_ids.pop(command.source_index)
    _splice(list_ids, moved, command.dest_index)
    return state.evolve(list_ids=tuple(list_ids))


def _move_task(state: BoardState, command: TaskMove) -> BoardState:
    for list_id in (command.source_list_id, command.dest_list_id):
        if list_id not in state.lists:
            raise ValidationError(f"List {list_id} not found")

    source = state.lists[command.source_list_id]
    _check_source(source.task_ids, command.source_index, f"list {source.id}")
    _check_dest(command.dest_index)
    if is_noop(state, command):
        logger.debug(f"Task move within {source.id} at {command.source_index} is a no-op")
        return state

    lists = dict(state.lists)
    tasks = dict(state.tasks)

    source_ids = list(source.task_ids)
    task_id = source_ids.pop(command.source_index)

    if command.source_list_id == command.dest_list_id:
        _splice(source_ids, task_id, command.dest_index)
        lists[source.id] = replace(source, task_ids=tuple(source_ids))
        reindex(tasks, source_ids)
    else:
        dest = state.lists[command.dest_list_id]
        dest_ids = list(dest.task_ids)
        _splice(dest_ids, task_id, command.dest_index)
        lists[source.id] = replace(source, task_ids=tuple(source_ids))
        lists[dest.id] = replace(dest, task_ids=tuple(dest_ids))
        if task_id in tasks:
            tasks[task_id] = replace(tasks[task_id], list_id=dest.id)
        reindex(tasks, source_ids)
        reindex(tasks, dest_ids)

    return state.evolve(lists=lists, tasks=tasks)


def apply_move(state: BoardState, command: MoveCommand) -> BoardState:
    """Apply a reorder command and return the resulting snapshot."""
    if isinstance(command, ListMove):
        return _move_list(state, command)
    if isinstance(command, TaskMove):
        return _move_task(state, command)
    raise TypeError(f"Unknown move command: {command!r}")
