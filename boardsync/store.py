"""
Normalized board store (copy-on-write).

BoardStore holds the current BoardState. Every mutating call validates first,
builds a NEW snapshot, installs it and returns it; the previous snapshot is
never touched, so renderers holding it keep a consistent view.

Invariants kept by every operation:
  - a task id appears exactly once, in the sequence of the list named by its list_id
  - task.order == index of the task in its list's sequence
  - board.list_ids holds each list id exactly once

Deleting a list purges its tasks from the task map as well. Deleting a task
does NOT clean other tasks' dependency ids that point at it.
"""
import logging
import time
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Optional, Dict, Any

from .errors import ValidationError
from .moves import MoveCommand, apply_move
from .schema import (
    BoardState, BoardList, Task, Label, ChecklistItem, Comment, Attachment,
    Member, LABEL_COLORS, reindex, utc_now,
)

logger = logging.getLogger(__name__)

# Fields a caller may change through update_task()
EDITABLE_TASK_FIELDS = {
    "title", "description", "member_ids", "labels", "due_date",
    "comments", "checklist", "attachments", "dependencies",
}


def make_id(prefix: str) -> str:
    """Generate a sortable unique id (ms-precision timestamp + random hex)."""
    ts = int(time.time() * 1000)
    rand = uuid.uuid4().hex[:8]
    return f"{prefix}-{ts}-{rand}"


class BoardStore:
    """Owner of the current board snapshot."""

    def __init__(self, state: Optional[BoardState] = None):
        self._state = state if state is not None else BoardState(id="")

    # ──────────────────────────────────────────
    # Snapshot access
    # ──────────────────────────────────────────

    def snapshot(self) -> BoardState:
        """Current immutable snapshot."""
        return self._state

    def replace(self, state: BoardState) -> BoardState:
        """Install a whole snapshot (initial fetch, inbound merge)."""
        self._state = state
        return state

    def apply(self, command: MoveCommand) -> BoardState:
        """Run a move command; a no-op returns the unchanged snapshot."""
        self._state = apply_move(self._state, command)
        return self._state

    # ──────────────────────────────────────────
    # Lookups
    # ──────────────────────────────────────────

    def _task(self, task_id: str) -> Task:
        task = self._state.tasks.get(task_id)
        if task is None:
            raise ValidationError(f"Task {task_id} not found")
        return task

    def _list(self, list_id: str) -> BoardList:
        lst = self._state.lists.get(list_id)
        if lst is None:
            raise ValidationError(f"List {list_id} not found")
        return lst

    # ──────────────────────────────────────────
    # Core upserts / removals
    # ──────────────────────────────────────────

    def upsert_task(self, task: Task) -> BoardState:
        """Insert or replace a task, keeping list sequences consistent.

        - new task        → appended to its list
        - same list       → entity replaced, position kept
        - list changed    → moved to the end of the new list
        """
        state = self._state
        dest = self._list(task.list_id)
        lists = dict(state.lists)
        tasks = dict(state.tasks)

        existing = state.tasks.get(task.id)
        if existing is not None and existing.list_id == task.list_id:
            tasks[task.id] = task
            reindex(tasks, dest.task_ids)
        else:
            if existing is not None:
                old = state.lists.get(existing.list_id)
                if old is not None:
                    old_ids = tuple(t for t in old.task_ids if t != task.id)
                    lists[old.id] = replace(old, task_ids=old_ids)
                    reindex(tasks, old_ids)
            dest_ids = dest.task_ids + (task.id,)
            lists[dest.id] = replace(dest, task_ids=dest_ids)
            tasks[task.id] = replace(task, order=len(dest_ids) - 1)

        self._state = state.evolve(lists=lists, tasks=tasks)
        return self._state

    def upsert_list(self, lst: BoardList) -> BoardState:
        """Insert a new (empty) list at the end, or replace an existing list's fields."""
        state = self._state
        lists = dict(state.lists)
        existing = state.lists.get(lst.id)
        if existing is None:
            if lst.task_ids:
                raise ValidationError(f"New list {lst.id} must not carry tasks")
            lists[lst.id] = replace(lst, board_id=lst.board_id or state.id)
            self._state = state.evolve(lists=lists, list_ids=state.list_ids + (lst.id,))
        else:
            # The stored sequence stays authoritative
            lists[lst.id] = replace(lst, task_ids=existing.task_ids)
            self._state = state.evolve(lists=lists)
        return self._state

    def remove_task(self, task_id: str) -> BoardState:
        """Delete a task: drop it from its list's sequence and from the task map."""
        state = self._state
        task = self._task(task_id)
        lists = dict(state.lists)
        tasks = dict(state.tasks)
        del tasks[task_id]

        owner = state.lists.get(task.list_id)
        if owner is not None:
            remaining = tuple(t for t in owner.task_ids if t != task_id)
            lists[owner.id] = replace(owner, task_ids=remaining)
            reindex(tasks, remaining)

        self._state = state.evolve(lists=lists, tasks=tasks)
        return self._state

    def remove_list(self, list_id: str) -> BoardState:
        """Delete a list and purge the tasks it contained."""
        state = self._state
        lst = self._list(list_id)
        lists = dict(state.lists)
        tasks = dict(state.tasks)
        del lists[list_id]
        for tid in lst.task_ids:
            tasks.pop(tid, None)

        self._state = state.evolve(
            lists=lists,
            tasks=tasks,
            list_ids=tuple(lid for lid in state.list_ids if lid != list_id),
        )
        logger.debug(f"Removed list {list_id} with {len(lst.task_ids)} task(s)")
        return self._state

    # ──────────────────────────────────────────
    # Creation
    # ──────────────────────────────────────────

    def create_task(self, list_id: str, title: str, task_id: Optional[str] = None) -> Task:
        """Append a fresh task to ``list_id`` and return it."""
        title = (title or "").strip()
        if not title:
            raise ValidationError("Task title must not be empty")
        self._list(list_id)
        if task_id and task_id in self._state.tasks:
            raise ValidationError(f"Task {task_id} already exists")
        task = Task(id=task_id or make_id("task"), list_id=list_id, title=title)
        self.upsert_task(task)
        return self._state.tasks[task.id]

    def create_list(self, title: str, list_id: Optional[str] = None) -> BoardList:
        """Append a fresh, empty list to the board and return it."""
        title = (title or "").strip()
        if not title:
            raise ValidationError("List title must not be empty")
        if list_id and list_id in self._state.lists:
            raise ValidationError(f"List {list_id} already exists")
        lst = BoardList(id=list_id or make_id("list"), board_id=self._state.id, title=title)
        self.upsert_list(lst)
        return self._state.lists[lst.id]

    def duplicate_task(self, task_id: str, suffix: str = "(copy)") -> Task:
        """Copy a task (without comments) right after the original."""
        state = self._state
        original = self._task(task_id)
        owner = self._list(original.list_id)

        copy = replace(
            original,
            id=make_id("task"),
            title=f"{original.title} {suffix}".strip(),
            comments=(),
            created_at=utc_now(),
        )
        ids = list(owner.task_ids)
        ids.insert(ids.index(task_id) + 1, copy.id)

        lists = dict(state.lists)
        tasks = dict(state.tasks)
        tasks[copy.id] = copy
        lists[owner.id] = replace(owner, task_ids=tuple(ids))
        reindex(tasks, ids)

        self._state = state.evolve(lists=lists, tasks=tasks)
        return self._state.tasks[copy.id]

    # ──────────────────────────────────────────
    # Edits
    # ──────────────────────────────────────────

    def rename_list(self, list_id: str, title: str) -> BoardState:
        title = (title or "").strip()
        if not title:
            raise ValidationError("List title must not be empty")
        return self.upsert_list(replace(self._list(list_id), title=title))

    def update_task(self, task_id: str, **changes: Any) -> BoardState:
        """Replace editable fields of a task. Moving lists goes through moves.py."""
        unknown = set(changes) - EDITABLE_TASK_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update task fields: {sorted(unknown)}")
        task = self._task(task_id)
        for key in ("member_ids", "labels", "comments", "checklist", "attachments", "dependencies"):
            if key in changes:
                changes[key] = tuple(changes[key])
        return self.upsert_task(replace(task, **changes))

    def add_member(self, member: Member) -> BoardState:
        """Add a board member (replaces an existing member with the same id)."""
        members = tuple(m for m in self._state.members if m.id != member.id) + (member,)
        self._state = self._state.evolve(members=members)
        return self._state

    def toggle_member(self, task_id: str, member_id: str) -> BoardState:
        task = self._task(task_id)
        if member_id in task.member_ids:
            member_ids = tuple(m for m in task.member_ids if m != member_id)
        else:
            member_ids = task.member_ids + (member_id,)
        return self.update_task(task_id, member_ids=member_ids)

    def toggle_label(self, task_id: str, color: str, text: str = "") -> BoardState:
        """Labels are keyed by color: toggling a present color removes it.

        Only palette colors (LABEL_COLORS) can be added.
        """
        task = self._task(task_id)
        if any(l.color == color for l in task.labels):
            labels = tuple(l for l in task.labels if l.color != color)
        else:
            if color not in LABEL_COLORS:
                raise ValidationError(f"Unknown label color: {color}")
            labels = task.labels + (Label(id=make_id("label"), text=text, color=color),)
        return self.update_task(task_id, labels=labels)

    def set_due_date(self, task_id: str, due: Optional[datetime]) -> BoardState:
        return self.update_task(task_id, due_date=due)

    def add_checklist_item(self, task_id: str, text: str) -> BoardState:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Checklist item text must not be empty")
        task = self._task(task_id)
        item = ChecklistItem(id=make_id("item"), text=text)
        return self.update_task(task_id, checklist=task.checklist + (item,))

    def toggle_checklist_item(self, task_id: str, item_id: str) -> BoardState:
        task = self._task(task_id)
        if not any(i.id == item_id for i in task.checklist):
            raise ValidationError(f"Checklist item {item_id} not found on {task_id}")
        checklist = tuple(
            replace(i, is_completed=not i.is_completed) if i.id == item_id else i
            for i in task.checklist
        )
        return self.update_task(task_id, checklist=checklist)

    def remove_checklist_item(self, task_id: str, item_id: str) -> BoardState:
        task = self._task(task_id)
        return self.update_task(task_id, checklist=tuple(i for i in task.checklist if i.id != item_id))

    def add_comment(self, task_id: str, user_id: str, text: str) -> BoardState:
        """Comments are kept newest first."""
        text = (text or "").strip()
        if not text:
            raise ValidationError("Comment text must not be empty")
        task = self._task(task_id)
        comment = Comment(id=make_id("comment"), user_id=user_id, text=text)
        return self.update_task(task_id, comments=(comment,) + task.comments)

    def add_attachment(self, task_id: str, name: str, url: str, mime_type: str = "") -> BoardState:
        task = self._task(task_id)
        att = Attachment(id=make_id("att"), name=name, url=url, type=mime_type)
        return self.update_task(task_id, attachments=task.attachments + (att,))

    def remove_attachment(self, task_id: str, attachment_id: str) -> BoardState:
        task = self._task(task_id)
        return self.update_task(
            task_id, attachments=tuple(a for a in task.attachments if a.id != attachment_id)
        )

    # ──────────────────────────────────────────
    # Stats
    # ──────────────────────────────────────────

    def get_stats(self) -> Dict[str, Any]:
        """Task counts per list plus checklist progress totals."""
        state = self._state
        stats = {"by_list": {}, "total": len(state.tasks), "checklist_done": 0, "checklist_total": 0}
        for lst in state.ordered_lists():
            stats["by_list"][lst.title] = len(lst.task_ids)
        for task in state.tasks.values():
            stats["checklist_done"] += task.checklist_done
            stats["checklist_total"] += len(task.checklist)
        return stats
