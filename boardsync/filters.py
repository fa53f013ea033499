"""
Filtered board view.

visible() derives, per list and in board order, the ids of the tasks that
pass every ACTIVE criterion:

    search          case-insensitive substring of the title, taken verbatim (inactive when "")
    label_colors    task has a label of any of these colors     (inactive when empty)
    member_ids      task has any of these members               (inactive when empty)
    due_within_days due date in [today, today + N], date-only   (inactive when None)

A task with no due date never passes an active due filter. The derivation is
pure; FilterView memoizes it on (snapshot identity, criteria, today).
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Dict, Tuple, FrozenSet, Iterable

from .schema import BoardState, Task

VisibleTasks = Dict[str, Tuple[str, ...]]


@dataclass(frozen=True)
class FilterCriteria:
    search: str = ""
    label_colors: FrozenSet[str] = frozenset()
    member_ids: FrozenSet[str] = frozenset()
    due_within_days: Optional[int] = None

    @classmethod
    def build(
        cls,
        search: str = "",
        labels: Iterable[str] = (),
        members: Iterable[str] = (),
        due_within_days: Optional[int] = None,
    ) -> "FilterCriteria":
        return cls(
            search=search or "",
            label_colors=frozenset(labels),
            member_ids=frozenset(members),
            due_within_days=due_within_days,
        )

    @property
    def is_active(self) -> bool:
        return bool(
            self.search or self.label_colors or self.member_ids
            or self.due_within_days is not None
        )

    @property
    def active_count(self) -> int:
        """Number of active selections (badge count in the filter bar)."""
        return len(self.label_colors) + len(self.member_ids) + (1 if self.due_within_days is not None else 0)


def _due_day(value: datetime) -> date:
    # Aware timestamps are read in local time before truncating to a date
    if value.tzinfo is not None:
        value = value.astimezone()
    return value.date()


def matches(task: Task, criteria: FilterCriteria, today: date) -> bool:
    """True when ``task`` passes every active criterion."""
    needle = criteria.search.lower()
    if needle and needle not in task.title.lower():
        return False
    if criteria.label_colors and not any(l.color in criteria.label_colors for l in task.labels):
        return False
    if criteria.member_ids and not any(m in criteria.member_ids for m in task.member_ids):
        return False
    if criteria.due_within_days is not None:
        if task.due_date is None:
            return False
        delta = (_due_day(task.due_date) - today).days
        if not 0 <= delta <= criteria.due_within_days:
            return False
    return True


def visible(state: BoardState, criteria: FilterCriteria, today: Optional[date] = None) -> VisibleTasks:
    """Per-list ordered subsequence of task ids passing ``criteria``."""
    today = today or date.today()
    result: VisibleTasks = {}
    for lst in state.ordered_lists():
        result[lst.id] = tuple(
            task.id for task in state.tasks_in(lst.id)
            if not criteria.is_active or matches(task, criteria, today)
        )
    return result


class FilterView:
    """Single-entry memo around visible().

    Snapshots are immutable, so identity of the snapshot plus the criteria
    value fully determine the output.
    """

    def __init__(self):
        self._key = None
        self._state: Optional[BoardState] = None   # keeps the keyed snapshot alive
        self._result: Optional[VisibleTasks] = None
        self.hits = 0
        self.misses = 0

    def __call__(self, state: BoardState, criteria: FilterCriteria, today: Optional[date] = None) -> VisibleTasks:
        today = today or date.today()
        key = (id(state), criteria, today)
        if self._key == key and self._state is state:
            self.hits += 1
            return self._result
        self.misses += 1
        self._result = visible(state, criteria, today)
        self._key = key
        self._state = state
        return self._result
