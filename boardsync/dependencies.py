"""
Task dependency graph.

An edge A → B means "task A depends on task B". Edges live in each task's
`dependencies` tuple, so the store stays the single source of truth; the
DependencyGraph class is a read-only view built over one snapshot.

Satisfaction: a task is satisfied when it has no dependencies, or when every
dependency task has an empty or fully completed checklist. Dependency ids
whose task no longer exists are skipped.

Known limitation: self-references and cycles are accepted as-is. add_edge()
logs a warning on a self-edge and find_cycles() reports cycles, but nothing
is rejected.
"""
import logging
from dataclasses import replace
from typing import Dict, List, Set, Tuple

from .errors import ValidationError
from .schema import BoardState

logger = logging.getLogger(__name__)


def _require(state: BoardState, *task_ids: str) -> None:
    for tid in task_ids:
        if tid not in state.tasks:
            raise ValidationError(f"Task {tid} not found")


def _with_dependencies(state: BoardState, task_id: str, deps: Tuple[str, ...]) -> BoardState:
    tasks = dict(state.tasks)
    tasks[task_id] = replace(tasks[task_id], dependencies=deps)
    return state.evolve(tasks=tasks)


def add_edge(state: BoardState, from_id: str, to_id: str) -> BoardState:
    """Record that ``from_id`` depends on ``to_id`` (idempotent)."""
    _require(state, from_id, to_id)
    if from_id == to_id:
        logger.warning(f"Task {from_id} now depends on itself")
    task = state.tasks[from_id]
    if to_id in task.dependencies:
        return state
    return _with_dependencies(state, from_id, task.dependencies + (to_id,))


def remove_edge(state: BoardState, from_id: str, to_id: str) -> BoardState:
    """Drop the edge if present. Dangling ids can be removed too."""
    _require(state, from_id)
    task = state.tasks[from_id]
    if to_id not in task.dependencies:
        return state
    return _with_dependencies(state, from_id, tuple(d for d in task.dependencies if d != to_id))


def toggle_edge(state: BoardState, from_id: str, to_id: str) -> BoardState:
    _require(state, from_id)
    if to_id in state.tasks[from_id].dependencies:
        return remove_edge(state, from_id, to_id)
    return add_edge(state, from_id, to_id)


class DependencyGraph:
    """Read-only view of the dependency edges of one snapshot."""

    def __init__(self, state: BoardState):
        self.state = state
        self._incoming: Dict[str, List[str]] = {}
        for task in state.tasks.values():
            for dep in task.dependencies:
                self._incoming.setdefault(dep, []).append(task.id)

    def outgoing(self, task_id: str) -> Tuple[str, ...]:
        """Ids ``task_id`` depends on."""
        task = self.state.tasks.get(task_id)
        if task is None:
            raise ValidationError(f"Task {task_id} not found")
        return task.dependencies

    def incoming(self, task_id: str) -> Tuple[str, ...]:
        """Ids of tasks that depend on ``task_id``."""
        return tuple(self._incoming.get(task_id, ()))

    def is_satisfied(self, task_id: str) -> bool:
        for dep_id in self.outgoing(task_id):
            dep = self.state.tasks.get(dep_id)
            if dep is None:
                continue
            if not dep.checklist_complete:
                return False
        return True

    def blocked(self) -> Set[str]:
        """Ids of every task whose dependencies are not satisfied."""
        return {tid for tid in self.state.tasks if not self.is_satisfied(tid)}

    def find_cycles(self) -> List[List[str]]:
        """Report dependency cycles (self-edges included). Does not reject them.

        Iterative DFS, so arbitrarily long chains are fine.
        """
        tasks = self.state.tasks
        cycles: List[List[str]] = []
        color: Dict[str, int] = {}   # 0/absent = unseen, 1 = on path, 2 = done

        for root in tasks:
            if color.get(root, 0):
                continue
            color[root] = 1
            path = [root]
            stack = [(root, iter(tasks[root].dependencies))]
            while stack:
                tid, deps = stack[-1]
                for dep in deps:
                    if dep not in tasks:
                        continue
                    seen = color.get(dep, 0)
                    if seen == 1:
                        cycles.append(path[path.index(dep):] + [dep])
                    elif seen == 0:
                        color[dep] = 1
                        path.append(dep)
                        stack.append((dep, iter(tasks[dep].dependencies)))
                        break
                else:
                    stack.pop()
                    path.pop()
                    color[tid] = 2
        return cycles
