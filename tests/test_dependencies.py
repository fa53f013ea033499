"""Tests for the task dependency graph."""
import logging

import pytest

from boardsync.dependencies import DependencyGraph, add_edge, remove_edge, toggle_edge
from boardsync.errors import ValidationError
from boardsync.schema import BoardList, BoardState, Task


class TestSatisfaction:
    """Fixture board: P depends on B (B has one open checklist item)."""

    def test_no_dependencies_is_satisfied(self, state):
        assert DependencyGraph(state).is_satisfied("A")

    def test_dependency_with_empty_checklist_is_satisfied(self, state):
        state = add_edge(state, "Q", "A")   # A has no checklist
        assert DependencyGraph(state).is_satisfied("Q")

    def test_dependency_with_incomplete_item_is_not_satisfied(self, state):
        assert not DependencyGraph(state).is_satisfied("P")

    def test_dependency_with_completed_checklist_is_satisfied(self, state):
        state = add_edge(state, "Q", "C")   # C's only item is done
        assert DependencyGraph(state).is_satisfied("Q")

    def test_all_dependencies_must_be_complete(self, state):
        state = add_edge(state, "Q", "C")
        state = add_edge(state, "Q", "B")
        assert not DependencyGraph(state).is_satisfied("Q")

    def test_missing_dependency_is_skipped(self, state):
        tasks = dict(state.tasks)
        del tasks["B"]
        state = state.evolve(tasks=tasks)
        assert DependencyGraph(state).is_satisfied("P")

    def test_blocked(self, state):
        assert DependencyGraph(state).blocked() == {"P"}

    def test_unknown_task(self, state):
        with pytest.raises(ValidationError):
            DependencyGraph(state).is_satisfied("nope")


class TestEdges:

    def test_outgoing_and_incoming(self, state):
        state = add_edge(state, "Q", "B")
        graph = DependencyGraph(state)
        assert graph.outgoing("P") == ("B",)
        assert set(graph.incoming("B")) == {"P", "Q"}
        assert graph.incoming("A") == ()

    def test_add_edge_is_idempotent(self, state):
        assert add_edge(state, "P", "B") is state

    def test_add_edge_requires_both_tasks(self, state):
        with pytest.raises(ValidationError):
            add_edge(state, "P", "nope")
        with pytest.raises(ValidationError):
            add_edge(state, "nope", "P")

    def test_remove_edge(self, state):
        new = remove_edge(state, "P", "B")
        assert new.tasks["P"].dependencies == ()
        assert remove_edge(new, "P", "B") is new

    def test_toggle_edge(self, state):
        off = toggle_edge(state, "P", "B")
        assert off.tasks["P"].dependencies == ()
        on = toggle_edge(off, "P", "B")
        assert on.tasks["P"].dependencies == ("B",)

    def test_self_edge_accepted_with_warning(self, state, caplog):
        with caplog.at_level(logging.WARNING, logger="boardsync.dependencies"):
            new = add_edge(state, "A", "A")
        assert new.tasks["A"].dependencies == ("A",)
        assert "depends on itself" in caplog.text


class TestCycles:

    def test_no_cycles(self, state):
        assert DependencyGraph(state).find_cycles() == []

    def test_cycle_reported_not_rejected(self, state):
        state = add_edge(state, "B", "Q")
        state = add_edge(state, "Q", "P")   # P → B → Q → P
        cycles = DependencyGraph(state).find_cycles()
        assert len(cycles) == 1
        assert set(cycles[0]) == {"P", "B", "Q"}
        assert cycles[0][0] == cycles[0][-1]

    def test_self_edge_is_a_cycle(self, state):
        state = add_edge(state, "A", "A")
        assert DependencyGraph(state).find_cycles() == [["A", "A"]]

    def test_long_chain(self):
        """t0 → t1 → ... → t2999, then closed back onto t0."""
        n = 3000
        ids = [f"t{i}" for i in range(n)]
        tasks = {
            tid: Task(id=tid, list_id="L", title=tid, dependencies=(ids[i + 1],) if i + 1 < n else (), order=i)
            for i, tid in enumerate(ids)
        }
        state = BoardState(
            id="b", list_ids=("L",),
            lists={"L": BoardList(id="L", board_id="b", title="Chain", task_ids=tuple(ids))},
            tasks=tasks,
        )
        assert DependencyGraph(state).find_cycles() == []

        looped = add_edge(state, ids[-1], ids[0])
        cycles = DependencyGraph(looped).find_cycles()
        assert len(cycles) == 1
        assert cycles[0] == ids + [ids[0]]
