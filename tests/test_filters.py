"""Tests for the filtered board view (filters.py)"""
from datetime import date, datetime, timedelta

import pytest

from boardsync.filters import FilterCriteria, FilterView, visible
from boardsync.store import BoardStore

TODAY = date(2024, 5, 10)


def _at(days, hour=15):
    d = TODAY + timedelta(days=days)
    return datetime(d.year, d.month, d.day, hour, 30)


@pytest.fixture
def dated(store):
    """A due in 7 days (late evening), B in 8 days, C yesterday, P today early, Q none."""
    store.update_task("A", due_date=_at(7, hour=23))
    store.update_task("B", due_date=_at(8, hour=0))
    store.update_task("C", due_date=_at(-1))
    store.update_task("P", due_date=_at(0, hour=0))
    return store.snapshot()


class TestInactiveCriteria:

    def test_returns_every_task_in_order(self, state):
        result = visible(state, FilterCriteria(), TODAY)
        assert result == {"L1": ("A", "B", "C"), "L2": ("P", "Q")}

    def test_result_follows_board_list_order(self, state):
        state = state.evolve(list_ids=("L2", "L1"))
        assert list(visible(state, FilterCriteria(), TODAY)) == ["L2", "L1"]

    def test_only_empty_search_is_inactive(self):
        assert not FilterCriteria(search="").is_active
        assert FilterCriteria(search=" ").is_active
        assert FilterCriteria(search="x").is_active


class TestSearchLabelsMembers:

    def test_search_is_case_insensitive(self, store):
        store.update_task("Q", title="Deploy STAGING")
        result = visible(store.snapshot(), FilterCriteria(search="staging"), TODAY)
        assert result == {"L1": (), "L2": ("Q",)}

    def test_search_text_is_not_trimmed(self, store):
        store.update_task("A", title="fixture cleanup")
        store.update_task("B", title="fix login")
        result = visible(store.snapshot(), FilterCriteria(search="fix "), TODAY)
        assert result == {"L1": ("B",), "L2": ()}

    def test_label_colors(self, state):
        result = visible(state, FilterCriteria.build(labels=["red-500", "green-500"]), TODAY)
        assert result == {"L1": ("A",), "L2": ()}

    def test_members_match_any(self, state):
        result = visible(state, FilterCriteria.build(members=["u1", "u2"]), TODAY)
        assert result == {"L1": ("A",), "L2": ("Q",)}

    def test_criteria_are_conjunctive(self, state):
        crit = FilterCriteria.build(labels=["red-500"], members=["u2"])
        assert visible(state, crit, TODAY) == {"L1": (), "L2": ()}

    def test_active_count(self):
        crit = FilterCriteria.build(search="x", labels=["red-500"], members=["u1", "u2"], due_within_days=7)
        assert crit.active_count == 4


class TestDueWindow:

    def test_seven_day_window(self, dated):
        result = visible(dated, FilterCriteria(due_within_days=7), TODAY)
        # A (day 7) and P (today) in; B (day 8), C (yesterday), Q (no date) out
        assert result == {"L1": ("A",), "L2": ("P",)}

    def test_no_due_date_never_matches(self, dated):
        result = visible(dated, FilterCriteria(due_within_days=3650), TODAY)
        assert "Q" not in result["L2"]

    def test_aware_timestamp_compared_as_local_date(self, store):
        local_noon = datetime(TODAY.year, TODAY.month, TODAY.day, 12, 0).astimezone()
        store.update_task("Q", due_date=local_noon)
        result = visible(store.snapshot(), FilterCriteria(due_within_days=0), TODAY)
        assert result["L2"] == ("Q",)


class TestFilterView:

    def test_memoizes_on_snapshot_and_criteria(self, store):
        view = FilterView()
        crit = FilterCriteria.build(members=["u1"])
        snap = store.snapshot()

        first = view(snap, crit, TODAY)
        second = view(snap, FilterCriteria.build(members=["u1"]), TODAY)
        assert first is second
        assert (view.hits, view.misses) == (1, 1)

    def test_new_snapshot_recomputes(self, store):
        view = FilterView()
        crit = FilterCriteria()
        first = view(store.snapshot(), crit, TODAY)
        store.create_task("L1", "fresh")
        second = view(store.snapshot(), crit, TODAY)
        assert first is not second
        assert len(second["L1"]) == 4
        assert view.misses == 2

    def test_pure(self):
        store = BoardStore()
        assert visible(store.snapshot(), FilterCriteria(search="x"), TODAY) == {}
