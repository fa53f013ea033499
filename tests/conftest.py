"""Shared fixtures for boardsync tests."""

import copy
import threading

import pytest

from boardsync.errors import SyncError
from boardsync.schema import BoardState
from boardsync.store import BoardStore


def make_payload(board_id="b1"):
    """Wire snapshot: L1 = [A, B, C], L2 = [P, Q]."""

    def task(tid, list_id, order, **extra):
        data = {
            "id": tid,
            "listId": list_id,
            "title": f"Task {tid}",
            "description": "",
            "memberIds": [],
            "labels": [],
            "dueDate": None,
            "comments": [],
            "checklist": [],
            "attachments": [],
            "dependencies": [],
            "createdAt": "2024-05-01T10:00:00.000Z",
            "order": order,
        }
        data.update(extra)
        return data

    return {
        "id": board_id,
        "title": "Roadmap",
        "background": "bg-slate-900",
        "members": [
            {"id": "u1", "username": "ana", "avatar": "AN", "email": "ana@example.com", "role": "admin"},
            {"id": "u2", "username": "raj", "avatar": "", "email": "raj@example.com", "role": "member"},
        ],
        "listIds": ["L1", "L2"],
        "createdAt": "2024-05-01T09:00:00.000Z",
        "lists": {
            "L1": {"id": "L1", "boardId": board_id, "title": "To Do", "taskIds": ["A", "B", "C"], "order": 0},
            "L2": {"id": "L2", "boardId": board_id, "title": "Doing", "taskIds": ["P", "Q"], "order": 1},
        },
        "tasks": {
            "A": task("A", "L1", 0, labels=[{"id": "l1", "text": "Urgent", "color": "red-500"}], memberIds=["u1"]),
            "B": task("B", "L1", 1, checklist=[{"id": "c1", "text": "write", "isCompleted": False}]),
            "C": task("C", "L1", 2, checklist=[{"id": "c2", "text": "ship", "isCompleted": True}]),
            "P": task("P", "L2", 0, dependencies=["B"]),
            "Q": task("Q", "L2", 1, memberIds=["u2"]),
        },
    }


class FakeApi:
    """In-memory BoardApi that records pushes."""

    def __init__(self, boards=None, fail_push=None, fail_fetch=None):
        self.boards = boards or {}
        self.fail_push = fail_push
        self.fail_fetch = fail_fetch
        self.pushed = []
        self._lock = threading.Lock()

    def fetch_board(self, board_id):
        if self.fail_fetch:
            raise self.fail_fetch
        if board_id not in self.boards:
            raise SyncError(f"Board {board_id} not found")
        return copy.deepcopy(self.boards[board_id])

    def push_board(self, payload):
        with self._lock:
            self.pushed.append(payload)
        if self.fail_push:
            raise self.fail_push


@pytest.fixture
def payload():
    return make_payload()


@pytest.fixture
def state(payload):
    return BoardState.from_dict(payload)


@pytest.fixture
def store(state):
    return BoardStore(state)


def orders_match(state, list_id):
    """Every task's order equals its index in the list sequence."""
    lst = state.lists[list_id]
    return all(state.tasks[tid].order == i for i, tid in enumerate(lst.task_ids))
