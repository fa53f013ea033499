"""
Board schema and JSON wire codec.

A board snapshot is normalized:
  BoardState ── list_ids (ordered) ──▶ lists[id] ── task_ids (ordered) ──▶ tasks[id]

Every entity is a frozen dataclass and every collection is a tuple or a
read-only mapping, so a snapshot handed to a reader can never change under it.
Mutations build new snapshots (see store.py / moves.py).

Wire format keys are camelCase to match the board service JSON
(listId, memberIds, dueDate, isCompleted, taskIds, listIds, ...).
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Optional, List, Dict, Any, Mapping, Tuple, Iterable
import json


ROLES = ("admin", "member", "viewer")

# Label palette offered by the board UI (color key → display hex)
LABEL_COLORS = {
    "red-500": "#ef4444",
    "yellow-500": "#eab308",
    "green-500": "#22c55e",
    "blue-500": "#3b82f6",
    "purple-500": "#a855f7",
    "gray-500": "#6b7280",
}


def utc_now() -> str:
    """ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO date/datetime string (a trailing 'Z' is accepted)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def freeze(mapping: Mapping) -> Mapping:
    """Return a read-only view over a private copy of ``mapping``."""
    return MappingProxyType(dict(mapping))


# ═══════════════════════════════════════════════════════════════
# TASK-OWNED VALUES
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Label:
    id: str
    text: str
    color: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "color": self.color}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Label":
        return cls(id=data.get("id", ""), text=data.get("text", ""), color=data.get("color", ""))


@dataclass(frozen=True)
class ChecklistItem:
    id: str
    text: str
    is_completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "isCompleted": self.is_completed}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChecklistItem":
        return cls(
            id=data.get("id", ""),
            text=data.get("text", ""),
            is_completed=bool(data.get("isCompleted", False)),
        )


@dataclass(frozen=True)
class Attachment:
    """Attachment metadata only; upload mechanics live outside the core."""
    id: str
    name: str
    url: str
    type: str = ""
    uploaded_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "type": self.type,
            "uploadedAt": self.uploaded_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attachment":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            url=data.get("url", ""),
            type=data.get("type", ""),
            uploaded_at=data.get("uploadedAt") or "",
        )


@dataclass(frozen=True)
class Comment:
    id: str
    user_id: str
    text: str
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "userId": self.user_id, "text": self.text, "createdAt": self.created_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Comment":
        return cls(
            id=data.get("id", ""),
            user_id=data.get("userId", ""),
            text=data.get("text", ""),
            created_at=data.get("createdAt") or "",
        )


@dataclass(frozen=True)
class Member:
    """A board member as shown in member pickers."""
    id: str
    username: str
    avatar: str = ""
    email: str = ""
    role: str = "member"    # "admin", "member", "viewer"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "avatar": self.avatar,
            "email": self.email,
            "role": self.role,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Member":
        role = data.get("role", "member")
        return cls(
            id=data.get("id", ""),
            username=data.get("username", ""),
            avatar=data.get("avatar", ""),
            email=data.get("email", ""),
            role=role if role in ROLES else "member",
        )


# ═══════════════════════════════════════════════════════════════
# TASKS AND LISTS
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Task:
    """A card on the board. ``order`` is a cache of its index in its list."""

    id: str
    list_id: str
    title: str
    description: str = ""
    member_ids: Tuple[str, ...] = ()
    labels: Tuple[Label, ...] = ()
    due_date: Optional[datetime] = None
    comments: Tuple[Comment, ...] = ()
    checklist: Tuple[ChecklistItem, ...] = ()
    attachments: Tuple[Attachment, ...] = ()
    dependencies: Tuple[str, ...] = ()      # ids of tasks this task depends on
    created_at: str = field(default_factory=utc_now)
    order: int = 0

    @property
    def checklist_done(self) -> int:
        return sum(1 for item in self.checklist if item.is_completed)

    @property
    def checklist_complete(self) -> bool:
        """True when the checklist is empty or every item is completed."""
        return all(item.is_completed for item in self.checklist)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "listId": self.list_id,
            "title": self.title,
            "description": self.description,
            "memberIds": list(self.member_ids),
            "labels": [l.to_dict() for l in self.labels],
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "comments": [c.to_dict() for c in self.comments],
            "checklist": [c.to_dict() for c in self.checklist],
            "attachments": [a.to_dict() for a in self.attachments],
            "dependencies": list(self.dependencies),
            "createdAt": self.created_at,
            "order": self.order,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(
            id=data.get("id", ""),
            list_id=data.get("listId", ""),
            title=data.get("title", ""),
            description=data.get("description") or "",
            member_ids=tuple(data.get("memberIds") or ()),
            labels=tuple(Label.from_dict(l) for l in data.get("labels") or ()),
            due_date=parse_datetime(data.get("dueDate")),
            comments=tuple(Comment.from_dict(c) for c in data.get("comments") or ()),
            checklist=tuple(ChecklistItem.from_dict(c) for c in data.get("checklist") or ()),
            attachments=tuple(Attachment.from_dict(a) for a in data.get("attachments") or ()),
            dependencies=tuple(data.get("dependencies") or ()),
            created_at=data.get("createdAt") or "",
            order=int(data.get("order", 0) or 0),
        )


@dataclass(frozen=True)
class BoardList:
    """A column. ``task_ids`` is the authoritative task order."""

    id: str
    board_id: str
    title: str
    task_ids: Tuple[str, ...] = ()

    def to_dict(self, order: int = 0) -> Dict[str, Any]:
        return {
            "id": self.id,
            "boardId": self.board_id,
            "title": self.title,
            "taskIds": list(self.task_ids),
            "order": order,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoardList":
        return cls(
            id=data.get("id", ""),
            board_id=data.get("boardId", ""),
            title=data.get("title", ""),
            task_ids=tuple(data.get("taskIds") or ()),
        )


# ═══════════════════════════════════════════════════════════════
# BOARD SNAPSHOT
# ═══════════════════════════════════════════════════════════════

# Top-level wire keys that the reconciler treats as replaceable collections
WIRE_FIELDS = ("title", "background", "members", "listIds", "lists", "tasks")


@dataclass(frozen=True)
class BoardState:
    """Complete board snapshot at one instant."""

    id: str
    title: str = ""
    background: str = ""
    members: Tuple[Member, ...] = ()
    list_ids: Tuple[str, ...] = ()
    lists: Mapping[str, BoardList] = field(default_factory=lambda: freeze({}))
    tasks: Mapping[str, Task] = field(default_factory=lambda: freeze({}))
    created_at: str = ""

    def __post_init__(self):
        # Always hold read-only views, whatever the caller passed in
        if not isinstance(self.lists, MappingProxyType):
            object.__setattr__(self, "lists", freeze(self.lists))
        if not isinstance(self.tasks, MappingProxyType):
            object.__setattr__(self, "tasks", freeze(self.tasks))

    def evolve(self, **changes) -> "BoardState":
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)

    def tasks_in(self, list_id: str) -> List[Task]:
        """Tasks of a list in sequence order (ids without a task are skipped)."""
        lst = self.lists[list_id]
        return [self.tasks[tid] for tid in lst.task_ids if tid in self.tasks]

    def ordered_lists(self) -> List[BoardList]:
        return [self.lists[lid] for lid in self.list_ids if lid in self.lists]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the denormalized wire snapshot."""
        list_pos = {lid: i for i, lid in enumerate(self.list_ids)}
        return {
            "id": self.id,
            "title": self.title,
            "background": self.background,
            "members": [m.to_dict() for m in self.members],
            "listIds": list(self.list_ids),
            "createdAt": self.created_at,
            "lists": {lid: l.to_dict(list_pos.get(lid, 0)) for lid, l in self.lists.items()},
            "tasks": {tid: t.to_dict() for tid, t in self.tasks.items()},
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoardState":
        """Deserialize a wire snapshot. Missing collections default to empty."""
        lists = {lid: BoardList.from_dict(l) for lid, l in (data.get("lists") or {}).items()}
        tasks = {tid: Task.from_dict(t) for tid, t in (data.get("tasks") or {}).items()}
        return cls(
            id=data.get("id", ""),
            title=data.get("title", ""),
            background=data.get("background", ""),
            members=tuple(Member.from_dict(m) for m in data.get("members") or ()),
            list_ids=tuple(data.get("listIds") or ()),
            lists=lists,
            tasks=tasks,
            created_at=data.get("createdAt") or "",
        )


def reindex(tasks: Dict[str, Task], task_ids: Iterable[str]) -> None:
    """Rewrite ``order`` of every task in ``task_ids`` to its position.

    Works on a private (mutable) copy of a task map that is about to be
    frozen into a new snapshot.
    """
    for index, tid in enumerate(task_ids):
        task = tasks.get(tid)
        if task is not None and task.order != index:
            tasks[tid] = replace(task, order=index)
