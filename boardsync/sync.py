"""
Board session: optimistic local commands + remote reconciliation.

Lifecycle per session:

    IDLE ──local mutation──▶ SYNCING (push in flight) ──▶ IDLE
    inbound snapshot ──▶ RECONCILING ──▶ back to IDLE / SYNCING

Local path:
  command → store updated immediately → change listeners → full snapshot queued
  for ONE best-effort push (no retry, no rollback on failure; failures reach
  error listeners as SyncError).

Inbound path:
  channel callback (any thread) → call_soon_threadsafe → single-consumer queue
  → merge_snapshot(): every top-level collection present in the payload
  REPLACES the local one (remote wins, no field-level merge). A local edit not
  yet reflected in the next inbound snapshot is silently overwritten; that is
  the accepted cost of this policy.

Channel lifecycle:
  at most one live subscription. open() tears the previous one down first;
  messages tagged with an older generation are dropped. An open() whose fetch
  is overtaken by a later open() or close() installs nothing.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .api import BoardApi
from .channel import LiveChannel, Subscription
from .config import SyncConfig
from .dependencies import DependencyGraph, add_edge, remove_edge, toggle_edge
from .errors import SyncError, ValidationError
from .filters import FilterCriteria, FilterView, VisibleTasks
from .moves import MoveCommand
from .schema import BoardState, BoardList, Task, WIRE_FIELDS, reindex
from .store import BoardStore

logger = logging.getLogger(__name__)

# BoardStore task-edit helpers reachable through BoardSession.edit()
TASK_EDITS = (
    "toggle_member",
    "toggle_label",
    "set_due_date",
    "add_checklist_item",
    "toggle_checklist_item",
    "remove_checklist_item",
    "add_comment",
    "add_attachment",
    "remove_attachment",
)


class SyncState(Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    RECONCILING = "reconciling"


# ═══════════════════════════════════════════════════════════════
# MERGE
# ═══════════════════════════════════════════════════════════════

def normalize_order(state: BoardState) -> BoardState:
    """Re-derive every task's ``order`` from its list sequence."""
    tasks = dict(state.tasks)
    for lst in state.lists.values():
        reindex(tasks, lst.task_ids)
    return state.evolve(tasks=tasks)


def merge_snapshot(local: BoardState, incoming: Dict[str, Any]) -> BoardState:
    """Remote-wins merge of an inbound (possibly partial) wire snapshot.

    Returns ``local`` itself when the merge changes nothing.
    """
    if not incoming:
        return local
    merged = local.to_dict()
    for key in WIRE_FIELDS:
        if key in incoming:
            merged[key] = incoming[key]
    try:
        state = normalize_order(BoardState.from_dict(merged))
    except (ValueError, TypeError, AttributeError) as e:
        raise SyncError(f"Malformed board snapshot: {e}") from e
    if state.to_dict() == local.to_dict():
        return local
    return state


# ═══════════════════════════════════════════════════════════════
# SESSION
# ═══════════════════════════════════════════════════════════════

class BoardSession:
    """Owns one board's store, its live subscription and its push queue."""

    def __init__(self, api: BoardApi, channel: LiveChannel, config: Optional[SyncConfig] = None):
        self.api = api
        self.channel = channel
        self.config = config or SyncConfig()
        self.store = BoardStore()
        self.board_id: Optional[str] = None
        self.state = SyncState.IDLE
        self.subscribers: Dict[str, List[Callable]] = {}   # "change" | "error" -> callbacks

        self._subscription: Optional[Subscription] = None
        self._generation = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._inbound: Optional[asyncio.Queue] = None
        self._outbound: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self._pushing = False
        self._filter_view = FilterView()

    async def __aenter__(self) -> "BoardSession":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # ──────────────────────────────────────────
    # Listeners
    # ──────────────────────────────────────────

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """Register a callback for "change" or "error"."""
        if event_type not in self.subscribers:
            self.subscribers[event_type] = []
        self.subscribers[event_type].append(callback)

    def on_change(self, callback: Callable) -> None:
        """callback(state=BoardState, source="local" | "remote" | "fetch")"""
        self.subscribe("change", callback)

    def on_error(self, callback: Callable) -> None:
        """callback(error=BoardError). Non-fatal notifications."""
        self.subscribe("error", callback)

    def _emit(self, event_type: str, **kwargs) -> None:
        for callback in self.subscribers.get(event_type, []):
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error(f"Error in {event_type} callback: {e}")

    # ──────────────────────────────────────────
    # Channel lifecycle
    # ──────────────────────────────────────────

    async def open(self, board_id: str) -> Optional[BoardState]:
        """Switch the session to ``board_id``: teardown, fetch, subscribe.

        Returns None when a later open() or close() took over while the
        fetch was in flight; nothing of this board is installed then.
        """
        await self.close()

        self._loop = asyncio.get_running_loop()
        self._generation += 1
        generation = self._generation

        payload = await asyncio.to_thread(self.api.fetch_board, board_id)
        if generation != self._generation:
            logger.info(f"Open of board {board_id} superseded")
            return None
        try:
            state = normalize_order(BoardState.from_dict(payload))
        except (ValueError, TypeError, AttributeError) as e:
            raise SyncError(f"Malformed board snapshot for {board_id}: {e}") from e

        self.board_id = board_id
        self.store.replace(state)
        self._inbound = asyncio.Queue()
        self._outbound = asyncio.Queue()
        self._workers = [
            self._loop.create_task(self._inbound_worker()),
            self._loop.create_task(self._outbound_worker()),
        ]
        self._subscription = self.channel.subscribe(board_id, self._make_callback(board_id, generation))
        logger.info(f"Opened board {board_id} ({len(state.lists)} lists, {len(state.tasks)} tasks)")
        self._emit("change", state=state, source="fetch")
        return state

    async def close(self) -> None:
        """Cancel the live subscription, flush queued pushes, stop workers."""
        # Detach before the first await; a concurrent open() may install
        # its own board meanwhile
        subscription, self._subscription = self._subscription, None
        outbound, self._outbound = self._outbound, None
        workers, self._workers = self._workers, []
        self._inbound = None
        board_id = self.board_id
        # Anything still in flight for the old subscription is now stale
        self._generation += 1

        if subscription is not None:
            subscription.cancel()
        if outbound is not None:
            await outbound.join()
        for worker in workers:
            worker.cancel()
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)
            logger.info(f"Closed board {board_id}")

        if self._outbound is None:
            self._pushing = False
            self.state = SyncState.IDLE

    async def drain(self) -> None:
        """Wait until every queued inbound merge and outbound push is done."""
        # let callbacks already handed to the loop reach the inbound queue
        await asyncio.sleep(0)
        if self._inbound is not None:
            await self._inbound.join()
        if self._outbound is not None:
            await self._outbound.join()

    def _make_callback(self, board_id: str, generation: int) -> Callable[[Dict[str, Any]], None]:
        loop = self._loop

        def on_update(payload: Dict[str, Any]) -> None:
            try:
                loop.call_soon_threadsafe(self._enqueue_inbound, generation, board_id, payload)
            except RuntimeError:
                logger.debug(f"Dropped update for board {board_id}: event loop closed")

        return on_update

    def _enqueue_inbound(self, generation: int, board_id: str, payload: Dict[str, Any]) -> None:
        if generation != self._generation or self._inbound is None:
            logger.debug(f"Dropped stale update for board {board_id}")
            return
        self._inbound.put_nowait((generation, board_id, payload))

    # ──────────────────────────────────────────
    # Workers
    # ──────────────────────────────────────────

    def _settle(self) -> None:
        self.state = SyncState.SYNCING if self._pushing else SyncState.IDLE

    async def _inbound_worker(self) -> None:
        queue = self._inbound
        while True:
            generation, board_id, payload = await queue.get()
            try:
                if generation != self._generation or board_id != self.board_id:
                    logger.debug(f"Ignored update for stale board {board_id}")
                    continue
                if not isinstance(payload, dict):
                    raise SyncError(f"Inbound update for {board_id} is not a snapshot object")
                if payload.get("id") not in (None, "", board_id):
                    logger.debug(f"Ignored update addressed to board {payload.get('id')}")
                    continue
                self.reconcile(payload)
            except SyncError as e:
                logger.warning(f"Inbound snapshot rejected: {e}")
                self._emit("error", error=e)
            except Exception as e:
                logger.error(f"Inbound snapshot for {board_id} failed: {e}")
                self._emit("error", error=SyncError(str(e)))
            finally:
                self._settle()
                queue.task_done()

    async def _outbound_worker(self) -> None:
        queue = self._outbound
        while True:
            payload = await queue.get()
            self._pushing = True
            self.state = SyncState.SYNCING
            try:
                await asyncio.to_thread(self.api.push_board, payload)
            except SyncError as e:
                logger.warning(f"Push of board {payload.get('id')} failed: {e}")
                self._emit("error", error=e)
            except Exception as e:
                err = SyncError(f"Push of board {payload.get('id')} failed: {e}")
                logger.warning(str(err))
                self._emit("error", error=err)
            finally:
                self._pushing = not queue.empty()
                self._settle()
                queue.task_done()

    # ──────────────────────────────────────────
    # Inbound merge
    # ──────────────────────────────────────────

    def reconcile(self, payload: Dict[str, Any]) -> BoardState:
        """Merge an inbound snapshot into the store (remote wins)."""
        self.state = SyncState.RECONCILING
        try:
            current = self.store.snapshot()
            merged = merge_snapshot(current, payload)
            if merged is current:
                logger.debug(f"Inbound snapshot for {self.board_id} changes nothing")
                return current
            self.store.replace(merged)
            logger.info(f"Reconciled remote snapshot for board {self.board_id}")
            self._emit("change", state=merged, source="remote")
            return merged
        finally:
            self._settle()

    # ──────────────────────────────────────────
    # Local commands
    # ──────────────────────────────────────────

    def _commit(self, before: BoardState, after: BoardState) -> BoardState:
        """Publish a local mutation and queue its snapshot for one push."""
        if after is before:
            return after
        self._emit("change", state=after, source="local")
        if self._outbound is None:
            logger.debug("No open board; local change not pushed")
            return after
        self._pushing = True
        self.state = SyncState.SYNCING
        self._outbound.put_nowait(after.to_dict())
        return after

    def snapshot(self) -> BoardState:
        return self.store.snapshot()

    def move(self, command: MoveCommand) -> BoardState:
        before = self.store.snapshot()
        return self._commit(before, self.store.apply(command))

    def create_task(self, list_id: str, title: str) -> Task:
        before = self.store.snapshot()
        task = self.store.create_task(list_id, title)
        self._commit(before, self.store.snapshot())
        return task

    def create_list(self, title: str) -> BoardList:
        before = self.store.snapshot()
        lst = self.store.create_list(title)
        self._commit(before, self.store.snapshot())
        return lst

    def duplicate_task(self, task_id: str) -> Task:
        before = self.store.snapshot()
        task = self.store.duplicate_task(task_id, self.config.copy_suffix)
        self._commit(before, self.store.snapshot())
        return task

    def delete_list(self, list_id: str) -> BoardState:
        before = self.store.snapshot()
        return self._commit(before, self.store.remove_list(list_id))

    def delete_task(self, task_id: str) -> BoardState:
        before = self.store.snapshot()
        return self._commit(before, self.store.remove_task(task_id))

    def rename_list(self, list_id: str, title: str) -> BoardState:
        before = self.store.snapshot()
        return self._commit(before, self.store.rename_list(list_id, title))

    def update_task(self, task_id: str, **changes: Any) -> BoardState:
        before = self.store.snapshot()
        return self._commit(before, self.store.update_task(task_id, **changes))

    def edit(self, action: str, *args: Any, **kwargs: Any) -> BoardState:
        """Run one of the BoardStore task-edit helpers listed in TASK_EDITS."""
        if action not in TASK_EDITS:
            raise ValidationError(f"Unknown task edit: {action}")
        before = self.store.snapshot()
        return self._commit(before, getattr(self.store, action)(*args, **kwargs))

    def toggle_dependency(self, task_id: str, target_id: str) -> BoardState:
        before = self.store.snapshot()
        return self._commit(before, self.store.replace(toggle_edge(before, task_id, target_id)))

    def add_dependency(self, task_id: str, target_id: str) -> BoardState:
        before = self.store.snapshot()
        return self._commit(before, self.store.replace(add_edge(before, task_id, target_id)))

    def remove_dependency(self, task_id: str, target_id: str) -> BoardState:
        before = self.store.snapshot()
        return self._commit(before, self.store.replace(remove_edge(before, task_id, target_id)))

    # ──────────────────────────────────────────
    # Derived views
    # ──────────────────────────────────────────

    def filter(self, criteria: FilterCriteria, today=None) -> VisibleTasks:
        return self._filter_view(self.store.snapshot(), criteria, today)

    def dependencies(self) -> DependencyGraph:
        return DependencyGraph(self.store.snapshot())

    def is_satisfied(self, task_id: str) -> bool:
        return self.dependencies().is_satisfied(task_id)
