"""
Live channel: subscription interface and an in-process implementation.

A channel delivers inbound board snapshots to a callback until the returned
Subscription is cancelled. After cancel() the callback is never invoked
again by this channel. Delivery thread is up to the channel; BoardSession
marshals callbacks onto its own event loop.

LocalChannel is an in-process hub: anything holding it can publish() a
snapshot for a board id and every live subscriber of that board receives it.
It backs tests and embedding (several sessions in one process).
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[Dict[str, Any]], None]


class Subscription:
    """Cancellation handle for one live-channel subscription."""

    def __init__(self, board_id: str, on_cancel: Optional[Callable[["Subscription"], None]] = None):
        self.board_id = board_id
        self._on_cancel = on_cancel
        self._cancelled = False

    @property
    def active(self) -> bool:
        return not self._cancelled

    def cancel(self) -> None:
        """Tear down the subscription. Safe to call more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._on_cancel:
            self._on_cancel(self)


class LiveChannel(Protocol):
    def subscribe(self, board_id: str, callback: UpdateCallback) -> Subscription:
        ...


class LocalChannel:
    """In-process fan-out of board snapshots to subscribers."""

    def __init__(self):
        self._lock = threading.Lock()
        self.subscribers: Dict[str, List[tuple]] = {}   # board_id -> [(subscription, callback)]

    def subscribe(self, board_id: str, callback: UpdateCallback) -> Subscription:
        sub = Subscription(board_id, on_cancel=self._remove)
        with self._lock:
            self.subscribers.setdefault(board_id, []).append((sub, callback))
        logger.debug(f"Subscribed to board {board_id}")
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            entries = self.subscribers.get(sub.board_id, [])
            self.subscribers[sub.board_id] = [(s, cb) for s, cb in entries if s is not sub]
            if not self.subscribers[sub.board_id]:
                del self.subscribers[sub.board_id]
        logger.debug(f"Unsubscribed from board {sub.board_id}")

    def subscriber_count(self, board_id: str) -> int:
        with self._lock:
            return len(self.subscribers.get(board_id, []))

    def publish(self, board_id: str, payload: Dict[str, Any]) -> int:
        """Deliver ``payload`` to every live subscriber of ``board_id``.

        Returns the number of callbacks invoked. A failing callback is logged
        and does not stop delivery to the others.
        """
        with self._lock:
            entries = list(self.subscribers.get(board_id, []))
        delivered = 0
        for sub, callback in entries:
            if not sub.active:
                continue
            try:
                callback(payload)
                delivered += 1
            except Exception as e:
                logger.error(f"Error in board {board_id} subscriber: {e}")
        return delivered
