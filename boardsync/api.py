"""
Fetch/push collaborator over HTTP.

    GET  {api_url}/board/{board_id}   → full board snapshot (JSON)
    POST {api_url}/board/sync         ← full board snapshot (JSON)

Only whole snapshots are exchanged; there is no partial-patch protocol.
Failures map onto the error taxonomy:
    401 / 403                     → PermissionDeniedError
    any other non-2xx, IO errors  → SyncError
"""
import logging
from typing import Any, Dict, Optional, Protocol

import requests

from .errors import PermissionDeniedError, SyncError

logger = logging.getLogger(__name__)


class BoardApi(Protocol):
    def fetch_board(self, board_id: str) -> Dict[str, Any]:
        ...

    def push_board(self, payload: Dict[str, Any]) -> None:
        ...


def _error_message(response: requests.Response) -> str:
    """Prefer the server's own message, fall back to the status text."""
    try:
        data = response.json()
    except ValueError:
        return response.reason or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return data.get("message") or data.get("error") or response.reason or ""
    return response.reason or ""


def check_response(response: requests.Response) -> requests.Response:
    """Raise the matching board error for a failed response."""
    if response.ok:
        return response
    if response.status_code == 401:
        raise PermissionDeniedError("Session expired.")
    if response.status_code == 403:
        raise PermissionDeniedError("Permission denied.")
    raise SyncError(_error_message(response) or "An unexpected error occurred.")


class HttpBoardApi:
    """requests-based BoardApi."""

    def __init__(self, api_url: str, token: Optional[str] = None, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.http = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def fetch_board(self, board_id: str) -> Dict[str, Any]:
        url = f"{self.api_url}/board/{board_id}"
        try:
            r = self.http.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise SyncError(f"Fetching board {board_id} failed: {e}") from e
        check_response(r)
        try:
            return r.json()
        except ValueError as e:
            raise SyncError(f"Board {board_id} response is not JSON") from e

    def push_board(self, payload: Dict[str, Any]) -> None:
        url = f"{self.api_url}/board/sync"
        try:
            r = self.http.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise SyncError(f"Pushing board {payload.get('id')} failed: {e}") from e
        check_response(r)
        logger.debug(f"Pushed board {payload.get('id')}")
