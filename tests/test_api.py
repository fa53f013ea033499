"""Tests for HttpBoardApi (requests session mocked)."""
from unittest.mock import MagicMock

import pytest
import requests

from boardsync.api import HttpBoardApi, check_response
from boardsync.errors import PermissionDeniedError, SyncError


def _response(status=200, json_data=None, reason="OK"):
    r = MagicMock()
    r.status_code = status
    r.ok = 200 <= status < 300
    r.reason = reason
    if json_data is None:
        r.json.side_effect = ValueError("no json")
    else:
        r.json.return_value = json_data
    return r


def _api(response=None, token=None, error=None):
    http = MagicMock()
    if error is not None:
        http.get.side_effect = error
        http.post.side_effect = error
    else:
        http.get.return_value = response
        http.post.return_value = response
    return HttpBoardApi("http://boards.local/api/", token=token, timeout=3, session=http), http


class TestFetch:

    def test_returns_snapshot(self):
        api, http = _api(_response(json_data={"id": "b1"}))
        assert api.fetch_board("b1") == {"id": "b1"}
        url = http.get.call_args[0][0]
        assert url == "http://boards.local/api/board/b1"
        assert http.get.call_args[1]["timeout"] == 3

    def test_bearer_token(self):
        api, http = _api(_response(json_data={}), token="s3cret")
        api.fetch_board("b1")
        assert http.get.call_args[1]["headers"]["Authorization"] == "Bearer s3cret"

    def test_no_token_no_auth_header(self):
        api, http = _api(_response(json_data={}))
        api.fetch_board("b1")
        assert "Authorization" not in http.get.call_args[1]["headers"]

    def test_not_json(self):
        api, _ = _api(_response(json_data=None))
        with pytest.raises(SyncError):
            api.fetch_board("b1")

    def test_connection_error(self):
        api, _ = _api(error=requests.ConnectionError("refused"))
        with pytest.raises(SyncError, match="refused"):
            api.fetch_board("b1")


class TestPush:

    def test_posts_json_snapshot(self):
        api, http = _api(_response(json_data={"ok": True}))
        api.push_board({"id": "b1", "tasks": {}})
        args, kwargs = http.post.call_args
        assert args[0] == "http://boards.local/api/board/sync"
        assert kwargs["json"] == {"id": "b1", "tasks": {}}

    def test_timeout_is_sync_error(self):
        api, _ = _api(error=requests.Timeout("slow"))
        with pytest.raises(SyncError):
            api.push_board({"id": "b1"})


class TestErrorMapping:

    def test_ok_passes_through(self):
        r = _response(json_data={})
        assert check_response(r) is r

    @pytest.mark.parametrize("status,message", [(401, "Session expired."), (403, "Permission denied.")])
    def test_auth_failures(self, status, message):
        with pytest.raises(PermissionDeniedError, match=message):
            check_response(_response(status, {"message": "nope"}))

    def test_server_message_preferred(self):
        with pytest.raises(SyncError, match="Board is archived"):
            check_response(_response(500, {"message": "Board is archived"}, reason="Internal Server Error"))

    def test_falls_back_to_reason(self):
        with pytest.raises(SyncError, match="Bad Gateway"):
            check_response(_response(502, None, reason="Bad Gateway"))

    def test_permission_error_is_sync_error(self):
        with pytest.raises(SyncError):
            check_response(_response(403, {}))
