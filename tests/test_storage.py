# tests/test_storage.py
import json
import logging
import sqlite3
from unittest.mock import MagicMock, patch

import pytest
import requests

from bible_tracker.config import Config
from bible_tracker.db import get_setting, set_setting
from bible_tracker.errors import DuplicateCompletionError, DuplicateParticipantError, StorageUnavailableError
from bible_tracker.storage import (
    COMPLETIONS_KEY, PARTICIPANTS_KEY, LocalStore, RemoteStore, open_storage, wait_until_ready,
)


@pytest.fixture
def store(tmp_db):
    return LocalStore(tmp_db)


def _response(data=None, status=200):
    resp = MagicMock()
    resp.content = b"" if data is None else json.dumps(data).encode()
    resp.json.return_value = data
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    return resp


@pytest.fixture
def http():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def remote(tmp_db, http):
    return RemoteStore("https://example.firebaseio.com/", prefs_path=tmp_db, session=http)


def test_local_starts_empty(store):
    assert store.list_participants() == []
    assert store.list_completions() == []
    assert store.get_current_user() is None


def test_add_participants_keeps_order(store):
    store.add_participant("John")
    store.add_participant("Mary")
    assert store.list_participants() == ["John", "Mary"]


def test_add_duplicate_participant_rejected(store):
    store.add_participant("John")
    with pytest.raises(DuplicateParticipantError, match="already exists"):
        store.add_participant("John")
    assert store.list_participants() == ["John"]


def test_participant_names_are_case_sensitive(store):
    store.add_participant("John")
    store.add_participant("john")
    assert store.list_participants() == ["John", "john"]


def test_remove_participant_keeps_completions(store):
    store.add_participant("John")
    store.add_completion("John", "2026-01-02", "Genesis 24-26", "Friday")
    store.remove_participant("John")
    assert store.list_participants() == []
    assert len(store.list_completions()) == 1


def test_remove_missing_participant_is_noop(store):
    store.add_participant("Mary")
    store.remove_participant("John")
    assert store.list_participants() == ["Mary"]


def test_add_completion_stamps_time(store):
    record = store.add_completion("John", "2026-01-02", "Genesis 24-26", "Friday")
    assert record.completed_on
    assert record.catchup is False
    assert store.list_completions() == [record]


def test_add_catchup_completion(store):
    record = store.add_completion("John", "2025-12-31", "Genesis 20-23", "Tuesday", catchup=True)
    assert record.catchup is True
    assert record.kind == "Catch-up"


def test_duplicate_completion_rejected(store):
    store.add_completion("John", "2026-01-02", "Genesis 24-26", "Friday")
    with pytest.raises(DuplicateCompletionError):
        store.add_completion("John", "2026-01-02", "Genesis 24-26", "Friday", catchup=True)
    assert len(store.list_completions()) == 1


def test_same_date_different_users(store):
    store.add_completion("John", "2026-01-02", "Genesis 24-26", "Friday")
    store.add_completion("Mary", "2026-01-02", "Genesis 24-26", "Friday")
    assert len(store.list_completions()) == 2


def test_completions_stored_camel_case(store, tmp_db):
    store.add_completion("John", "2026-01-02", "Genesis 24-26", "Friday")
    rows = json.loads(get_setting(tmp_db, COMPLETIONS_KEY))
    assert rows[0]["userName"] == "John"
    assert "completedOn" in rows[0]


def test_reads_existing_records(tmp_db):
    store = LocalStore(tmp_db)
    set_setting(tmp_db, PARTICIPANTS_KEY, json.dumps(["Ruth"]))
    set_setting(tmp_db, COMPLETIONS_KEY, json.dumps([{
        "userName": "Ruth", "date": "2025-12-23", "portion": "Genesis 1-3",
        "day": "Monday", "completedOn": "2025-12-23T06:00:00Z",
    }]))
    assert store.list_participants() == ["Ruth"]
    record = store.list_completions()[0]
    assert record.user_name == "Ruth"
    assert record.catchup is False


def test_current_user_round_trip(store):
    store.save_current_user("John")
    assert store.get_current_user() == "John"
    store.save_current_user("Mary")
    assert store.get_current_user() == "Mary"
    store.clear_current_user()
    assert store.get_current_user() is None


def test_local_ping(store):
    assert store.ping() is True


def test_local_read_failure_is_unavailable(store):
    with patch("bible_tracker.storage.get_setting", side_effect=sqlite3.OperationalError("locked")):
        with pytest.raises(StorageUnavailableError):
            store.list_participants()


def test_remote_list_participants(remote, http):
    http.request.return_value = _response({"John": True, "Mary": True})
    assert remote.list_participants() == ["John", "Mary"]
    method, url = http.request.call_args.args
    assert method == "GET"
    assert url == "https://example.firebaseio.com/participants.json"


def test_remote_empty_database(remote, http):
    http.request.return_value = _response(None)
    assert remote.list_participants() == []
    assert remote.list_completions() == []


def test_remote_add_participant(remote, http):
    http.request.side_effect = [_response({"Mary": True}), _response(True)]
    remote.add_participant("John Smith")
    method, url = http.request.call_args.args
    assert method == "PUT"
    assert url == "https://example.firebaseio.com/participants/John%20Smith.json"
    assert http.request.call_args.kwargs["json"] is True


def test_remote_add_duplicate_participant(remote, http):
    http.request.return_value = _response({"John": True})
    with pytest.raises(DuplicateParticipantError):
        remote.add_participant("John")
    assert http.request.call_count == 1


def test_remote_remove_participant(remote, http):
    http.request.return_value = _response(None)
    remote.remove_participant("John")
    method, url = http.request.call_args.args
    assert method == "DELETE"
    assert url.endswith("/participants/John.json")


def test_remote_list_completions_flattens(remote, http):
    http.request.return_value = _response({
        "John": {
            "2025-12-23": {"userName": "John", "date": "2025-12-23", "portion": "Genesis 1-3",
                           "day": "Monday", "completedOn": "2025-12-23T06:00:00Z"},
            "2025-12-24": {"userName": "John", "date": "2025-12-24", "portion": "Genesis 4-7",
                           "day": "Tuesday", "completedOn": "2025-12-26T06:00:00Z", "catchup": True},
        },
        "Mary": {
            "2025-12-23": {"userName": "Mary", "date": "2025-12-23", "portion": "Genesis 1-3",
                           "day": "Monday", "completedOn": "2025-12-23T07:00:00Z"},
        },
    })
    records = remote.list_completions()
    assert len(records) == 3
    assert sum(1 for r in records if r.catchup) == 1


def test_remote_add_completion(remote, http):
    http.request.side_effect = [_response(None), _response({"ok": True})]
    record = remote.add_completion("John", "2026-01-02", "Genesis 24-26", "Friday")
    method, url = http.request.call_args.args
    assert method == "PUT"
    assert url.endswith("/completions/John/2026-01-02.json")
    payload = http.request.call_args.kwargs["json"]
    assert payload["userName"] == "John"
    assert payload["completedOn"] == record.completed_on


def test_remote_duplicate_completion(remote, http):
    http.request.return_value = _response({"userName": "John", "date": "2026-01-02"})
    with pytest.raises(DuplicateCompletionError):
        remote.add_completion("John", "2026-01-02", "Genesis 24-26", "Friday")
    assert http.request.call_count == 1


def test_remote_passes_auth_token(tmp_db, http):
    store = RemoteStore("https://example.firebaseio.com", auth="secret", prefs_path=tmp_db, session=http)
    http.request.return_value = _response({})
    store.list_participants()
    assert http.request.call_args.kwargs["params"] == {"auth": "secret"}


def test_remote_http_error_is_unavailable(remote, http, caplog):
    http.request.return_value = _response({"error": "Permission denied"}, status=401)
    with caplog.at_level(logging.ERROR, logger="bible_tracker.storage"):
        with pytest.raises(StorageUnavailableError):
            remote.list_participants()
    assert "failed" in caplog.text


def test_remote_connection_error_is_unavailable(remote, http):
    http.request.side_effect = requests.ConnectionError("no route")
    with pytest.raises(StorageUnavailableError):
        remote.list_completions()


def test_remote_ping(remote, http):
    http.request.return_value = _response({"participants": True})
    assert remote.ping() is True
    assert http.request.call_args.kwargs["params"] == {"shallow": "true"}
    http.request.side_effect = requests.Timeout("slow")
    assert remote.ping() is False


def test_remote_current_user_kept_locally(remote, http):
    remote.save_current_user("John")
    assert remote.get_current_user() == "John"
    http.request.assert_not_called()


def test_open_storage_local(tmp_db):
    assert isinstance(open_storage(Config(db_path=tmp_db)), LocalStore)


def test_open_storage_remote(tmp_db):
    store = open_storage(Config(backend="remote", db_path=tmp_db, remote_url="https://x.firebaseio.com"))
    assert isinstance(store, RemoteStore)
    assert store.base_url == "https://x.firebaseio.com"


def test_wait_until_ready_returns_when_ping_succeeds():
    storage = MagicMock()
    storage.ping.side_effect = [False, False, True]
    wait_until_ready(storage, timeout=5, interval=0)
    assert storage.ping.call_count == 3


def test_wait_until_ready_times_out():
    storage = MagicMock()
    storage.ping.return_value = False
    with pytest.raises(StorageUnavailableError, match="did not respond"):
        wait_until_ready(storage, timeout=0.05, interval=0.01)


def test_remote_integer_like_keys_come_back_as_array(remote, http):
    http.request.return_value = _response([True, None, True])
    assert remote.list_participants() == ["0", "2"]


def test_remote_completions_under_integer_like_user(remote, http):
    http.request.return_value = _response([{
        "2025-12-23": {"userName": "0", "date": "2025-12-23", "portion": "Genesis 1-3",
                       "day": "Monday", "completedOn": "2025-12-23T06:00:00Z"},
    }])
    records = remote.list_completions()
    assert [(r.user_name, r.date) for r in records] == [("0", "2025-12-23")]
