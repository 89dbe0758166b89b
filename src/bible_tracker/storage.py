"""Storage backends for participants and completion records.

Two interchangeable implementations of ``StorageAdapter``:

- ``LocalStore`` keeps everything in a SQLite key/value table under three
  named entries, two JSON arrays and the plain current-user string.
- ``RemoteStore`` talks to a Firebase Realtime Database over its REST API,
  laid out as ``participants/{name} = true`` and
  ``completions/{user}/{date} = record``.

Both stamp ``completedOn`` themselves and refuse a second completion for the
same (user, date) pair.
"""
import json
import logging
import sqlite3
import time
from datetime import datetime, timezone
from typing import Protocol
from urllib.parse import quote

import requests

from bible_tracker.config import Config
from bible_tracker.db import DEFAULT_DB_PATH, delete_setting, get_connection, get_setting, init_db, set_setting
from bible_tracker.errors import DuplicateCompletionError, DuplicateParticipantError, StorageUnavailableError
from bible_tracker.models import CompletionRecord

logger = logging.getLogger(__name__)

PARTICIPANTS_KEY = "bible_participants"
COMPLETIONS_KEY = "bible_completions"
CURRENT_USER_KEY = "bible_current_user"


class StorageAdapter(Protocol):
    def list_participants(self) -> list[str]: ...
    def add_participant(self, name: str) -> None: ...
    def remove_participant(self, name: str) -> None: ...
    def list_completions(self) -> list[CompletionRecord]: ...
    def add_completion(
        self, user_name: str, date: str, portion: str, day: str, catchup: bool = False,
    ) -> CompletionRecord: ...
    def get_current_user(self) -> str | None: ...
    def save_current_user(self, name: str) -> None: ...
    def clear_current_user(self) -> None: ...
    def ping(self) -> bool: ...


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _children(data) -> dict:
    """Child nodes keyed by name. Integer-like keys come back as a JSON array."""
    if isinstance(data, list):
        return {str(i): v for i, v in enumerate(data) if v is not None}
    return data or {}


class _CurrentUserPrefs:
    """Current-user preference kept in a local SQLite file."""

    prefs_path: str

    def get_current_user(self) -> str | None:
        return get_setting(self.prefs_path, CURRENT_USER_KEY) or None

    def save_current_user(self, name: str) -> None:
        set_setting(self.prefs_path, CURRENT_USER_KEY, name)

    def clear_current_user(self) -> None:
        delete_setting(self.prefs_path, CURRENT_USER_KEY)


class LocalStore(_CurrentUserPrefs):
    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path
        self.prefs_path = db_path
        init_db(db_path)

    def _load(self, key: str) -> list:
        try:
            raw = get_setting(self.db_path, key)
        except sqlite3.Error as e:
            raise StorageUnavailableError(f"Local store unreadable: {e}") from e
        return json.loads(raw) if raw else []

    def _save(self, key: str, value: list) -> None:
        try:
            set_setting(self.db_path, key, json.dumps(value))
        except sqlite3.Error as e:
            raise StorageUnavailableError(f"Local store not writable: {e}") from e

    def list_participants(self) -> list[str]:
        return list(self._load(PARTICIPANTS_KEY))

    def add_participant(self, name: str) -> None:
        participants = self._load(PARTICIPANTS_KEY)
        if name in participants:
            raise DuplicateParticipantError(name)
        participants.append(name)
        self._save(PARTICIPANTS_KEY, participants)
        logger.info("Added participant %s", name)

    def remove_participant(self, name: str) -> None:
        participants = self._load(PARTICIPANTS_KEY)
        if name not in participants:
            return
        self._save(PARTICIPANTS_KEY, [p for p in participants if p != name])
        logger.info("Removed participant %s", name)

    def list_completions(self) -> list[CompletionRecord]:
        return [CompletionRecord.from_dict(row) for row in self._load(COMPLETIONS_KEY)]

    def add_completion(
        self, user_name: str, date: str, portion: str, day: str, catchup: bool = False,
    ) -> CompletionRecord:
        rows = self._load(COMPLETIONS_KEY)
        if any(r["userName"] == user_name and r["date"] == date for r in rows):
            raise DuplicateCompletionError(user_name, date)
        record = CompletionRecord(
            user_name=user_name, date=date, portion=portion, day=day,
            completed_on=_now(), catchup=catchup,
        )
        rows.append(record.to_dict())
        self._save(COMPLETIONS_KEY, rows)
        logger.info("Recorded %s for %s (catchup=%s)", date, user_name, catchup)
        return record

    def ping(self) -> bool:
        try:
            conn = get_connection(self.db_path)
            conn.execute("SELECT 1").fetchone()
            conn.close()
        except sqlite3.Error:
            return False
        return True


class RemoteStore(_CurrentUserPrefs):
    def __init__(
        self,
        base_url: str,
        auth: str | None = None,
        timeout: float = 10,
        prefs_path: str = DEFAULT_DB_PATH,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth = auth
        self.timeout = timeout
        self.http = session or requests.Session()
        self.prefs_path = prefs_path
        init_db(prefs_path)

    def _url(self, *parts: str) -> str:
        path = "/".join(quote(part, safe="") for part in parts)
        return f"{self.base_url}/{path}.json"

    def _request(self, method: str, *parts: str, payload=None, params: dict | None = None):
        url = self._url(*parts)
        params = dict(params or {})
        if self.auth:
            params["auth"] = self.auth
        try:
            resp = self.http.request(method, url, json=payload, params=params, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise StorageUnavailableError(f"Remote store request failed: {e}") from e
        return resp.json() if resp.content else None

    def list_participants(self) -> list[str]:
        return list(_children(self._request("GET", "participants")).keys())

    def add_participant(self, name: str) -> None:
        if name in self.list_participants():
            raise DuplicateParticipantError(name)
        self._request("PUT", "participants", name, payload=True)
        logger.info("Added participant %s", name)

    def remove_participant(self, name: str) -> None:
        self._request("DELETE", "participants", name)
        logger.info("Removed participant %s", name)

    def list_completions(self) -> list[CompletionRecord]:
        records = []
        for by_date in _children(self._request("GET", "completions")).values():
            for row in _children(by_date).values():
                records.append(CompletionRecord.from_dict(row))
        return records

    def add_completion(
        self, user_name: str, date: str, portion: str, day: str, catchup: bool = False,
    ) -> CompletionRecord:
        if self._request("GET", "completions", user_name, date) is not None:
            raise DuplicateCompletionError(user_name, date)
        record = CompletionRecord(
            user_name=user_name, date=date, portion=portion, day=day,
            completed_on=_now(), catchup=catchup,
        )
        self._request("PUT", "completions", user_name, date, payload=record.to_dict())
        logger.info("Recorded %s for %s (catchup=%s)", date, user_name, catchup)
        return record

    def ping(self) -> bool:
        try:
            self._request("GET", params={"shallow": "true"})
        except StorageUnavailableError:
            return False
        return True


def open_storage(config: Config) -> StorageAdapter:
    """Build the storage backend named by the configuration."""
    if config.backend == "remote":
        return RemoteStore(config.remote_url, auth=config.remote_auth, prefs_path=config.db_path)
    return LocalStore(config.db_path)


def wait_until_ready(storage: StorageAdapter, timeout: float = 1.0, interval: float = 0.05) -> None:
    """Poll the backend until it answers, raising StorageUnavailableError after ``timeout`` seconds."""
    deadline = time.monotonic() + timeout
    while True:
        if storage.ping():
            return
        if time.monotonic() >= deadline:
            raise StorageUnavailableError(
                f"Storage backend did not respond within {timeout:g}s"
            )
        time.sleep(interval)
