"""Runtime configuration read from BIBLE_TRACKER_* environment variables."""
import os
from dataclasses import dataclass, field

from bible_tracker.db import DEFAULT_DB_PATH

BACKENDS = ("local", "remote")
DEFAULT_REMOTE_URL = "https://bible-84953-default-rtdb.firebaseio.com"
DEFAULT_ADMINS = {"admin": "bible2026", "jebastin": "admin123"}


@dataclass
class Config:
    backend: str = "local"
    db_path: str = DEFAULT_DB_PATH
    remote_url: str = DEFAULT_REMOTE_URL
    remote_auth: str | None = None
    schedule_path: str | None = None
    export_dir: str = "."
    ready_timeout: float = 1.0
    debug: bool = False
    admins: dict = field(default_factory=lambda: dict(DEFAULT_ADMINS))


def _parse_admins(value: str) -> dict:
    admins = {}
    for pair in value.split(","):
        if not pair.strip():
            continue
        username, sep, password = pair.partition(":")
        if not sep or not username.strip() or not password:
            raise ValueError(f"Bad admin entry {pair!r}, expected user:password")
        admins[username.strip()] = password
    return admins


def load_config(environ: dict | None = None) -> Config:
    env = os.environ if environ is None else environ
    config = Config()
    config.backend = env.get("BIBLE_TRACKER_BACKEND", config.backend).strip().lower()
    if config.backend not in BACKENDS:
        raise ValueError(f"BIBLE_TRACKER_BACKEND must be one of {', '.join(BACKENDS)}")
    config.db_path = env.get("BIBLE_TRACKER_DB", config.db_path)
    config.remote_url = env.get("BIBLE_TRACKER_REMOTE_URL", config.remote_url).rstrip("/")
    config.remote_auth = env.get("BIBLE_TRACKER_REMOTE_AUTH") or None
    config.schedule_path = env.get("BIBLE_TRACKER_SCHEDULE") or None
    config.export_dir = env.get("BIBLE_TRACKER_EXPORT_DIR", config.export_dir)
    timeout = env.get("BIBLE_TRACKER_READY_TIMEOUT")
    if timeout is not None:
        try:
            config.ready_timeout = float(timeout)
        except ValueError:
            raise ValueError(f"BIBLE_TRACKER_READY_TIMEOUT is not a number: {timeout!r}") from None
        if config.ready_timeout <= 0:
            raise ValueError("BIBLE_TRACKER_READY_TIMEOUT must be positive")
    config.debug = env.get("BIBLE_TRACKER_DEBUG", "") in ("1", "true", "yes")
    if env.get("BIBLE_TRACKER_ADMINS"):
        config.admins = _parse_admins(env["BIBLE_TRACKER_ADMINS"])
    return config
