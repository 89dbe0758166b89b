"""Reader and admin actions: choosing a reader, logging readings, managing participants."""
import logging
from dataclasses import dataclass
from datetime import date

from bible_tracker.errors import AuthenticationError, ValidationError
from bible_tracker.models import CompletionRecord, ScheduleEntry
from bible_tracker.schedule import get_reading_for_date, is_rest_day
from bible_tracker.storage import StorageAdapter

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Who is reading and whether an admin is signed in, for one run of the app."""
    user: str | None = None
    admin: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.admin is not None


def load_session(storage: StorageAdapter) -> Session:
    return Session(user=storage.get_current_user())


def select_user(storage: StorageAdapter, session: Session, name: str) -> None:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Please select your name first")
    if name not in storage.list_participants():
        raise ValidationError(f"{name} is not a participant")
    session.user = name
    storage.save_current_user(name)


def clear_user(storage: StorageAdapter, session: Session) -> None:
    session.user = None
    storage.clear_current_user()


def get_today_reading(schedule: list[ScheduleEntry], today: date | None = None) -> ScheduleEntry | None:
    """Today's reading, or None on rest days and unscheduled days.

    Rest days follow the entry's weekday label, the same rule the streak uses.
    """
    today = today or date.today()
    reading = get_reading_for_date(schedule, today.isoformat())
    if reading is None or is_rest_day(reading):
        return None
    return reading


def _has_completed(storage: StorageAdapter, user_name: str, day: str) -> bool:
    return any(c.user_name == user_name and c.date == day for c in storage.list_completions())


def _require_user(session: Session) -> str:
    if not session.user:
        raise ValidationError("Please select your name first")
    return session.user


def mark_today_complete(
    storage: StorageAdapter,
    schedule: list[ScheduleEntry],
    session: Session,
    today: date | None = None,
) -> CompletionRecord:
    user = _require_user(session)
    today = today or date.today()
    reading = get_today_reading(schedule, today)
    if reading is None:
        raise ValidationError("No reading assigned for today")
    if _has_completed(storage, user, reading.date):
        raise ValidationError("You have already completed today's reading!")
    return storage.add_completion(user, reading.date, reading.portion, reading.weekday, catchup=False)


def mark_missed_complete(
    storage: StorageAdapter,
    schedule: list[ScheduleEntry],
    session: Session,
    day: str,
    today: date | None = None,
) -> CompletionRecord:
    """Log a catch-up completion for a past scheduled reading."""
    user = _require_user(session)
    today = today or date.today()
    reading = get_reading_for_date(schedule, day)
    if reading is None:
        raise ValidationError(f"No reading scheduled for {day}")
    if reading.date >= today.isoformat():
        raise ValidationError("Only past readings can be caught up")
    if _has_completed(storage, user, reading.date):
        raise ValidationError("You have already completed this reading!")
    return storage.add_completion(user, reading.date, reading.portion, reading.weekday, catchup=True)


def add_participant(storage: StorageAdapter, name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Please enter a name")
    storage.add_participant(name)
    return name


def remove_participant(storage: StorageAdapter, name: str) -> None:
    """Delete a participant. Their completion records are kept."""
    storage.remove_participant(name)


def login_admin(session: Session, username: str, password: str, admins: dict) -> None:
    if not username or not password:
        raise AuthenticationError("Please enter both username and password")
    if admins.get(username) != password:
        logger.warning("Failed admin login for %s", username)
        raise AuthenticationError("Invalid username or password")
    session.admin = username


def logout_admin(session: Session) -> None:
    session.admin = None


def require_admin(session: Session) -> None:
    if not session.is_admin:
        raise AuthenticationError("Admin login required")
