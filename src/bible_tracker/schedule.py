"""The fixed reading plan and calendar helpers."""
import json
from datetime import date
from pathlib import Path
from typing import Iterable

from bible_tracker.models import ScheduleEntry

CONTENT_DIR = Path(__file__).parent / "content"

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
WEEKEND_NAMES = {"Saturday", "Sunday"}
MONTH_NAMES = ["JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"]


def to_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def day_name(day: date) -> str:
    return DAY_NAMES[day.weekday()]


def month_name(day: date) -> str:
    return MONTH_NAMES[day.month - 1]


def is_rest_day(entry: ScheduleEntry) -> bool:
    """Whether a scheduled entry falls on a weekend.

    The entry's own weekday label wins over the calendar; unlabeled entries
    fall back to the calendar date.
    """
    if entry.weekday:
        return entry.weekday in WEEKEND_NAMES
    return is_weekend(to_date(entry.date))


def build_schedule(rows: Iterable[dict]) -> list[ScheduleEntry]:
    """Build an ordered schedule from raw rows, rejecting bad or repeated dates."""
    entries = []
    seen = set()
    for row in rows:
        entry = ScheduleEntry.from_dict(row)
        to_date(entry.date)  # raises ValueError on malformed dates
        if entry.date in seen:
            raise ValueError(f"Duplicate schedule date: {entry.date}")
        seen.add(entry.date)
        if not entry.weekday:
            entry = ScheduleEntry(entry.date, entry.portion, day_name(to_date(entry.date)))
        entries.append(entry)
    return sorted(entries, key=lambda e: e.date)


def load_default_schedule() -> list[ScheduleEntry]:
    """Load the bundled reading plan from schedule.json."""
    data = json.loads((CONTENT_DIR / "schedule.json").read_text())
    return build_schedule(data["readings"])


def get_reading_for_date(schedule: list[ScheduleEntry], day: str) -> ScheduleEntry | None:
    for entry in schedule:
        if entry.date == day:
            return entry
    return None


def get_readings_up_to_date(schedule: list[ScheduleEntry], day: str) -> list[ScheduleEntry]:
    """Entries dated on or before ``day`` (ISO strings sort chronologically)."""
    return [entry for entry in schedule if entry.date <= day]
