"""CSV report builders for the admin export and per-reader progress export.

Values are written as-is, comma separated, without quoting.
"""
import re
from datetime import date, datetime
from pathlib import Path

from bible_tracker.models import CompletionRecord, ScheduleEntry
from bible_tracker.schedule import get_readings_up_to_date
from bible_tracker.stats import compute_completion_stats, user_completions

ADMIN_COLUMNS = "User Name,Reading Date,Portion,Day,Completed On,Type,Status"
PROGRESS_COLUMNS = "Date,Portion,Day,Completed On,Type"


def format_timestamp(value: datetime | str) -> str:
    """Render a timestamp like ``1/2/2026, 9:05:00 AM`` in local time."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    if value.tzinfo is not None:
        value = value.astimezone()
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return (
        f"{value.month}/{value.day}/{value.year}, "
        f"{hour}:{value.minute:02d}:{value.second:02d} {meridiem}"
    )


def admin_report_filename(today: date) -> str:
    return f"bible_reading_complete_report_{today.isoformat()}.csv"


def progress_report_filename(user_name: str, today: date) -> str:
    """Report filename for a reader; path separators in the name become underscores."""
    safe_name = re.sub(r"[\\/]", "_", user_name)
    return f"bible_progress_{safe_name}_{today.isoformat()}.csv"


def build_admin_report(
    participants: list[str],
    completions: list[CompletionRecord],
    schedule: list[ScheduleEntry],
    today: date | None = None,
    generated: datetime | None = None,
) -> str:
    today = today or date.today()
    generated = generated or datetime.now()
    readings = get_readings_up_to_date(schedule, today.isoformat())
    lines = [
        "Bible Reading Tracker - Complete Report",
        f"Generated: {format_timestamp(generated)}",
        f"Total Participants: {len(participants)}",
        f"Total Completions: {len(completions)}",
        "",
        ADMIN_COLUMNS,
    ]
    for name in participants:
        by_date = {c.date: c for c in user_completions(name, completions)}
        for reading in readings:
            completion = by_date.get(reading.date)
            if completion:
                tail = f"{format_timestamp(completion.completed_on)},{completion.kind},Completed"
            else:
                tail = "Not Completed,N/A,Pending"
            lines.append(f"{name},{reading.date},{reading.portion},{reading.weekday},{tail}")
    return "\n".join(lines) + "\n"


def build_progress_report(
    user_name: str,
    completions: list[CompletionRecord],
    schedule: list[ScheduleEntry],
    today: date | None = None,
    generated: datetime | None = None,
) -> str:
    today = today or date.today()
    generated = generated or datetime.now()
    stats = compute_completion_stats(user_name, completions, schedule, today)
    lines = [
        "Bible Reading Progress Report",
        f"User: {user_name}",
        f"Generated: {format_timestamp(generated)}",
        "",
        f"Total Readings: {stats.total}",
        f"Completed: {stats.completed}",
        f"Progress: {stats.percentage}%",
        f"Current Streak: {stats.streak} days",
        "",
        PROGRESS_COLUMNS,
    ]
    for c in sorted(user_completions(user_name, completions), key=lambda c: c.date):
        lines.append(f"{c.date},{c.portion},{c.day},{format_timestamp(c.completed_on)},{c.kind}")
    return "\n".join(lines) + "\n"


def write_report(content: str, export_dir: str, filename: str) -> Path:
    path = Path(export_dir) / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
