"""Progress statistics: completion rates, streaks and weekly reports.

Every function here is pure. Completions and schedules are read-only
snapshots and the reference date is passed in, defaulting to today.
"""
import logging
import math
from datetime import date, timedelta

from bible_tracker.models import (
    AdminAggregate, CompletionRecord, CompletionStats, ScheduleEntry,
    UserSummary, WeeklyReport, WeeklyRow,
)
from bible_tracker.schedule import get_readings_up_to_date, is_rest_day

logger = logging.getLogger(__name__)

STREAK_LOOKBACK_DAYS = 365


def _today(today: date | None) -> date:
    return today or date.today()


def percent(part: float, whole: float) -> int:
    """Percentage rounded half up, 0 when there is nothing to divide by."""
    if not whole:
        return 0
    return math.floor(part / whole * 100 + 0.5)


def user_completions(user_name: str, completions: list[CompletionRecord]) -> list[CompletionRecord]:
    return [c for c in completions if c.user_name == user_name]


def calculate_streak(
    user_name: str,
    completions: list[CompletionRecord],
    schedule: list[ScheduleEntry],
    today: date | None = None,
) -> int:
    """Count consecutive scheduled days read, walking back from today.

    Weekends and unscheduled days are skipped. Today may still be unread
    without breaking the run; any earlier miss ends it. The walk stops after
    STREAK_LOOKBACK_DAYS calendar days.
    """
    done = {c.date for c in user_completions(user_name, completions)}
    if not done:
        return 0
    by_date = {entry.date: entry for entry in schedule}
    start = _today(today)
    current = start
    streak = 0
    for _ in range(STREAK_LOOKBACK_DAYS):
        key = current.isoformat()
        entry = by_date.get(key)
        if entry is not None and not is_rest_day(entry):
            if key in done:
                streak += 1
            elif current != start:
                break
        current -= timedelta(days=1)
    return streak


def compute_completion_stats(
    user_name: str,
    completions: list[CompletionRecord],
    schedule: list[ScheduleEntry],
    today: date | None = None,
) -> CompletionStats:
    today = _today(today)
    total = len(get_readings_up_to_date(schedule, today.isoformat()))
    completed = len(user_completions(user_name, completions))
    return CompletionStats(
        total=total,
        completed=completed,
        remaining=max(total - completed, 0),
        percentage=percent(completed, total),
        streak=calculate_streak(user_name, completions, schedule, today),
    )


def iso_week_start(week: int, year: int) -> date:
    """Monday of ISO week ``week`` in ``year``.

    Starts from Jan 1 + (week - 1) weeks, then moves back to that week's
    Monday for Sunday..Thursday or forward to the next Monday otherwise.
    """
    simple = date(year, 1, 1) + timedelta(days=(week - 1) * 7)
    dow = (simple.weekday() + 1) % 7  # 0 = Sunday
    if dow <= 4:
        return simple - timedelta(days=dow - 1)
    return simple + timedelta(days=8 - dow)


def iso_week_of(day: date) -> tuple[int, int]:
    """Return (iso_year, iso_week) for a date."""
    iso = day.isocalendar()
    return iso[0], iso[1]


def compute_weekly_report(
    week: int,
    year: int,
    participants: list[str],
    completions: list[CompletionRecord],
    schedule: list[ScheduleEntry],
) -> WeeklyReport:
    start = iso_week_start(week, year)
    first, last = start.isoformat(), (start + timedelta(days=6)).isoformat()
    readings = [entry for entry in schedule if first <= entry.date <= last]
    report = WeeklyReport(year=year, week=week, start=first, end=last, readings=readings)
    for name in participants:
        completed = sum(
            1 for c in completions
            if c.user_name == name and first <= c.date <= last
        )
        missed = len(readings) - completed
        if missed < 0:
            logger.warning(
                "%s has %d completions outside the schedule in week %d-W%02d",
                name, -missed, year, week,
            )
            missed = 0
        report.rows.append(WeeklyRow(
            user_name=name,
            completed=completed,
            missed=missed,
            rate=percent(completed, len(readings)),
        ))
    return report


def compute_missed_readings(
    user_name: str,
    completions: list[CompletionRecord],
    schedule: list[ScheduleEntry],
    today: date | None = None,
) -> list[ScheduleEntry]:
    cutoff = _today(today).isoformat()
    done = {c.date for c in user_completions(user_name, completions)}
    return [entry for entry in schedule if entry.date < cutoff and entry.date not in done]


def compute_admin_aggregate(
    participants: list[str],
    completions: list[CompletionRecord],
    schedule: list[ScheduleEntry],
    today: date | None = None,
) -> AdminAggregate:
    today = _today(today)
    total = len(get_readings_up_to_date(schedule, today.isoformat()))
    # Average of each participant's unrounded rate, not a pooled rate
    rates = [
        len(user_completions(name, completions)) / total * 100 if total else 0.0
        for name in participants
    ]
    avg = math.floor(sum(rates) / len(rates) + 0.5) if rates else 0
    return AdminAggregate(
        total_participants=len(participants),
        total_completions=len(completions),
        avg_completion_percent=avg,
        today_completions=completions_on(completions, today.isoformat()),
    )


def completions_on(completions: list[CompletionRecord], day: str) -> int:
    return sum(1 for c in completions if c.date == day)


def recent_completions(
    user_name: str, completions: list[CompletionRecord], limit: int | None = 6,
) -> list[CompletionRecord]:
    mine = sorted(user_completions(user_name, completions), key=lambda c: c.date, reverse=True)
    return mine[:limit]


def user_summary(
    user_name: str,
    completions: list[CompletionRecord],
    schedule: list[ScheduleEntry],
    today: date | None = None,
    recent: int = 5,
) -> UserSummary:
    stats = compute_completion_stats(user_name, completions, schedule, today)
    return UserSummary(
        user_name=user_name,
        completed=stats.completed,
        percentage=stats.percentage,
        streak=stats.streak,
        recent=recent_completions(user_name, completions, limit=recent),
    )


def top_readers(
    participants: list[str],
    completions: list[CompletionRecord],
    schedule: list[ScheduleEntry],
    today: date | None = None,
    limit: int = 5,
) -> list[UserSummary]:
    summaries = [user_summary(name, completions, schedule, today) for name in participants]
    summaries.sort(key=lambda s: s.completed, reverse=True)
    return summaries[:limit]


def participant_summaries(
    participants: list[str],
    completions: list[CompletionRecord],
    schedule: list[ScheduleEntry],
    today: date | None = None,
) -> list[UserSummary]:
    summaries = [user_summary(name, completions, schedule, today) for name in participants]
    return sorted(summaries, key=lambda s: s.user_name.lower())


def filter_completions(
    completions: list[CompletionRecord],
    user_name: str | None = None,
    day: str | None = None,
) -> list[CompletionRecord]:
    """Completions matching the filters, newest completedOn first."""
    rows = [
        c for c in completions
        if (not user_name or c.user_name == user_name) and (not day or c.date == day)
    ]
    return sorted(rows, key=lambda c: c.completed_on, reverse=True)

