"""Interactive CLI application."""
import logging
import re
import sys
from dataclasses import dataclass
from datetime import date

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from bible_tracker.config import Config, load_config
from bible_tracker.errors import StorageUnavailableError, TrackerError, ValidationError
from bible_tracker.export import (
    admin_report_filename, build_admin_report, build_progress_report,
    format_timestamp, progress_report_filename, write_report,
)
from bible_tracker.importer import import_schedule
from bible_tracker.models import ScheduleEntry
from bible_tracker.schedule import day_name, load_default_schedule, month_name, to_date
from bible_tracker.stats import (
    compute_admin_aggregate, compute_completion_stats, compute_missed_readings,
    compute_weekly_report, completions_on, filter_completions, iso_week_of,
    participant_summaries, recent_completions, top_readers,
)
from bible_tracker.storage import StorageAdapter, open_storage, wait_until_ready
from bible_tracker.tracker import (
    Session, add_participant, clear_user, get_today_reading, load_session, login_admin,
    logout_admin, mark_missed_complete, mark_today_complete, remove_participant,
    require_admin, select_user,
)

console = Console()
logger = logging.getLogger(__name__)

MONITOR_LIMIT = 50
WEEK_PATTERN = re.compile(r"^(\d{4})-W(\d{1,2})$")


@dataclass
class AppContext:
    storage: StorageAdapter
    schedule: list[ScheduleEntry]
    session: Session
    config: Config


def setup_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def load_plan(config: Config) -> list[ScheduleEntry]:
    if config.schedule_path:
        return import_schedule(config.schedule_path)
    return load_default_schedule()


def progress_bar(pct: int, color: str = "magenta") -> str:
    bar_filled = min(int(pct / 5), 20)
    bar_empty = 20 - bar_filled
    return f"[{color}]{'█' * bar_filled}{'░' * bar_empty}[/{color}]"


def show_welcome():
    console.print(Panel(
        "[bold]Bible Reading Plan[/bold]\n[dim]Daily reading tracker[/dim]",
        title="Welcome", border_style="magenta",
    ))


def show_menu(session: Session):
    reader = session.user or "[dim]none selected[/dim]"
    console.print(f"\n[bold]Reader:[/bold] {reader}")
    console.print("[bold]Commands:[/bold]")
    commands = [
        ("today", "Today's reading"),
        ("complete", "Mark today's reading complete"),
        ("missed", "Catch up on missed readings"),
        ("history", "Your reading history"),
        ("progress", "Your progress and streak"),
        ("export", "Export your progress as CSV"),
        ("dashboard", "Top readers and all participants"),
        ("user", "Choose your name"),
        ("admin", "Admin panel"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def cmd_user(ctx: AppContext):
    participants = ctx.storage.list_participants()
    if not participants:
        console.print("[yellow]No participants yet. Ask an admin to add you.[/yellow]")
        return
    for name in participants:
        console.print(f"  [cyan]{name}[/cyan]")
    choices = participants + ["clear"] if ctx.session.user else participants
    name = Prompt.ask("Choose your name", choices=choices, default=ctx.session.user)
    if name == "clear" and name not in participants:
        clear_user(ctx.storage, ctx.session)
        console.print("[dim]Reader cleared.[/dim]")
        return
    select_user(ctx.storage, ctx.session, name)
    console.print(f"[green]Reading as {name}[/green]")


def cmd_today(ctx: AppContext, today: date | None = None):
    today = today or date.today()
    reading = get_today_reading(ctx.schedule, today)
    if reading is None:
        console.print(Panel(
            "No reading scheduled today. Use 'missed' to catch up.",
            title=f"{day_name(today)}, {today.day} {month_name(today)}", border_style="dim",
        ))
        return
    completions = ctx.storage.list_completions()
    done = any(c.user_name == ctx.session.user and c.date == reading.date for c in completions)
    status = "[green]Completed ✓[/green]" if done else "[yellow]Not yet completed[/yellow]"
    count = completions_on(completions, reading.date)
    console.print(Panel(
        f"[bold]{reading.portion}[/bold]\n{status}\n[dim]+{count} Completed[/dim]",
        title=f"{reading.weekday}, {today.day} {month_name(today)}", border_style="magenta",
    ))


def cmd_complete(ctx: AppContext, today: date | None = None):
    record = mark_today_complete(ctx.storage, ctx.schedule, ctx.session, today)
    console.print(f"[green]{record.portion} completed! Keep it up![/green]")


def cmd_missed(ctx: AppContext, today: date | None = None):
    if not ctx.session.user:
        raise ValidationError("Please select your name first")
    missed = compute_missed_readings(
        ctx.session.user, ctx.storage.list_completions(), ctx.schedule, today,
    )[-6:]
    if not missed:
        console.print("[green]No missed readings. Well done![/green]")
        return
    table = Table(title="Missed Readings")
    table.add_column("Date")
    table.add_column("Day")
    table.add_column("Portion", style="cyan")
    for entry in missed:
        table.add_row(entry.date, entry.weekday, entry.portion)
    console.print(table)
    choice = Prompt.ask(
        "Date to mark complete", choices=[e.date for e in missed] + ["skip"], default="skip",
    )
    if choice == "skip":
        return
    record = mark_missed_complete(ctx.storage, ctx.schedule, ctx.session, choice, today)
    console.print(f"[green]Catch-up reading {record.portion} completed! Great job![/green]")


def cmd_history(ctx: AppContext):
    if not ctx.session.user:
        raise ValidationError("Please select your name first")
    completions = recent_completions(ctx.session.user, ctx.storage.list_completions(), limit=None)
    if not completions:
        console.print("[yellow]No completed readings yet. Start today![/yellow]")
        return
    table = Table(title=f"Reading History: {ctx.session.user}")
    table.add_column("Date")
    table.add_column("Day")
    table.add_column("Portion", style="cyan")
    table.add_column("Completed On")
    for c in completions:
        portion = f"{c.portion} [dark_orange](Catch-up)[/dark_orange]" if c.catchup else c.portion
        table.add_row(c.date, c.day, portion, format_timestamp(c.completed_on))
    console.print(table)


def cmd_progress(ctx: AppContext, today: date | None = None):
    if not ctx.session.user:
        raise ValidationError("Please select your name first")
    stats = compute_completion_stats(
        ctx.session.user, ctx.storage.list_completions(), ctx.schedule, today,
    )
    console.print(Panel(
        f"Progress: [bold]{stats.percentage}%[/bold] {progress_bar(stats.percentage)}\n\n"
        f"Completed: [bold]{stats.completed}[/bold]  |  "
        f"Total: [bold]{stats.total}[/bold]  |  "
        f"Remaining: [bold]{stats.remaining}[/bold]  |  "
        f"Streak: [bold]{stats.streak}[/bold] days",
        title=f"Progress: {ctx.session.user}", border_style="magenta",
    ))


def cmd_export(ctx: AppContext, today: date | None = None):
    if not ctx.session.user:
        raise ValidationError("Please select your name first")
    today = today or date.today()
    content = build_progress_report(
        ctx.session.user, ctx.storage.list_completions(), ctx.schedule, today,
    )
    path = write_report(content, ctx.config.export_dir, progress_report_filename(ctx.session.user, today))
    console.print(f"[green]Progress exported to {path}[/green]")


def cmd_dashboard(ctx: AppContext, today: date | None = None):
    participants = ctx.storage.list_participants()
    if not participants:
        console.print("[yellow]No participants yet.[/yellow]")
        return
    completions = ctx.storage.list_completions()

    medals = {0: "🥇", 1: "🥈", 2: "🥉"}
    top = Table(title="Top Readers")
    top.add_column("Rank", justify="right")
    top.add_column("Name", style="cyan")
    top.add_column("Completed", justify="right")
    top.add_column("Streak", justify="right")
    for i, reader in enumerate(top_readers(participants, completions, ctx.schedule, today)):
        top.add_row(medals.get(i, str(i + 1)), reader.user_name, str(reader.completed), str(reader.streak))
    console.print(top)

    table = Table(title="All Participants")
    table.add_column("Name", style="cyan")
    table.add_column("Completed", justify="right")
    table.add_column("Progress", justify="right")
    table.add_column("Streak", justify="right")
    table.add_column("Last Reading")
    for user in participant_summaries(participants, completions, ctx.schedule, today):
        last = user.recent[0].portion if user.recent else ""
        table.add_row(user.user_name, str(user.completed), f"{user.percentage}%", str(user.streak), last)
    console.print(table)


def admin_login(ctx: AppContext):
    if ctx.session.is_admin:
        return
    username = Prompt.ask("Admin username")
    password = Prompt.ask("Password", password=True)
    login_admin(ctx.session, username, password, ctx.config.admins)
    console.print(f"[green]Signed in as {username}[/green]")


def admin_stats(ctx: AppContext, today: date | None = None):
    participants = ctx.storage.list_participants()
    completions = ctx.storage.list_completions()
    agg = compute_admin_aggregate(participants, completions, ctx.schedule, today)
    console.print(f"\n  Participants: [bold]{agg.total_participants}[/bold]  |  "
                  f"Completions: [bold]{agg.total_completions}[/bold]  |  "
                  f"Avg Completion: [bold]{agg.avg_completion_percent}%[/bold]  |  "
                  f"Today: [bold]{agg.today_completions}[/bold]")

    table = Table(title="Participants")
    table.add_column("Name", style="cyan")
    table.add_column("Completed", justify="right")
    table.add_column("Progress", justify="right")
    for name in participants:
        stats = compute_completion_stats(name, completions, ctx.schedule, today)
        table.add_row(name, str(stats.completed), f"{stats.percentage}%")
    console.print(table)


def admin_add(ctx: AppContext):
    name = add_participant(ctx.storage, Prompt.ask("New participant name"))
    console.print(f"[green]{name} added successfully![/green]")


def admin_remove(ctx: AppContext):
    participants = ctx.storage.list_participants()
    if not participants:
        console.print("[yellow]No participants to remove.[/yellow]")
        return
    name = Prompt.ask("Participant to remove", choices=participants)
    if not Confirm.ask(f"Remove {name}? Their past readings are kept.", default=False):
        return
    remove_participant(ctx.storage, name)
    console.print(f"[green]{name} removed successfully[/green]")


def parse_week(value: str) -> tuple[int, int]:
    """Parse ``YYYY-Www`` into (year, week)."""
    match = WEEK_PATTERN.match(value.strip())
    if not match:
        raise ValidationError(f"Week must look like 2026-W02, got {value!r}")
    year, week = int(match.group(1)), int(match.group(2))
    if not 1 <= week <= 53:
        raise ValidationError(f"Week number out of range: {week}")
    return year, week


def admin_weekly(ctx: AppContext, today: date | None = None):
    year, week = iso_week_of(today or date.today())
    year, week = parse_week(Prompt.ask("Week", default=f"{year}-W{week:02d}"))
    report = compute_weekly_report(
        week, year, ctx.storage.list_participants(), ctx.storage.list_completions(), ctx.schedule,
    )
    if not report.readings:
        console.print("[yellow]No readings scheduled for this week[/yellow]")
        return
    table = Table(title=f"Week {report.year}-W{report.week:02d} ({report.start} to {report.end})")
    table.add_column("Name", style="cyan")
    table.add_column("Completed", justify="right")
    table.add_column("Missed", justify="right")
    table.add_column("Rate", justify="right")
    for row in report.rows:
        color = "green" if row.rate >= 80 else "yellow" if row.rate >= 50 else "red"
        table.add_row(row.user_name, str(row.completed), str(row.missed), f"[{color}]{row.rate}%[/{color}]")
    console.print(table)


def admin_monitor(ctx: AppContext):
    user = Prompt.ask("Filter by user (blank for all)", default="")
    day = Prompt.ask("Filter by date YYYY-MM-DD (blank for all)", default="")
    if day:
        try:
            to_date(day)
        except ValueError:
            raise ValidationError(f"Not a date: {day}") from None
    rows = filter_completions(ctx.storage.list_completions(), user_name=user or None, day=day or None)
    if not rows:
        console.print("[yellow]No completions found[/yellow]")
        return
    table = Table(title="Progress Monitor")
    table.add_column("Name", style="cyan")
    table.add_column("Date")
    table.add_column("Portion")
    table.add_column("Type")
    table.add_column("Completed On")
    for c in rows[:MONITOR_LIMIT]:
        table.add_row(c.user_name, c.date, c.portion, c.kind, format_timestamp(c.completed_on))
    console.print(table)
    if len(rows) > MONITOR_LIMIT:
        console.print(f"[dim]Showing {MONITOR_LIMIT} of {len(rows)} completions[/dim]")


def admin_export(ctx: AppContext, today: date | None = None):
    today = today or date.today()
    content = build_admin_report(
        ctx.storage.list_participants(), ctx.storage.list_completions(), ctx.schedule, today,
    )
    path = write_report(content, ctx.config.export_dir, admin_report_filename(today))
    console.print(f"[green]Data exported to {path}[/green]")


def cmd_admin(ctx: AppContext):
    admin_login(ctx)
    actions = {
        "stats": admin_stats,
        "add": admin_add,
        "remove": admin_remove,
        "weekly": admin_weekly,
        "monitor": admin_monitor,
        "export": admin_export,
    }
    while True:
        console.print("\n[bold]Admin:[/bold] " + ", ".join(f"[cyan]{a}[/cyan]" for a in actions)
                      + ", [cyan]logout[/cyan], [cyan]back[/cyan]")
        choice = Prompt.ask("[bold]admin>[/bold]", default="back").strip().lower()
        if choice == "back":
            return
        if choice == "logout":
            logout_admin(ctx.session)
            console.print("[dim]Signed out.[/dim]")
            return
        action = actions.get(choice)
        if action is None:
            console.print("[red]Unknown command. Try again.[/red]")
            continue
        try:
            require_admin(ctx.session)
            action(ctx)
        except TrackerError as e:
            console.print(f"[red]{e}[/red]")


COMMANDS = {
    "today": cmd_today,
    "complete": cmd_complete,
    "missed": cmd_missed,
    "history": cmd_history,
    "progress": cmd_progress,
    "export": cmd_export,
    "dashboard": cmd_dashboard,
    "user": cmd_user,
    "admin": cmd_admin,
}


def run_command(ctx: AppContext, choice: str) -> bool:
    """Run one menu command. Returns False when the user asked to quit."""
    if choice in ("quit", "exit", "q"):
        console.print("[dim]Keep reading![/dim]")
        return False
    command = COMMANDS.get(choice)
    if command is None:
        console.print("[red]Unknown command. Try again.[/red]")
        return True
    try:
        command(ctx)
    except TrackerError as e:
        console.print(f"[red]{e}[/red]")
    return True


def main():
    try:
        config = load_config()
    except ValueError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(2)
    setup_logging(config.debug)

    storage = open_storage(config)
    try:
        wait_until_ready(storage, timeout=config.ready_timeout)
    except StorageUnavailableError as e:
        console.print(Panel(f"[red]{e}[/red]", title="Storage unavailable", border_style="red"))
        sys.exit(1)

    try:
        schedule = load_plan(config)
    except (OSError, ValueError) as e:
        console.print(f"[red]Could not load reading plan: {e}[/red]")
        sys.exit(2)

    ctx = AppContext(
        storage=storage,
        schedule=schedule,
        session=load_session(storage),
        config=config,
    )
    show_welcome()
    if not ctx.session.user:
        console.print("[dim]Use 'user' to choose your name.[/dim]")

    while True:
        show_menu(ctx.session)
        choice = Prompt.ask("\n[bold]>[/bold]", default="today").strip().lower()
        try:
            if not run_command(ctx, choice):
                break
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            logger.debug("Command %s failed", choice, exc_info=True)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
