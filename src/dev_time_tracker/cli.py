"""Command-line interface for the tracker."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import typer

from .config import load_settings, save_idle_timeout
from .errors import InvalidPlanError, InvalidSettingError
from .events import GET_SESSION_INFO, NOTIFY, UIEvent
from .models import Created, SessionFilters, SessionInfo
from .paths import get_config_path, get_db_path, get_log_path
from .server_runner import run_dashboard

app = typer.Typer(help="Local-first coding activity tracker.")


@app.callback(no_args_is_help=True)
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    log_to_file: bool = typer.Option(
        False, "--log-file", help="Also write logs to the tracker log file."
    ),
) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_to_file:
        handlers.append(logging.FileHandler(get_log_path(), encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
    )


def _parse_day(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise typer.BadParameter("Dates must use YYYY-MM-DD.") from exc


@app.command()
def track(
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the usage SQLite database.",
    ),
    interval_seconds: Optional[int] = typer.Option(
        None,
        "--interval",
        min=1,
        help="Sampling interval in seconds (defaults to the saved setting, 10).",
    ),
    idle_seconds: Optional[int] = typer.Option(
        None,
        "--idle-timeout",
        min=60,
        max=300,
        help="Seconds without input before tracking pauses.",
    ),
    user_id: int = typer.Option(1, "--user", help="User the session belongs to."),
) -> None:
    """Record a work session until interrupted, then ask for its title."""
    from .engine import create_default_engine
    from .reporting import format_time_spent
    from .storage import SQLiteStorage

    settings = load_settings(get_config_path(), user_id=user_id)
    if interval_seconds is not None:
        settings.tracking_interval = timedelta(seconds=interval_seconds)
    if idle_seconds is not None:
        settings.idle_timeout = timedelta(seconds=idle_seconds)

    storage = SQLiteStorage(db_path or get_db_path())
    engine = create_default_engine(storage, settings)

    def on_event(event: UIEvent) -> None:
        if event.name == NOTIFY:
            typer.echo(event.payload.get("message", ""))
        elif event.name == GET_SESSION_INFO:
            title = typer.prompt("Session title (leave blank to discard)", default="", show_default=False)
            description = typer.prompt("Description", default="", show_default=False)
            tags = typer.prompt("Tags (comma separated)", default="", show_default=False)
            engine.reply_session_info(
                SessionInfo(
                    title=title,
                    description=description or None,
                    tags=tuple(tag.strip() for tag in tags.split(",") if tag.strip()),
                ),
                request_id=event.payload.get("request_id"),
            )

    engine.events.subscribe(on_event)
    engine.start()
    engine.start_tracking(user_id)
    typer.echo("Tracking. Press Ctrl+C to stop.")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        typer.echo("")
    try:
        outcome = engine.stop_tracking(user_id).result()
        if isinstance(outcome, Created):
            typer.echo(
                f"Saved session {outcome.session.id}: {outcome.session.title} "
                f"({format_time_spent(outcome.session.duration_seconds)})"
            )
        else:
            typer.echo(f"No session created ({outcome.reason}).")
    finally:
        engine.shutdown()
        storage.close()


@app.command()
def sample(
    user_id: int = typer.Option(1, "--user", help="User whose language overrides apply."),
) -> None:
    """Resolve the foreground window once and print what would be recorded."""
    from .resolver import WindowIdentityResolver, WindowsActiveWindowProbe
    from .sampler import ActivitySampler

    settings = load_settings(get_config_path(), user_id=user_id)
    resolver = WindowIdentityResolver(
        WindowsActiveWindowProbe(), language_overrides=settings.language_overrides
    )
    result = ActivitySampler(resolver, settings.interval_seconds, lambda _: None).tick()
    if result is None:
        typer.echo("Foreground window is not a known editor.")
        return
    typer.echo(f"{result.app} | {result.language} | {result.title}")


@app.command()
def summary(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to summarize. Defaults to today.",
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the usage SQLite database.",
    ),
) -> None:
    """Print a high-level summary for a specific day."""
    from .reporting import SummaryPrinter
    from .storage import SQLiteStorage

    target = _parse_day(date) or datetime.now()
    storage = SQLiteStorage(db_path or get_db_path())
    try:
        SummaryPrinter(storage).print_daily_summary(target.date())
    finally:
        storage.close()


@app.command()
def sessions(
    tag: Optional[str] = typer.Option(None, "--tag", help="Only sessions with this tag."),
    start: Optional[str] = typer.Option(None, "--from", help="First day (YYYY-MM-DD)."),
    end: Optional[str] = typer.Option(None, "--to", help="Last day (YYYY-MM-DD)."),
    user_id: int = typer.Option(1, "--user", help="Whose sessions to list."),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the usage SQLite database."
    ),
) -> None:
    """List saved work sessions."""
    from .reporting import SummaryPrinter
    from .storage import SQLiteStorage

    start_day = _parse_day(start)
    end_day = _parse_day(end)
    filters = SessionFilters(
        tag=tag,
        start_date=start_day.date() if start_day else None,
        end_date=end_day.date() if end_day else None,
    )
    storage = SQLiteStorage(db_path or get_db_path())
    try:
        SummaryPrinter(storage).print_sessions(storage.list_sessions(user_id, filters))
    finally:
        storage.close()


@app.command("idle-timeout")
def idle_timeout(
    seconds: Optional[int] = typer.Argument(
        None, help="New idle timeout in seconds (60-300). Omit to show the current value."
    ),
) -> None:
    """Show or change the idle timeout."""
    config_path = get_config_path()
    if seconds is None:
        current = load_settings(config_path).idle_timeout.total_seconds()
        typer.echo(f"{int(current)}")
        return
    try:
        save_idle_timeout(config_path, seconds)
    except InvalidSettingError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"Idle timeout set to {seconds} seconds.")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the dashboard."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the usage SQLite database."
    ),
    open_browser: bool = typer.Option(
        True,
        "--open-browser/--no-open-browser",
        help="Automatically launch the dashboard in your default browser.",
    ),
) -> None:
    """Start the local API with the tracking engine running in the background."""
    run_dashboard(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        config_path=get_config_path(),
        open_browser=open_browser,
    )


@app.command()
def goal(
    minutes: Optional[int] = typer.Argument(
        None, min=1, help="Target minutes for the day. Omit to show progress."
    ),
    date: Optional[str] = typer.Option(None, "--date", help="Day (YYYY-MM-DD). Defaults to today."),
    user_id: int = typer.Option(1, "--user", help="Whose goal to show or set."),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the usage SQLite database."
    ),
) -> None:
    """Show or set the daily coding goal."""
    from .planning import PlanningService
    from .storage import SQLiteStorage

    day = (_parse_day(date) or datetime.now()).date()
    storage = SQLiteStorage(db_path or get_db_path())
    try:
        planning = PlanningService(storage)
        if minutes is not None:
            planning.set_daily_goal(user_id, day, minutes)
            typer.echo(f"Goal for {day.isoformat()} set to {minutes} minutes.")
            return
        progress = planning.goal_progress(user_id, day)
        target = progress["goal"]
        if target is None:
            typer.echo(f"No goal set for {day.isoformat()}.")
            return
        state = "reached" if progress["reached"] else "in progress"
        typer.echo(
            f"{day.isoformat()}: {progress['tracked_minutes']:.0f} of "
            f"{target.target_minutes} minutes ({state})"
        )
    finally:
        storage.close()


@app.command()
def plan(
    title: str = typer.Argument(..., help="What the session is for."),
    at: str = typer.Option(..., "--at", help="Start time as 'YYYY-MM-DD HH:MM'."),
    minutes: Optional[int] = typer.Option(None, "--minutes", min=1, help="Estimated length."),
    weekly: Optional[int] = typer.Option(
        None, "--weekly", min=1, help="Repeat weekly for this many sessions in total."
    ),
    tag: list[str] = typer.Option([], "--tag", help="Tag to attach; repeatable."),
    user_id: int = typer.Option(1, "--user", help="Who the session is planned for."),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the usage SQLite database."
    ),
) -> None:
    """Schedule a future work session."""
    from .models import WeeklyRecurrence
    from .planning import PlanningService
    from .storage import SQLiteStorage

    try:
        start = datetime.strptime(at, "%Y-%m-%d %H:%M")
    except ValueError as exc:
        raise typer.BadParameter("Use 'YYYY-MM-DD HH:MM' for --at.") from exc
    recurrence = WeeklyRecurrence(occurrences=weekly) if weekly else None
    storage = SQLiteStorage(db_path or get_db_path())
    try:
        created = PlanningService(storage).schedule_session(
            user_id, title, start, estimated_minutes=minutes, recurrence=recurrence, tags=tag
        )
    except InvalidPlanError as exc:
        raise typer.BadParameter(str(exc)) from exc
    finally:
        storage.close()
    typer.echo(f"Scheduled {len(created)} session(s) starting {start:%Y-%m-%d %H:%M}.")


@app.command()
def plans(
    start: Optional[str] = typer.Option(None, "--from", help="First day (YYYY-MM-DD)."),
    end: Optional[str] = typer.Option(None, "--to", help="Last day (YYYY-MM-DD)."),
    user_id: int = typer.Option(1, "--user", help="Whose plans to list."),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the usage SQLite database."
    ),
) -> None:
    """List scheduled sessions."""
    from .models import ScheduledSessionFilters
    from .planning import PlanningService
    from .storage import SQLiteStorage

    start_day = _parse_day(start)
    end_day = _parse_day(end)
    filters = ScheduledSessionFilters(
        start_date=start_day.date() if start_day else None,
        end_date=end_day.date() if end_day else None,
    )
    storage = SQLiteStorage(db_path or get_db_path())
    try:
        scheduled = PlanningService(storage).list_scheduled(user_id, filters)
    finally:
        storage.close()
    if not scheduled:
        typer.echo("Nothing scheduled.")
        return
    for item in scheduled:
        length = f" ({item.estimated_minutes} min)" if item.estimated_minutes else ""
        typer.echo(
            f"{item.id:>4}  {item.scheduled_at:%Y-%m-%d %H:%M}  {item.status.value:<9}  "
            f"{item.title}{length}"
        )
