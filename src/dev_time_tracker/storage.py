"""Thread-safe storage facade used by the tracking engine and the UI."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, TypeVar

from . import db
from .errors import PersistenceError
from .models import (
    DailyGoal,
    DailySummaryFilters,
    DailyUsageBucket,
    DateRange,
    FinalizedSession,
    ReminderKind,
    ScheduledSession,
    ScheduledSessionFilters,
    ScheduledStatus,
    SessionFilters,
    Tag,
    WeeklyRecurrence,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SQLiteStorage:
    """Serializes access to one SQLite connection and converts driver errors."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            self._conn = db.open_database(db_path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not open database {db_path}: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _run(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        with self._lock:
            try:
                return operation(self._conn, *args, **kwargs)
            except sqlite3.Error as exc:
                raise PersistenceError(f"{operation.__name__} failed: {exc}") from exc

    # --- usage ---

    def upsert_daily_bucket(
        self,
        day: date,
        app: str,
        language: Optional[str],
        icon: Optional[bytes],
        delta_seconds: int,
        lang_ext: Optional[str] = None,
    ) -> None:
        if delta_seconds < 0:
            raise ValueError("delta_seconds must not be negative")
        self._run(db.upsert_daily_bucket, day, app, language, icon, delta_seconds, lang_ext)

    def append_usage_log(
        self, app: str, title: Optional[str], language: Optional[str], timestamp: datetime
    ) -> None:
        self._run(db.insert_usage_log, app, title, language, timestamp)

    def get_bucket(
        self, day: date, app: str, language: Optional[str]
    ) -> Optional[DailyUsageBucket]:
        row = self._run(db.fetch_bucket, day, app, language)
        if row is None:
            return None
        return DailyUsageBucket(
            day=day,
            app=row["app"],
            language=row["language"],
            time_spent_seconds=int(row["time_spent"]),
            icon=row["icon"],
            language_extension=row["lang_ext"],
        )

    def summary_for_day(self, day: date) -> list[dict[str, Any]]:
        return [dict(row) for row in self._run(db.fetch_summary_by_day, day)]

    def editor_totals(self) -> list[dict[str, Any]]:
        return [dict(row) for row in self._run(db.fetch_editor_totals)]

    def language_totals(self) -> list[dict[str, Any]]:
        return [dict(row) for row in self._run(db.fetch_language_totals)]

    def daily_summary(self, filters: Optional[DailySummaryFilters] = None) -> list[dict[str, Any]]:
        return [dict(row) for row in self._run(db.fetch_daily_summary, filters)]

    def language_summary(self, days: DateRange) -> list[dict[str, Any]]:
        return [dict(row) for row in self._run(db.fetch_language_summary, days)]

    def logged_days(self, year: int, month: int) -> list[str]:
        return self._run(db.fetch_logged_days, year, month)

    def total_seconds_for_day(self, day: date) -> int:
        return self._run(db.fetch_total_seconds_for_day, day)

    def usage_logs(self, day: Optional[date] = None, limit: int = 100) -> list[dict[str, Any]]:
        return [dict(row) for row in self._run(db.fetch_usage_logs, day, limit)]

    # --- sessions ---

    def insert_finalized_session(
        self,
        user_id: int,
        start_time: datetime,
        duration_seconds: int,
        title: str,
        description: Optional[str] = None,
        tags: Iterable[str] = (),
    ) -> FinalizedSession:
        """Insert the session and its tags atomically."""
        created_at = datetime.now()
        tag_names = db.clean_tag_names(tags)
        session_id = self._run(
            db.insert_session,
            user_id,
            start_time.date(),
            start_time,
            duration_seconds,
            title,
            description,
            created_at,
            tag_names,
        )
        return FinalizedSession(
            id=session_id,
            user_id=user_id,
            day=start_time.date(),
            start_time=start_time,
            duration_seconds=duration_seconds,
            title=title,
            description=description,
            tags=frozenset(tag_names),
            created_at=created_at,
        )

    def set_session_tags(self, user_id: int, session_id: int, tag_names: Iterable[str]) -> None:
        self._run(db.replace_session_tags, user_id, session_id, list(tag_names))

    def get_session(self, session_id: int) -> Optional[FinalizedSession]:
        with self._lock:
            try:
                row = db.fetch_session(self._conn, session_id)
                if row is None:
                    return None
                tags = db.fetch_session_tags(self._conn, session_id)
            except sqlite3.Error as exc:
                raise PersistenceError(f"get_session failed: {exc}") from exc
        return _row_to_session(row, tags)

    def list_sessions(
        self, user_id: int, filters: Optional[SessionFilters] = None
    ) -> list[FinalizedSession]:
        with self._lock:
            try:
                rows = db.fetch_sessions(self._conn, user_id, filters)
                return [
                    _row_to_session(row, db.fetch_session_tags(self._conn, row["id"]))
                    for row in rows
                ]
            except sqlite3.Error as exc:
                raise PersistenceError(f"list_sessions failed: {exc}") from exc

    def update_session(
        self,
        session_id: int,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        self._run(db.update_session, session_id, title=title, description=description)

    def delete_session(self, session_id: int) -> bool:
        return self._run(db.delete_session, session_id)

    # --- tags ---

    def list_tags(self, user_id: int) -> list[Tag]:
        return [
            Tag(id=row["id"], user_id=row["user_id"], name=row["name"], color=row["color"])
            for row in self._run(db.fetch_tags, user_id)
        ]

    def set_tag_color(self, user_id: int, name: str, color: str) -> bool:
        return self._run(db.update_tag_color, user_id, name, color)

    def delete_tag(self, user_id: int, name: str) -> bool:
        return self._run(db.delete_tag, user_id, name)

    # --- scheduled sessions ---

    def insert_scheduled_sessions(
        self,
        user_id: int,
        title: str,
        occurrences: list[datetime],
        *,
        description: Optional[str] = None,
        estimated_minutes: Optional[int] = None,
        recurrence: Optional[WeeklyRecurrence] = None,
        tags: Iterable[str] = (),
    ) -> list[ScheduledSession]:
        ids = self._run(
            db.insert_scheduled_sessions,
            user_id,
            title,
            description,
            occurrences,
            estimated_minutes,
            _recurrence_json(recurrence),
            datetime.now(),
            list(tags),
        )
        created = [self.get_scheduled_session(user_id, scheduled_id) for scheduled_id in ids]
        return [session for session in created if session is not None]

    def get_scheduled_session(
        self, user_id: int, scheduled_id: int
    ) -> Optional[ScheduledSession]:
        with self._lock:
            try:
                row = db.fetch_scheduled_session(self._conn, user_id, scheduled_id)
                if row is None:
                    return None
                tags = db.fetch_scheduled_session_tags(self._conn, scheduled_id)
            except sqlite3.Error as exc:
                raise PersistenceError(f"get_scheduled_session failed: {exc}") from exc
        return _row_to_scheduled(row, tags)

    def list_scheduled_sessions(
        self, user_id: int, filters: Optional[ScheduledSessionFilters] = None
    ) -> list[ScheduledSession]:
        with self._lock:
            try:
                rows = db.fetch_scheduled_sessions(self._conn, user_id, filters)
                return [
                    _row_to_scheduled(row, db.fetch_scheduled_session_tags(self._conn, row["id"]))
                    for row in rows
                ]
            except sqlite3.Error as exc:
                raise PersistenceError(f"list_scheduled_sessions failed: {exc}") from exc

    def update_scheduled_session(
        self,
        user_id: int,
        scheduled_id: int,
        changes: dict[str, object],
        tags: Optional[Iterable[str]] = None,
    ) -> bool:
        return self._run(
            db.update_scheduled_session,
            user_id,
            scheduled_id,
            changes,
            None if tags is None else list(tags),
        )

    def complete_scheduled_session(
        self, user_id: int, scheduled_id: int, actual_session_id: Optional[int] = None
    ) -> bool:
        return self._run(db.complete_scheduled_session, user_id, scheduled_id, actual_session_id)

    def delete_scheduled_session(self, user_id: int, scheduled_id: int) -> bool:
        return self._run(db.delete_scheduled_session, user_id, scheduled_id)

    def mark_scheduled_notified(
        self, user_id: int, scheduled_id: int, kind: ReminderKind, sent_at: datetime
    ) -> bool:
        return self._run(db.mark_scheduled_notified, user_id, scheduled_id, kind.value, sent_at)

    # --- daily goals ---

    def set_daily_goal(
        self, user_id: int, day: date, target_minutes: int, description: Optional[str] = None
    ) -> DailyGoal:
        with self._lock:
            try:
                db.upsert_daily_goal(self._conn, user_id, day, target_minutes, description)
                row = db.fetch_daily_goal(self._conn, user_id, day)
            except sqlite3.Error as exc:
                raise PersistenceError(f"set_daily_goal failed: {exc}") from exc
        return _row_to_goal(row)

    def get_daily_goal(self, user_id: int, day: date) -> Optional[DailyGoal]:
        row = self._run(db.fetch_daily_goal, user_id, day)
        return _row_to_goal(row) if row is not None else None

    def list_daily_goals(self, user_id: int) -> list[DailyGoal]:
        return [_row_to_goal(row) for row in self._run(db.fetch_daily_goals, user_id)]

    def complete_daily_goal(self, user_id: int, day: date) -> bool:
        return self._run(db.complete_daily_goal, user_id, day, datetime.now())

    def delete_daily_goal(self, user_id: int, day: date) -> bool:
        return self._run(db.delete_daily_goal, user_id, day)


def _row_to_session(row: sqlite3.Row, tags: Iterable[str]) -> FinalizedSession:
    start = datetime.strptime(row["start_time"], db.DATETIME_FMT)
    return FinalizedSession(
        id=row["id"],
        user_id=row["user_id"],
        day=datetime.strptime(row["date"], db.DATE_FMT).date(),
        start_time=start,
        duration_seconds=int(row["duration"]),
        title=row["title"],
        description=row["description"],
        tags=frozenset(tags),
        created_at=datetime.strptime(row["created_at"], db.DATETIME_FMT),
    )


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.strptime(value, db.DATETIME_FMT) if value else None


def _recurrence_json(recurrence: Optional[WeeklyRecurrence]) -> Optional[str]:
    if recurrence is None:
        return None
    return json.dumps(
        {
            "end_date": recurrence.end_date.isoformat() if recurrence.end_date else None,
            "occurrences": recurrence.occurrences,
        }
    )


def _recurrence_from_row(row: sqlite3.Row) -> Optional[WeeklyRecurrence]:
    if row["recurrence_type"] != "weekly":
        return None
    data = json.loads(row["recurrence_data"] or "{}")
    end_date = data.get("end_date")
    return WeeklyRecurrence(
        end_date=date.fromisoformat(end_date) if end_date else None,
        occurrences=data.get("occurrences"),
    )


def _row_to_scheduled(row: sqlite3.Row, tags: Iterable[str]) -> ScheduledSession:
    kind = row["last_notification_kind"]
    return ScheduledSession(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        scheduled_at=datetime.strptime(row["scheduled_at"], db.DATETIME_FMT),
        description=row["description"],
        estimated_minutes=row["estimated_minutes"],
        recurrence=_recurrence_from_row(row),
        status=ScheduledStatus(row["status"]),
        tags=frozenset(tags),
        created_at=_parse_datetime(row["created_at"]),
        last_notification_sent=_parse_datetime(row["last_notification_sent"]),
        last_notification_kind=ReminderKind(kind) if kind else None,
        actual_session_id=row["actual_session_id"],
    )


def _row_to_goal(row: sqlite3.Row) -> DailyGoal:
    return DailyGoal(
        id=row["id"],
        user_id=row["user_id"],
        day=datetime.strptime(row["date"], db.DATE_FMT).date(),
        target_minutes=int(row["target_minutes"]),
        description=row["description"],
        completed=bool(row["completed"]),
        completed_at=_parse_datetime(row["completed_at"]),
    )
