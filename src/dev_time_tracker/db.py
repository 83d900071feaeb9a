"""SQLite database layer for usage buckets, raw logs, sessions and plans."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence

from .models import DailySummaryFilters, DateRange, ScheduledSessionFilters, SessionFilters


DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"
DATE_FMT = "%Y-%m-%d"
DEFAULT_TAG_COLOR = "#f0db4f"

# Languages are stored as '' when unknown so the unique key also covers them.
_NO_LANGUAGE = ""


def open_database(path: Path | str, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS usage (
            id INTEGER PRIMARY KEY,
            app TEXT NOT NULL,
            title TEXT,
            language TEXT,
            timestamp TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_usage_timestamp
            ON usage(timestamp);

        CREATE TABLE IF NOT EXISTS usage_summary (
            id INTEGER PRIMARY KEY,
            date TEXT NOT NULL,
            app TEXT NOT NULL,
            language TEXT NOT NULL DEFAULT '',
            lang_ext TEXT,
            icon BLOB,
            time_spent INTEGER NOT NULL DEFAULT 0 CHECK (time_spent >= 0),
            UNIQUE (date, app, language)
        );

        CREATE TABLE IF NOT EXISTS sessions (
            id INTEGER PRIMARY KEY,
            user_id INTEGER NOT NULL,
            date TEXT NOT NULL,
            start_time TEXT NOT NULL,
            duration INTEGER NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS tags (
            id INTEGER PRIMARY KEY,
            user_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            color TEXT,
            UNIQUE (name, user_id)
        );

        CREATE TABLE IF NOT EXISTS session_tags (
            session_id INTEGER NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
            tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
            PRIMARY KEY (session_id, tag_id)
        );

        CREATE TABLE IF NOT EXISTS scheduled_sessions (
            id INTEGER PRIMARY KEY,
            user_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            scheduled_at TEXT NOT NULL,
            estimated_minutes INTEGER CHECK (estimated_minutes IS NULL OR estimated_minutes > 0),
            recurrence_type TEXT NOT NULL DEFAULT 'none'
                CHECK (recurrence_type IN ('none', 'weekly')),
            recurrence_data TEXT,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'notified', 'completed', 'missed', 'cancelled')),
            created_at TEXT NOT NULL,
            last_notification_sent TEXT,
            last_notification_kind TEXT,
            actual_session_id INTEGER REFERENCES sessions(id) ON DELETE SET NULL
        );

        CREATE INDEX IF NOT EXISTS idx_scheduled_sessions_at
            ON scheduled_sessions(user_id, scheduled_at);

        CREATE TABLE IF NOT EXISTS scheduled_session_tags (
            scheduled_session_id INTEGER NOT NULL
                REFERENCES scheduled_sessions(id) ON DELETE CASCADE,
            tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
            PRIMARY KEY (scheduled_session_id, tag_id)
        );

        CREATE TABLE IF NOT EXISTS daily_goals (
            id INTEGER PRIMARY KEY,
            user_id INTEGER NOT NULL,
            date TEXT NOT NULL,
            target_minutes INTEGER NOT NULL CHECK (target_minutes > 0),
            description TEXT,
            completed INTEGER NOT NULL DEFAULT 0,
            completed_at TEXT,
            UNIQUE (user_id, date)
        );
        """
    )


def _day_str(value: date) -> str:
    return value.strftime(DATE_FMT)


def _stored_language(language: Optional[str]) -> str:
    return language if language else _NO_LANGUAGE


def _row_language(value: Optional[str]) -> Optional[str]:
    return value or None


# --- usage buckets and raw log ---


def upsert_daily_bucket(
    conn: sqlite3.Connection,
    day: date,
    app: str,
    language: Optional[str],
    icon: Optional[bytes],
    delta_seconds: int,
    lang_ext: Optional[str] = None,
) -> None:
    """Add ``delta_seconds`` to the bucket for the key, creating it when missing."""
    conn.execute(
        """
        INSERT INTO usage_summary (date, app, language, lang_ext, icon, time_spent)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT (date, app, language) DO UPDATE SET
            time_spent = usage_summary.time_spent + excluded.time_spent,
            icon = CASE
                WHEN usage_summary.icon IS NULL OR length(usage_summary.icon) = 0
                THEN excluded.icon
                ELSE usage_summary.icon
            END,
            lang_ext = COALESCE(excluded.lang_ext, usage_summary.lang_ext)
        """,
        (
            _day_str(day),
            app,
            _stored_language(language),
            lang_ext,
            icon,
            delta_seconds,
        ),
    )


def insert_usage_log(
    conn: sqlite3.Connection,
    app: str,
    title: Optional[str],
    language: Optional[str],
    timestamp: datetime,
) -> None:
    conn.execute(
        "INSERT INTO usage (app, title, language, timestamp) VALUES (?, ?, ?, ?)",
        (app, title, language, timestamp.strftime(DATETIME_FMT)),
    )


def fetch_bucket(
    conn: sqlite3.Connection, day: date, app: str, language: Optional[str]
) -> Optional[sqlite3.Row]:
    return conn.execute(
        """
        SELECT date, app, NULLIF(language, '') AS language, lang_ext, icon, time_spent
        FROM usage_summary
        WHERE date = ? AND app = ? AND language = ?
        """,
        (_day_str(day), app, _stored_language(language)),
    ).fetchone()


def fetch_summary_by_day(conn: sqlite3.Connection, day: date) -> list[sqlite3.Row]:
    """Return every bucket recorded for a given day, largest first."""
    return list(
        conn.execute(
            """
            SELECT app, NULLIF(language, '') AS language, lang_ext, icon,
                   time_spent AS seconds
            FROM usage_summary
            WHERE date = ?
            ORDER BY time_spent DESC, app
            """,
            (_day_str(day),),
        )
    )


def fetch_editor_totals(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            """
            SELECT app, SUM(time_spent) AS seconds
            FROM usage_summary
            GROUP BY app
            ORDER BY seconds DESC, app
            """
        )
    )


def fetch_language_totals(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            """
            SELECT language, SUM(time_spent) AS seconds
            FROM usage_summary
            WHERE language != ''
            GROUP BY language
            ORDER BY seconds DESC, language
            """
        )
    )


def fetch_daily_summary(
    conn: sqlite3.Connection, filters: Optional[DailySummaryFilters] = None
) -> list[sqlite3.Row]:
    """Per-day, per-app totals narrowed by the optional filters."""
    filters = filters or DailySummaryFilters()
    clauses: list[str] = []
    params: list[object] = []
    if filters.language is not None:
        clauses.append("language = ?")
        params.append(_stored_language(filters.language))
    if filters.app is not None:
        clauses.append("app = ?")
        params.append(filters.app)
    if filters.start_date is not None:
        clauses.append("date >= ?")
        params.append(_day_str(filters.start_date))
    if filters.end_date is not None:
        clauses.append("date <= ?")
        params.append(_day_str(filters.end_date))
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return list(
        conn.execute(
            f"""
            SELECT date, app, MAX(icon) AS icon, SUM(time_spent) AS seconds
            FROM usage_summary
            {where}
            GROUP BY date, app
            ORDER BY date DESC, seconds DESC
            """,
            params,
        )
    )


def fetch_language_summary(conn: sqlite3.Connection, days: DateRange) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            """
            SELECT language, lang_ext, SUM(time_spent) AS seconds
            FROM usage_summary
            WHERE date BETWEEN ? AND ? AND language != ''
            GROUP BY language, lang_ext
            ORDER BY seconds DESC
            """,
            (_day_str(days.start), _day_str(days.end)),
        )
    )


def fetch_logged_days(conn: sqlite3.Connection, year: int, month: int) -> list[str]:
    rows = conn.execute(
        """
        SELECT DISTINCT date FROM usage_summary
        WHERE strftime('%Y', date) = ? AND strftime('%m', date) = ?
        ORDER BY date
        """,
        (f"{year:04d}", f"{month:02d}"),
    )
    return [row["date"] for row in rows]


def fetch_total_seconds_for_day(conn: sqlite3.Connection, day: date) -> int:
    row = conn.execute(
        "SELECT COALESCE(SUM(time_spent), 0) AS total FROM usage_summary WHERE date = ?",
        (_day_str(day),),
    ).fetchone()
    return int(row["total"])


def fetch_usage_logs(
    conn: sqlite3.Connection, day: Optional[date] = None, limit: int = 100
) -> list[sqlite3.Row]:
    if day is not None:
        return list(
            conn.execute(
                """
                SELECT app, title, language, timestamp
                FROM usage
                WHERE substr(timestamp, 1, 10) = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (_day_str(day), limit),
            )
        )
    return list(
        conn.execute(
            "SELECT app, title, language, timestamp FROM usage ORDER BY id DESC LIMIT ?",
            (limit,),
        )
    )


# --- sessions and tags ---


def insert_session(
    conn: sqlite3.Connection,
    user_id: int,
    day: date,
    start_time: datetime,
    duration: int,
    title: str,
    description: Optional[str],
    created_at: datetime,
    tag_names: Iterable[str] = (),
) -> int:
    """Insert a session and link its tags in one transaction."""
    conn.execute("BEGIN")
    try:
        session_id = _insert_session_row(
            conn, user_id, day, start_time, duration, title, description, created_at
        )
        _link_tags(conn, user_id, session_id, tag_names)
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")
    return session_id


def _insert_session_row(
    conn: sqlite3.Connection,
    user_id: int,
    day: date,
    start_time: datetime,
    duration: int,
    title: str,
    description: Optional[str],
    created_at: datetime,
) -> int:
    cur = conn.execute(
        """
        INSERT INTO sessions (user_id, date, start_time, duration, title, description, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            user_id,
            _day_str(day),
            start_time.strftime(DATETIME_FMT),
            duration,
            title,
            description,
            created_at.strftime(DATETIME_FMT),
        ),
    )
    return int(cur.lastrowid)


def fetch_session(conn: sqlite3.Connection, session_id: int) -> Optional[sqlite3.Row]:
    return conn.execute(
        """
        SELECT id, user_id, date, start_time, duration, title, description, created_at
        FROM sessions WHERE id = ?
        """,
        (session_id,),
    ).fetchone()


def fetch_sessions(
    conn: sqlite3.Connection, user_id: int, filters: Optional[SessionFilters] = None
) -> list[sqlite3.Row]:
    filters = filters or SessionFilters()
    clauses = ["s.user_id = ?"]
    params: list[object] = [user_id]
    if filters.tag is not None:
        clauses.append(
            """
            s.id IN (
                SELECT st.session_id FROM session_tags st
                JOIN tags t ON t.id = st.tag_id
                WHERE t.name = ? AND t.user_id = ?
            )
            """
        )
        params.extend([filters.tag, user_id])
    if filters.start_date is not None:
        clauses.append("s.date >= ?")
        params.append(_day_str(filters.start_date))
    if filters.end_date is not None:
        clauses.append("s.date <= ?")
        params.append(_day_str(filters.end_date))
    return list(
        conn.execute(
            f"""
            SELECT s.id, s.user_id, s.date, s.start_time, s.duration, s.title,
                   s.description, s.created_at
            FROM sessions s
            WHERE {' AND '.join(clauses)}
            ORDER BY s.start_time DESC
            """,
            params,
        )
    )


def update_session(
    conn: sqlite3.Connection,
    session_id: int,
    *,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> None:
    """Update the editable fields of a session."""
    fields: list[str] = []
    params: list[object] = []
    if title is not None:
        fields.append("title = ?")
        params.append(title)
    if description is not None:
        fields.append("description = ?")
        params.append(description)
    if not fields:
        if fetch_session(conn, session_id) is None:
            raise ValueError(f"No session found for id={session_id}")
        return

    params.append(session_id)
    cur = conn.execute(
        f"UPDATE sessions SET {', '.join(fields)} WHERE id = ?",
        params,
    )
    if cur.rowcount == 0:
        raise ValueError(f"No session found for id={session_id}")


def delete_session(conn: sqlite3.Connection, session_id: int) -> bool:
    cur = conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
    return cur.rowcount > 0


def fetch_session_tags(conn: sqlite3.Connection, session_id: int) -> list[str]:
    rows = conn.execute(
        """
        SELECT t.name FROM tags t
        JOIN session_tags st ON t.id = st.tag_id
        WHERE st.session_id = ?
        ORDER BY t.name COLLATE NOCASE
        """,
        (session_id,),
    )
    return [row["name"] for row in rows]


def ensure_tag(
    conn: sqlite3.Connection, user_id: int, name: str, color: Optional[str] = None
) -> int:
    conn.execute(
        "INSERT OR IGNORE INTO tags (name, user_id, color) VALUES (?, ?, ?)",
        (name, user_id, color or DEFAULT_TAG_COLOR),
    )
    row = conn.execute(
        "SELECT id FROM tags WHERE name = ? AND user_id = ?", (name, user_id)
    ).fetchone()
    return int(row["id"])


def replace_session_tags(
    conn: sqlite3.Connection, user_id: int, session_id: int, tag_names: Iterable[str]
) -> None:
    """Make the session's tag set exactly ``tag_names`` in one transaction."""
    conn.execute("BEGIN")
    try:
        conn.execute("DELETE FROM session_tags WHERE session_id = ?", (session_id,))
        _link_tags(conn, user_id, session_id, tag_names)
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def clean_tag_names(tag_names: Iterable[str]) -> list[str]:
    return sorted({name.strip() for name in tag_names if name and name.strip()})


# Link tables and the column naming their owner row.
_TAG_LINKS = {
    "session_tags": "session_id",
    "scheduled_session_tags": "scheduled_session_id",
}


def _link_tags(
    conn: sqlite3.Connection,
    user_id: int,
    owner_id: int,
    tag_names: Iterable[str],
    link_table: str = "session_tags",
) -> None:
    owner_column = _TAG_LINKS[link_table]
    for name in clean_tag_names(tag_names):
        tag_id = ensure_tag(conn, user_id, name)
        conn.execute(
            f"INSERT OR IGNORE INTO {link_table} ({owner_column}, tag_id) VALUES (?, ?)",
            (owner_id, tag_id),
        )


def fetch_tags(conn: sqlite3.Connection, user_id: int) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            "SELECT id, user_id, name, color FROM tags WHERE user_id = ? ORDER BY name COLLATE NOCASE",
            (user_id,),
        )
    )


def update_tag_color(conn: sqlite3.Connection, user_id: int, name: str, color: str) -> bool:
    cur = conn.execute(
        "UPDATE tags SET color = ? WHERE name = ? AND user_id = ?", (color, name, user_id)
    )
    return cur.rowcount > 0


def delete_tag(conn: sqlite3.Connection, user_id: int, name: str) -> bool:
    cur = conn.execute("DELETE FROM tags WHERE name = ? AND user_id = ?", (name, user_id))
    return cur.rowcount > 0


# --- scheduled sessions ---

_SCHEDULED_COLUMNS = """
    id, user_id, title, description, scheduled_at, estimated_minutes,
    recurrence_type, recurrence_data, status, created_at,
    last_notification_sent, last_notification_kind, actual_session_id
"""

_SCHEDULED_EDITABLE = ("title", "description", "scheduled_at", "estimated_minutes", "status")


def insert_scheduled_sessions(
    conn: sqlite3.Connection,
    user_id: int,
    title: str,
    description: Optional[str],
    occurrences: Sequence[datetime],
    estimated_minutes: Optional[int],
    recurrence_data: Optional[str],
    created_at: datetime,
    tag_names: Iterable[str] = (),
) -> list[int]:
    """Insert a planned session and its weekly repeats in one transaction.

    Only the first row carries the recurrence; the repeats are plain sessions
    so each can be moved or cancelled on its own.
    """
    tag_names = clean_tag_names(tag_names)
    ids: list[int] = []
    conn.execute("BEGIN")
    try:
        for index, scheduled_at in enumerate(occurrences):
            weekly = index == 0 and recurrence_data is not None
            cur = conn.execute(
                """
                INSERT INTO scheduled_sessions (
                    user_id, title, description, scheduled_at, estimated_minutes,
                    recurrence_type, recurrence_data, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    title,
                    description,
                    scheduled_at.strftime(DATETIME_FMT),
                    estimated_minutes,
                    "weekly" if weekly else "none",
                    recurrence_data if weekly else None,
                    created_at.strftime(DATETIME_FMT),
                ),
            )
            scheduled_id = int(cur.lastrowid)
            _link_tags(conn, user_id, scheduled_id, tag_names, "scheduled_session_tags")
            ids.append(scheduled_id)
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")
    return ids


def fetch_scheduled_session(
    conn: sqlite3.Connection, user_id: int, scheduled_id: int
) -> Optional[sqlite3.Row]:
    return conn.execute(
        f"SELECT {_SCHEDULED_COLUMNS} FROM scheduled_sessions WHERE id = ? AND user_id = ?",
        (scheduled_id, user_id),
    ).fetchone()


def fetch_scheduled_sessions(
    conn: sqlite3.Connection,
    user_id: int,
    filters: Optional[ScheduledSessionFilters] = None,
) -> list[sqlite3.Row]:
    filters = filters or ScheduledSessionFilters()
    clauses = ["user_id = ?"]
    params: list[object] = [user_id]
    if filters.start_date is not None:
        clauses.append("substr(scheduled_at, 1, 10) >= ?")
        params.append(_day_str(filters.start_date))
    if filters.end_date is not None:
        clauses.append("substr(scheduled_at, 1, 10) <= ?")
        params.append(_day_str(filters.end_date))
    if filters.statuses:
        clauses.append(f"status IN ({', '.join('?' for _ in filters.statuses)})")
        params.extend(status.value for status in filters.statuses)
    return list(
        conn.execute(
            f"""
            SELECT {_SCHEDULED_COLUMNS}
            FROM scheduled_sessions
            WHERE {' AND '.join(clauses)}
            ORDER BY scheduled_at ASC, id ASC
            """,
            params,
        )
    )


def fetch_scheduled_session_tags(conn: sqlite3.Connection, scheduled_id: int) -> list[str]:
    rows = conn.execute(
        """
        SELECT t.name FROM tags t
        JOIN scheduled_session_tags st ON t.id = st.tag_id
        WHERE st.scheduled_session_id = ?
        ORDER BY t.name COLLATE NOCASE
        """,
        (scheduled_id,),
    )
    return [row["name"] for row in rows]


def update_scheduled_session(
    conn: sqlite3.Connection,
    user_id: int,
    scheduled_id: int,
    changes: dict[str, object],
    tag_names: Optional[Iterable[str]] = None,
) -> bool:
    """Apply column ``changes`` and, when given, replace the tag set.

    Returns False when the planned session does not exist for the user.
    """
    unknown = set(changes) - set(_SCHEDULED_EDITABLE)
    if unknown:
        raise ValueError(f"Cannot update scheduled session fields: {sorted(unknown)}")
    conn.execute("BEGIN")
    try:
        if fetch_scheduled_session(conn, user_id, scheduled_id) is None:
            conn.execute("ROLLBACK")
            return False
        if changes:
            assignments = ", ".join(f"{column} = ?" for column in changes)
            conn.execute(
                f"UPDATE scheduled_sessions SET {assignments} WHERE id = ?",
                [*(_scheduled_value(value) for value in changes.values()), scheduled_id],
            )
        if tag_names is not None:
            conn.execute(
                "DELETE FROM scheduled_session_tags WHERE scheduled_session_id = ?",
                (scheduled_id,),
            )
            _link_tags(conn, user_id, scheduled_id, tag_names, "scheduled_session_tags")
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")
    return True


def _scheduled_value(value: object) -> object:
    if isinstance(value, datetime):
        return value.strftime(DATETIME_FMT)
    if isinstance(value, Enum):
        return value.value
    return value


def complete_scheduled_session(
    conn: sqlite3.Connection, user_id: int, scheduled_id: int, actual_session_id: Optional[int]
) -> bool:
    cur = conn.execute(
        """
        UPDATE scheduled_sessions SET status = 'completed', actual_session_id = ?
        WHERE id = ? AND user_id = ?
        """,
        (actual_session_id, scheduled_id, user_id),
    )
    return cur.rowcount > 0


def delete_scheduled_session(conn: sqlite3.Connection, user_id: int, scheduled_id: int) -> bool:
    cur = conn.execute(
        "DELETE FROM scheduled_sessions WHERE id = ? AND user_id = ?", (scheduled_id, user_id)
    )
    return cur.rowcount > 0


def mark_scheduled_notified(
    conn: sqlite3.Connection, user_id: int, scheduled_id: int, kind: str, sent_at: datetime
) -> bool:
    cur = conn.execute(
        """
        UPDATE scheduled_sessions
        SET last_notification_sent = ?, last_notification_kind = ?
        WHERE id = ? AND user_id = ?
        """,
        (sent_at.strftime(DATETIME_FMT), kind, scheduled_id, user_id),
    )
    return cur.rowcount > 0


# --- daily goals ---

_GOAL_COLUMNS = "id, user_id, date, target_minutes, description, completed, completed_at"


def upsert_daily_goal(
    conn: sqlite3.Connection,
    user_id: int,
    day: date,
    target_minutes: int,
    description: Optional[str],
) -> None:
    """Set the day's goal; changing the target reopens a completed goal."""
    conn.execute(
        """
        INSERT INTO daily_goals (user_id, date, target_minutes, description)
        VALUES (?, ?, ?, ?)
        ON CONFLICT (user_id, date) DO UPDATE SET
            description = excluded.description,
            completed = CASE
                WHEN daily_goals.target_minutes = excluded.target_minutes
                THEN daily_goals.completed ELSE 0
            END,
            completed_at = CASE
                WHEN daily_goals.target_minutes = excluded.target_minutes
                THEN daily_goals.completed_at ELSE NULL
            END,
            target_minutes = excluded.target_minutes
        """,
        (user_id, _day_str(day), target_minutes, description),
    )


def fetch_daily_goal(conn: sqlite3.Connection, user_id: int, day: date) -> Optional[sqlite3.Row]:
    return conn.execute(
        f"SELECT {_GOAL_COLUMNS} FROM daily_goals WHERE user_id = ? AND date = ?",
        (user_id, _day_str(day)),
    ).fetchone()


def fetch_daily_goals(conn: sqlite3.Connection, user_id: int) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            f"SELECT {_GOAL_COLUMNS} FROM daily_goals WHERE user_id = ? ORDER BY date DESC",
            (user_id,),
        )
    )


def complete_daily_goal(
    conn: sqlite3.Connection, user_id: int, day: date, completed_at: datetime
) -> bool:
    cur = conn.execute(
        """
        UPDATE daily_goals SET completed = 1, completed_at = COALESCE(completed_at, ?)
        WHERE user_id = ? AND date = ?
        """,
        (completed_at.strftime(DATETIME_FMT), user_id, _day_str(day)),
    )
    return cur.rowcount > 0


def delete_daily_goal(conn: sqlite3.Connection, user_id: int, day: date) -> bool:
    cur = conn.execute(
        "DELETE FROM daily_goals WHERE user_id = ? AND date = ?", (user_id, _day_str(day))
    )
    return cur.rowcount > 0
