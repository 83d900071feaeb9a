"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from .models import FinalizedSession, UNKNOWN_LANGUAGE
from .storage import SQLiteStorage


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, storage: SQLiteStorage) -> None:
        self.storage = storage

    def print_daily_summary(self, day: date) -> None:
        rows = self.storage.summary_for_day(day)
        if not rows:
            print("No activity recorded for the selected day.")
            return

        total = sum(row["seconds"] for row in rows)
        print(f"Summary for {day.strftime('%Y-%m-%d')}")
        print("-" * 40)
        print(f"Tracked time: {format_duration(total)}")
        print()

        top_apps = aggregate_by_key(rows, "app")
        print("Top editors:")
        for app, seconds in top_apps[:5]:
            print(f"  {app:<30} {format_duration(seconds)}")

        top_languages = aggregate_by_key(rows, "language")
        if top_languages:
            print()
            print("Top languages:")
            for language, seconds in top_languages[:5]:
                print(f"  {language:<30} {format_duration(seconds)}")

    def print_sessions(self, sessions: Iterable[FinalizedSession]) -> None:
        sessions = list(sessions)
        if not sessions:
            print("No sessions recorded.")
            return
        for session in sessions:
            tags = ", ".join(sorted(session.tags)) if session.tags else "-"
            print(
                f"{session.id:>5}  {session.start_time.strftime('%Y-%m-%d %H:%M')}  "
                f"{format_duration(session.duration_seconds)}  {session.title[:40]:<40}  {tags}"
            )


def aggregate_by_key(rows: Iterable[dict], key: str) -> list[tuple[str, float]]:
    totals: defaultdict[str, float] = defaultdict(float)
    for row in rows:
        label: Optional[str] = row[key]
        totals[label or UNKNOWN_LANGUAGE] += row["seconds"]
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_time_spent(seconds: float) -> str:
    """Format as "1h 2m 3s", omitting zero hours and minutes."""
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)
