from __future__ import annotations

import sqlite3
from datetime import date, datetime

import pytest

from dev_time_tracker.errors import PersistenceError
from dev_time_tracker.models import DailySummaryFilters, DateRange
from dev_time_tracker.storage import SQLiteStorage

MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)


@pytest.fixture
def filled(storage):
    storage.upsert_daily_bucket(MONDAY, "VS Code", "Python", b"icon", 120, ".py")
    storage.upsert_daily_bucket(MONDAY, "VS Code", "Go", None, 30, ".go")
    storage.upsert_daily_bucket(MONDAY, "Vim", None, None, 50)
    storage.upsert_daily_bucket(TUESDAY, "VS Code", "Python", None, 40, ".py")
    return storage


def test_negative_delta_rejected(storage):
    with pytest.raises(ValueError):
        storage.upsert_daily_bucket(MONDAY, "Vim", None, None, -1)


def test_summary_for_day_is_largest_first(filled):
    rows = filled.summary_for_day(MONDAY)
    assert [(row["app"], row["language"], row["seconds"]) for row in rows] == [
        ("VS Code", "Python", 120),
        ("Vim", None, 50),
        ("VS Code", "Go", 30),
    ]
    assert filled.total_seconds_for_day(MONDAY) == 200
    assert filled.total_seconds_for_day(date(2026, 1, 1)) == 0


def test_editor_and_language_totals(filled):
    editors = {row["app"]: row["seconds"] for row in filled.editor_totals()}
    assert editors == {"VS Code": 190, "Vim": 50}
    languages = {row["language"]: row["seconds"] for row in filled.language_totals()}
    assert languages == {"Python": 160, "Go": 30}


def test_daily_summary_filters(filled):
    rows = filled.daily_summary(DailySummaryFilters(app="VS Code", start_date=TUESDAY))
    assert [(row["date"], row["seconds"]) for row in rows] == [("2026-03-03", 40)]

    rows = filled.daily_summary(DailySummaryFilters(language="Go"))
    assert [(row["date"], row["app"], row["seconds"]) for row in rows] == [
        ("2026-03-02", "VS Code", 30)
    ]


def test_language_summary_excludes_unknown(filled):
    rows = filled.language_summary(DateRange(MONDAY, TUESDAY))
    assert [(row["language"], row["seconds"]) for row in rows] == [("Python", 160), ("Go", 30)]


def test_date_range_rejects_reversed_bounds():
    with pytest.raises(ValueError):
        DateRange(TUESDAY, MONDAY)


def test_logged_days(filled):
    filled.upsert_daily_bucket(date(2026, 4, 1), "Vim", None, None, 10)
    assert filled.logged_days(2026, 3) == ["2026-03-02", "2026-03-03"]
    assert filled.logged_days(2025, 3) == []


def test_usage_logs_newest_first(storage):
    storage.append_usage_log("Vim", "a.py", "Python", datetime(2026, 3, 2, 9, 0, 0))
    storage.append_usage_log("Vim", "b.py", "Python", datetime(2026, 3, 2, 9, 0, 10))
    storage.append_usage_log("Vim", "c.py", "Python", datetime(2026, 3, 3, 9, 0, 0))

    assert [log["title"] for log in storage.usage_logs(MONDAY)] == ["b.py", "a.py"]
    assert len(storage.usage_logs(limit=1)) == 1


def test_driver_errors_become_persistence_errors(storage, monkeypatch):
    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr("dev_time_tracker.db.insert_usage_log", broken)
    with pytest.raises(PersistenceError):
        storage.append_usage_log("Vim", None, None, datetime(2026, 3, 2))


def test_unopenable_database_raises(tmp_path):
    with pytest.raises(PersistenceError):
        SQLiteStorage(tmp_path / "missing-dir" / "usage.sqlite3")


def test_session_round_trip_keeps_start_time(storage):
    start = datetime(2026, 3, 2, 14, 5, 30, 123456)
    session = storage.insert_finalized_session(1, start, 900, "Write docs", None)
    loaded = storage.get_session(session.id)
    assert loaded.start_time == start
    assert loaded.day == MONDAY
    assert loaded.description is None
    assert loaded.tags == frozenset()
