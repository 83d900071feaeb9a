from __future__ import annotations

import itertools
from datetime import date, datetime

import pytest

from dev_time_tracker.aggregation import PERSIST_FAILED_MESSAGE, AggregationEngine
from dev_time_tracker.errors import PersistenceError
from dev_time_tracker.events import NOTIFY, EventBus
from dev_time_tracker.models import Sample

DAY = date(2026, 3, 2)


def _sample(observed_at: datetime, seconds: int = 10, icon=None, language="Go") -> Sample:
    return Sample(
        app="Editor",
        title="main.go",
        language=language,
        icon=icon,
        observed_at=observed_at,
        duration_seconds=seconds,
        language_extension=".go" if language == "Go" else None,
    )


@pytest.mark.parametrize("order", list(itertools.permutations([(10, b""), (5, b"first"), (7, b"second")])))
def test_merge_is_order_independent_and_keeps_first_icon(tmp_path, order):
    from dev_time_tracker.storage import SQLiteStorage

    storage = SQLiteStorage(tmp_path / f"{abs(hash(order))}.sqlite3")
    try:
        engine = AggregationEngine(storage, background=False)
        for seconds, icon in order:
            engine.merge(DAY, "Editor", "Go", icon, seconds)

        bucket = storage.get_bucket(DAY, "Editor", "Go")
        first_non_empty = next(icon for _, icon in order if icon)
        assert bucket.time_spent_seconds == 22
        assert bucket.icon == first_non_empty
    finally:
        storage.close()


def test_submit_writes_bucket_and_raw_log(storage):
    engine = AggregationEngine(storage, background=False)
    engine.submit(_sample(datetime(2026, 3, 2, 10, 0, 0)))
    engine.submit(_sample(datetime(2026, 3, 2, 10, 0, 10)))

    assert storage.get_bucket(DAY, "Editor", "Go").time_spent_seconds == 20
    logs = storage.usage_logs(DAY)
    assert len(logs) == 2
    assert {log["language"] for log in logs} == {"Go"}


def test_day_boundary_samples_land_in_separate_buckets(storage):
    engine = AggregationEngine(storage, background=False)
    engine.submit(_sample(datetime(2026, 3, 2, 23, 59, 55)))
    engine.submit(_sample(datetime(2026, 3, 3, 0, 0, 5)))

    assert storage.get_bucket(date(2026, 3, 2), "Editor", "Go").time_spent_seconds == 10
    assert storage.get_bucket(date(2026, 3, 3), "Editor", "Go").time_spent_seconds == 10


def test_null_language_is_its_own_bucket(storage):
    engine = AggregationEngine(storage, background=False)
    engine.merge(DAY, "Editor", None, None, 10)
    engine.merge(DAY, "Editor", None, None, 10)
    engine.merge(DAY, "Editor", "Go", None, 5)

    assert storage.get_bucket(DAY, "Editor", None).time_spent_seconds == 20
    assert storage.get_bucket(DAY, "Editor", "Go").time_spent_seconds == 5


def test_today_snapshot_resets_on_day_rollover(storage):
    engine = AggregationEngine(storage, background=False)
    engine.submit(_sample(datetime(2026, 3, 2, 23, 59, 55), icon=b"i"))
    assert [b.time_spent_seconds for b in engine.today_snapshot(DAY)] == [10]

    engine.submit(_sample(datetime(2026, 3, 3, 0, 0, 5)))
    assert engine.today_snapshot(DAY) == []
    snapshot = engine.today_snapshot(date(2026, 3, 3))
    assert len(snapshot) == 1
    assert snapshot[0].day == date(2026, 3, 3)


def test_background_writer_preserves_order(storage):
    engine = AggregationEngine(storage, background=True)
    engine.start()
    try:
        for second in range(0, 50, 10):
            engine.submit(_sample(datetime(2026, 3, 2, 11, 0, second)))
        engine.join()
    finally:
        engine.stop()

    logs = storage.usage_logs(DAY)
    timestamps = [log["timestamp"] for log in reversed(logs)]
    assert timestamps == sorted(timestamps)
    assert storage.get_bucket(DAY, "Editor", "Go").time_spent_seconds == 50


class _BrokenStorage:
    def append_usage_log(self, *args):
        raise PersistenceError("disk full")

    def upsert_daily_bucket(self, *args, **kwargs):
        raise AssertionError("not reached")


def test_persistence_failure_notifies_and_continues():
    bus = EventBus()
    seen = []
    bus.subscribe(seen.append)
    engine = AggregationEngine(_BrokenStorage(), bus, background=False)

    engine.submit(_sample(datetime(2026, 3, 2, 10, 0, 0)))
    engine.submit(_sample(datetime(2026, 3, 2, 10, 0, 10)))

    notices = [event for event in seen if event.name == NOTIFY]
    assert [event.payload["message"] for event in notices] == [PERSIST_FAILED_MESSAGE] * 2
