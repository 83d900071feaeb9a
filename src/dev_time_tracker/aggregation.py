"""Merge accepted samples into per-day usage buckets."""

from __future__ import annotations

import logging
import queue
import threading
from datetime import date
from typing import Optional, Protocol

from .errors import PersistenceError
from .events import EventBus
from .models import DailyUsageBucket, Sample

logger = logging.getLogger(__name__)

PERSIST_FAILED_MESSAGE = "Failed to log window usage. Please try again."

_STOP = object()


class UsageWriter(Protocol):
    def upsert_daily_bucket(
        self,
        day: date,
        app: str,
        language: Optional[str],
        icon: Optional[bytes],
        delta_seconds: int,
        lang_ext: Optional[str] = None,
    ) -> None: ...

    def append_usage_log(self, app, title, language, timestamp) -> None: ...


class AggregationEngine:
    """Owns the bucket merge rule and the writer thread that persists it.

    With ``background=True`` samples are queued and written in arrival order by
    a dedicated thread; otherwise :meth:`submit` writes inline.
    """

    def __init__(
        self,
        storage: UsageWriter,
        events: Optional[EventBus] = None,
        *,
        background: bool = True,
    ) -> None:
        self._storage = storage
        self._events = events
        self._background = background
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._today_lock = threading.Lock()
        self._today: dict[tuple[str, Optional[str]], DailyUsageBucket] = {}
        self._today_date: Optional[date] = None

    def start(self) -> None:
        if not self._background or (self._thread and self._thread.is_alive()):
            return
        self._thread = threading.Thread(
            target=self._drain_forever, name="aggregation-writer", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float = 10.0) -> None:
        thread = self._thread
        if not thread:
            return
        self._queue.put(_STOP)
        thread.join(timeout=timeout)
        self._thread = None

    def submit(self, sample: Sample) -> None:
        self._remember(sample)
        if self._background and self._thread and self._thread.is_alive():
            self._queue.put(sample)
        else:
            self._write(sample)

    def join(self) -> None:
        """Block until every queued sample has been written."""
        if self._thread and self._thread.is_alive():
            self._queue.join()

    def merge(
        self,
        day: date,
        app: str,
        language: Optional[str],
        icon: Optional[bytes],
        delta_seconds: int,
        lang_ext: Optional[str] = None,
    ) -> None:
        """Add ``delta_seconds`` to the (day, app, language) bucket in one upsert."""
        self._storage.upsert_daily_bucket(day, app, language, icon, delta_seconds, lang_ext)

    def today_snapshot(self, today: Optional[date] = None) -> list[DailyUsageBucket]:
        with self._today_lock:
            if today is not None and today != self._today_date:
                return []
            buckets = [
                DailyUsageBucket(
                    day=bucket.day,
                    app=bucket.app,
                    language=bucket.language,
                    time_spent_seconds=bucket.time_spent_seconds,
                    icon=bucket.icon,
                    language_extension=bucket.language_extension,
                )
                for bucket in self._today.values()
            ]
        return sorted(buckets, key=lambda bucket: bucket.time_spent_seconds, reverse=True)

    def _remember(self, sample: Sample) -> None:
        with self._today_lock:
            if sample.day != self._today_date:
                if self._today_date is not None and sample.day < self._today_date:
                    return
                self._today = {}
                self._today_date = sample.day
            key = (sample.app, sample.language)
            bucket = self._today.get(key)
            if bucket is None:
                bucket = DailyUsageBucket(day=sample.day, app=sample.app, language=sample.language)
                self._today[key] = bucket
            bucket.absorb(sample.duration_seconds, sample.icon, sample.language_extension)

    def _write(self, sample: Sample) -> None:
        try:
            self._storage.append_usage_log(
                sample.app, sample.title, sample.language, sample.observed_at
            )
            self.merge(
                sample.day,
                sample.app,
                sample.language,
                sample.icon,
                sample.duration_seconds,
                sample.language_extension,
            )
        except PersistenceError:
            logger.exception("Failed to persist sample for %s", sample.app)
            if self._events is not None:
                self._events.notify(PERSIST_FAILED_MESSAGE)

    def _drain_forever(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._write(item)  # type: ignore[arg-type]
            except Exception:
                logger.exception("Aggregation writer failed; continuing.")
            finally:
                self._queue.task_done()
