"""Fixed-interval sampler that turns foreground windows into usage samples."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from .errors import ResolverError, TimerArmError
from .models import UNKNOWN_LANGUAGE, Sample
from .resolver import WindowIdentityResolver

logger = logging.getLogger(__name__)

SampleHandler = Callable[[Sample], None]


class ActivitySampler:
    """Samples the foreground window every ``interval_seconds`` while armed.

    Each accepted sample carries the interval itself as its duration, so usage
    time is a count of observed ticks rather than a stopwatch reading.
    """

    def __init__(
        self,
        resolver: WindowIdentityResolver,
        interval_seconds: int,
        on_sample: SampleHandler,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._resolver = resolver
        self.interval_seconds = interval_seconds
        self._on_sample = on_sample
        self._clock = clock
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def armed(self) -> bool:
        with self._lock:
            return self._stop_event is not None and not self._stop_event.is_set()

    def arm(self) -> None:
        with self._lock:
            if self._stop_event is not None and not self._stop_event.is_set():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                name="activity-sampler",
                daemon=True,
            )
            try:
                thread.start()
            except RuntimeError as exc:
                raise TimerArmError("Unable to start the sampling timer") from exc
            self._thread = thread
            self._stop_event = stop_event
            logger.debug("Sampler armed every %ss.", self.interval_seconds)

    def disarm(self) -> None:
        with self._lock:
            if self._stop_event is None:
                return
            self._stop_event.set()
            self._stop_event = None
            self._thread = None
            logger.debug("Sampler disarmed.")

    def tick(self, stop_event: Optional[threading.Event] = None) -> Optional[Sample]:
        """Take one sample on the calling thread and hand it to the handler.

        When ``stop_event`` is given and gets set while the window is being
        resolved, the sample is dropped: it belongs to a disarmed timer.
        """
        try:
            window = self._resolver.resolve()
        except ResolverError:
            logger.warning("Window lookup failed; skipping tick.", exc_info=True)
            return None
        if window is None:
            return None

        sample = Sample(
            app=window.app,
            title=window.title,
            language=window.language or UNKNOWN_LANGUAGE,
            icon=window.icon,
            observed_at=self._clock(),
            duration_seconds=self.interval_seconds,
            language_extension=window.extension,
        )
        if stop_event is not None and stop_event.is_set():
            logger.debug("Dropping sample from a disarmed sampler.")
            return None
        logger.debug(
            "Sample: app=%s language=%s title=%s", sample.app, sample.language, sample.title
        )
        self._on_sample(sample)
        return sample

    def _run_loop(self, stop_event: threading.Event) -> None:
        # Wait first: the first tick lands one interval after arming.
        while not stop_event.wait(self.interval_seconds):
            try:
                self.tick(stop_event)
            except Exception:
                logger.exception("Sampler tick failed; continuing.")
