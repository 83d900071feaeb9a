"""Tracking engine: the Idle/Recording/Paused state machine and its wiring."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from .aggregation import AggregationEngine
from .config import TrackerSettings, validate_idle_timeout
from .errors import TimerArmError
from .events import AUTO_PAUSED, AUTO_RESUMED, TRACKING_STATE, WINDOW_TRACKED, EventBus
from .idle import IdleMonitor, IdleSource
from .models import (
    Discarded,
    PauseCause,
    Sample,
    SessionInfo,
    SessionOutcome,
    TrackingSession,
    TrackingState,
)
from .planning import PlanningService
from .resolver import WindowIdentityResolver
from .sampler import ActivitySampler
from .sessions import SessionInfoRequest, SessionLifecycleManager
from .storage import SQLiteStorage

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = 1


class TrackingEngine:
    """Single owner of the tracking session, the sampler and the idle monitor.

    Every transition and every tick's gate check runs under one re-entrant lock,
    so a pause can never interleave with a sample being accepted. Commands that
    make no sense in the current state are ignored and return the current state.
    """

    def __init__(
        self,
        resolver: WindowIdentityResolver,
        storage: SQLiteStorage,
        settings: Optional[TrackerSettings] = None,
        *,
        idle_source: Optional[IdleSource] = None,
        events: Optional[EventBus] = None,
        clock: Callable[[], datetime] = datetime.now,
        background_writes: bool = True,
    ) -> None:
        self.settings = settings or TrackerSettings()
        self.events = events or EventBus()
        self._clock = clock
        self.storage = storage
        self._lock = threading.RLock()
        self._session = TrackingSession()
        self.aggregation = AggregationEngine(storage, self.events, background=background_writes)
        self.sessions = SessionLifecycleManager(
            storage,
            self.events,
            min_duration_seconds=int(self.settings.min_session_duration.total_seconds()),
            info_timeout_seconds=(
                self.settings.session_info_timeout.total_seconds()
                if self.settings.session_info_timeout is not None
                else None
            ),
        )
        self.planning = PlanningService(storage, self.events, clock=clock)
        self.sampler = ActivitySampler(
            resolver, self.settings.interval_seconds, self._on_sample, clock=clock
        )
        self.idle_monitor: Optional[IdleMonitor] = None
        if idle_source is not None:
            self.idle_monitor = IdleMonitor(
                idle_source,
                threshold_seconds=lambda: self.settings.idle_timeout.total_seconds(),
                on_idle_exceeded=self.handle_idle_exceeded,
                on_lock=self.handle_lock,
                on_active=self.handle_activity,
                poll_seconds=self.settings.idle_poll_interval.total_seconds(),
            )

    # --- process lifetime ---

    def start(self) -> None:
        """Start the background services that run regardless of tracking state."""
        self.aggregation.start()
        if self.idle_monitor is not None:
            self.idle_monitor.start()

    def shutdown(self) -> None:
        self.sampler.disarm()
        if self.idle_monitor is not None:
            self.idle_monitor.stop()
        self.sessions.shutdown()
        self.aggregation.stop()
        logger.info("Tracking engine stopped.")

    # --- queries ---

    @property
    def state(self) -> TrackingState:
        with self._lock:
            return self._session.state

    def active_seconds(self) -> float:
        """Active duration so far, including the in-progress recording interval."""
        with self._lock:
            return self._active_seconds_locked(self._clock())

    def status(self) -> dict[str, Any]:
        with self._lock:
            session = self._session
            return {
                "state": session.state.value,
                "user_id": session.user_id,
                "session_start": session.session_start.isoformat() if session.session_start else None,
                "active_seconds": int(self._active_seconds_locked(self._clock())),
                "pause_cause": session.pause_cause.value if session.pause_cause else None,
                "tracking_interval_seconds": self.settings.interval_seconds,
                "idle_timeout_seconds": int(self.settings.idle_timeout.total_seconds()),
            }

    # --- commands ---

    def start_tracking(self, user_id: int = DEFAULT_USER_ID) -> TrackingState:
        with self._lock:
            if self._session.state is not TrackingState.IDLE:
                logger.debug("start-tracking ignored while %s", self._session.state.value)
                return self._session.state
            try:
                self.sampler.arm()
            except TimerArmError:
                logger.exception("Could not arm the sampler; tracking not started.")
                self.events.notify("Could not start tracking.")
                raise
            now = self._clock()
            self._session.state = TrackingState.RECORDING
            self._session.user_id = user_id
            self._session.session_start = now
            self._session.active_duration = 0.0
            self._session.last_active_timestamp = now
            self._session.pause_cause = None
            logger.info("Tracking started for user %s.", user_id)
            state = self._session.state
        self._emit_state(state)
        return state

    def pause_tracking(self) -> TrackingState:
        self._pause(PauseCause.USER)
        return self.state

    def resume_tracking(self) -> TrackingState:
        with self._lock:
            if self._session.state is not TrackingState.PAUSED:
                logger.debug("resume-tracking ignored while %s", self._session.state.value)
                return self._session.state
            self._resume_locked()
            state = self._session.state
        self._emit_state(state)
        return state

    def stop_tracking(self, user_id: Optional[int] = None) -> "Future[SessionOutcome]":
        """Return to Idle and hand the active duration to the session manager."""
        with self._lock:
            session = self._session
            if session.state is TrackingState.IDLE:
                logger.debug("stop-tracking ignored while idle")
                ignored: "Future[SessionOutcome]" = Future()
                ignored.set_result(Discarded(reason="not-tracking"))
                return ignored
            now = self._clock()
            total = self._active_seconds_locked(now)
            self.sampler.disarm()
            session_start = session.session_start or now
            owner = user_id if user_id is not None else (session.user_id or DEFAULT_USER_ID)
            session.reset()
            logger.info("Tracking stopped after %.0fs active.", total)
        self._emit_state(TrackingState.IDLE)
        return self.sessions.finalize(owner, session_start, total)

    def reply_session_info(
        self, info: SessionInfo, request_id: Optional[int] = None
    ) -> Optional[SessionInfoRequest]:
        return self.sessions.reply_session_info(info, request_id)

    def set_idle_timeout(self, seconds: float) -> None:
        validate_idle_timeout(seconds)
        with self._lock:
            self.settings.idle_timeout = timedelta(seconds=seconds)
        logger.info("Idle timeout set to %ss.", seconds)

    # --- idle monitor callbacks ---

    def handle_idle_exceeded(self, idle_seconds: float) -> None:
        if self._pause(PauseCause.IDLE):
            self.events.emit(AUTO_PAUSED, cause=PauseCause.IDLE.value)
            self.events.notify(
                f"Tracking paused after {int(idle_seconds)} seconds of inactivity."
            )

    def handle_lock(self) -> None:
        if self._pause(PauseCause.LOCK):
            self.events.emit(AUTO_PAUSED, cause=PauseCause.LOCK.value)
            self.events.notify("Tracking paused because the screen was locked.")

    def handle_activity(self) -> None:
        if not self.settings.auto_resume:
            return
        with self._lock:
            session = self._session
            if session.state is not TrackingState.PAUSED or session.pause_cause not in (
                PauseCause.IDLE,
                PauseCause.LOCK,
            ):
                return
            self._resume_locked()
        self._emit_state(TrackingState.RECORDING)
        self.events.emit(AUTO_RESUMED)

    # --- internals ---

    def _pause(self, cause: PauseCause) -> bool:
        with self._lock:
            session = self._session
            if session.state is not TrackingState.RECORDING:
                logger.debug("pause (%s) ignored while %s", cause.value, session.state.value)
                return False
            now = self._clock()
            self.sampler.disarm()
            session.active_duration += _elapsed(session.last_active_timestamp, now)
            session.last_active_timestamp = None
            session.state = TrackingState.PAUSED
            session.pause_cause = cause
            logger.info("Tracking paused (%s).", cause.value)
        self._emit_state(TrackingState.PAUSED)
        return True

    def _resume_locked(self) -> None:
        self.sampler.arm()
        self._session.last_active_timestamp = self._clock()
        self._session.state = TrackingState.RECORDING
        self._session.pause_cause = None
        logger.info("Tracking resumed.")

    def _active_seconds_locked(self, now: datetime) -> float:
        session = self._session
        total = session.active_duration
        if session.state is TrackingState.RECORDING:
            total += _elapsed(session.last_active_timestamp, now)
        return total

    def _on_sample(self, sample: Sample) -> None:
        with self._lock:
            if self._session.state is not TrackingState.RECORDING:
                logger.debug("Dropping sample for %s; not recording.", sample.app)
                return
            self.aggregation.submit(sample)
        self.events.emit(
            WINDOW_TRACKED,
            app=sample.app,
            title=sample.title,
            language=sample.language,
            observed_at=sample.observed_at.isoformat(),
        )

    def _emit_state(self, state: TrackingState) -> None:
        self.events.emit(TRACKING_STATE, state=state.value)


def _elapsed(since: Optional[datetime], now: datetime) -> float:
    if since is None:
        return 0.0
    return max((now - since).total_seconds(), 0.0)


def create_default_engine(
    storage: SQLiteStorage,
    settings: Optional[TrackerSettings] = None,
    events: Optional[EventBus] = None,
) -> TrackingEngine:
    """Build an engine wired to the Windows foreground-window and idle probes."""
    from .idle import WindowsIdleDetector
    from .resolver import WindowsActiveWindowProbe

    settings = settings or TrackerSettings()
    resolver = WindowIdentityResolver(
        WindowsActiveWindowProbe(), language_overrides=settings.language_overrides
    )
    return TrackingEngine(
        resolver,
        storage,
        settings,
        idle_source=WindowsIdleDetector(),
        events=events,
    )
