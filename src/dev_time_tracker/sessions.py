"""Work-session finalization, editing and tagging."""

from __future__ import annotations

import itertools
import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future, InvalidStateError, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime
from typing import Callable, Iterable, Optional

from .errors import PersistenceError
from .events import GET_SESSION_INFO, EventBus
from .models import (
    Created,
    Discarded,
    FinalizedSession,
    SessionFilters,
    SessionInfo,
    SessionOutcome,
    Tag,
)
from .storage import SQLiteStorage

logger = logging.getLogger(__name__)


class SessionInfoRequest:
    """One outstanding request for a session's title and description.

    The request is answered exactly once: by :meth:`reply`, :meth:`cancel` or
    the expiry timer. ``outcome`` resolves after the answer has been handled.
    """

    def __init__(self, request_id: int, duration_seconds: int, start_time: datetime) -> None:
        self.id = request_id
        self.duration_seconds = duration_seconds
        self.start_time = start_time
        self._future: "Future[Optional[SessionInfo]]" = Future()
        self.outcome: "Future[SessionOutcome]" = Future()
        self._timer: Optional[threading.Timer] = None

    @property
    def done(self) -> bool:
        return self._future.done()

    def reply(self, info: SessionInfo) -> bool:
        return self._answer(self._future.set_result, info)

    def cancel(self) -> bool:
        return self._answer(self._future.set_result, None)

    def expire(self) -> bool:
        return self._answer(self._future.set_exception, FutureTimeout())

    def wait(self, timeout: Optional[float] = None) -> Optional[SessionInfo]:
        return self._future.result(timeout=timeout)

    def on_answer(self, callback: Callable[["SessionInfoRequest"], None]) -> None:
        self._future.add_done_callback(lambda _: callback(self))

    def expire_after(self, seconds: float) -> None:
        timer = threading.Timer(seconds, self.expire)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _answer(self, setter: Callable[[object], None], value: object) -> bool:
        try:
            setter(value)
        except InvalidStateError:
            return False
        if self._timer is not None:
            self._timer.cancel()
        return True


class SessionLifecycleManager:
    """Turns a stopped tracking session into a persisted, titled work session.

    Waiting for the user's answer holds no thread; only answered sessions are
    handed to the single saver worker, so saves happen in answer order.
    """

    def __init__(
        self,
        storage: SQLiteStorage,
        events: EventBus,
        *,
        min_duration_seconds: int = 10,
        info_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._storage = storage
        self._events = events
        self.min_duration_seconds = min_duration_seconds
        self.info_timeout_seconds = info_timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="session-saver")
        self._lock = threading.Lock()
        self._pending: "OrderedDict[int, SessionInfoRequest]" = OrderedDict()
        self._ids = itertools.count(1)

    def finalize(
        self, user_id: int, session_start: datetime, active_seconds: float
    ) -> "Future[SessionOutcome]":
        """Ask the UI for metadata and persist the session if it qualifies."""
        duration = int(active_seconds)
        if duration < self.min_duration_seconds:
            logger.info(
                "Discarding %ss session below the %ss minimum.",
                duration,
                self.min_duration_seconds,
            )
            done: "Future[SessionOutcome]" = Future()
            done.set_result(Discarded(reason="too-short", duration_seconds=duration))
            return done

        with self._lock:
            request = SessionInfoRequest(next(self._ids), duration, session_start)
            self._pending[request.id] = request
        request.on_answer(lambda answered: self._handle_answer(answered, user_id))
        if self.info_timeout_seconds is not None:
            request.expire_after(self.info_timeout_seconds)
        self._events.emit(
            GET_SESSION_INFO,
            request_id=request.id,
            duration_seconds=duration,
            start_time=session_start.isoformat(),
        )
        return request.outcome

    @property
    def pending_requests(self) -> list[SessionInfoRequest]:
        with self._lock:
            return list(self._pending.values())

    def reply_session_info(
        self, info: SessionInfo, request_id: Optional[int] = None
    ) -> Optional[SessionInfoRequest]:
        """Answer a pending request (the oldest when no id is given) and return it."""
        request = self._take_pending(request_id)
        if request is None or not request.reply(info):
            logger.debug("No pending session info request for id=%s", request_id)
            return None
        return request

    def cancel_session_info(self, request_id: Optional[int] = None) -> bool:
        request = self._take_pending(request_id)
        return request.cancel() if request is not None else False

    def create_session(
        self,
        user_id: int,
        start_time: datetime,
        duration_seconds: int,
        title: str,
        description: Optional[str] = None,
        tags: Iterable[str] = (),
    ) -> SessionOutcome:
        title = title.strip()
        if not title:
            return Discarded(reason="no-title", duration_seconds=duration_seconds)
        try:
            session = self._storage.insert_finalized_session(
                user_id, start_time, duration_seconds, title, description or None, tags
            )
        except PersistenceError:
            logger.exception("Failed to save session %r", title)
            self._events.notify("Failed to add session.")
            return Discarded(reason="error", duration_seconds=duration_seconds)
        logger.info("Saved session %s (%r, %ss).", session.id, title, duration_seconds)
        return Created(session=session)

    def list_sessions(
        self, user_id: int, filters: Optional[SessionFilters] = None
    ) -> list[FinalizedSession]:
        return self._storage.list_sessions(user_id, filters)

    def get_session(self, session_id: int) -> Optional[FinalizedSession]:
        return self._storage.get_session(session_id)

    def edit_session(
        self,
        user_id: int,
        session_id: int,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> FinalizedSession:
        if title is not None and not title.strip():
            raise ValueError("title must not be empty")
        self._storage.update_session(
            session_id,
            title=title.strip() if title is not None else None,
            description=description,
        )
        if tags is not None:
            self._storage.set_session_tags(user_id, session_id, tags)
        session = self._storage.get_session(session_id)
        if session is None:
            raise ValueError(f"No session found for id={session_id}")
        return session

    def delete_session(self, session_id: int) -> bool:
        return self._storage.delete_session(session_id)

    def set_session_tags(self, user_id: int, session_id: int, tag_names: Iterable[str]) -> None:
        """Replace the session's tags; an empty iterable clears them."""
        self._storage.set_session_tags(user_id, session_id, tag_names)

    def list_tags(self, user_id: int) -> list[Tag]:
        return self._storage.list_tags(user_id)

    def set_tag_color(self, user_id: int, name: str, color: str) -> bool:
        return self._storage.set_tag_color(user_id, name, color)

    def delete_tag(self, user_id: int, name: str) -> bool:
        return self._storage.delete_tag(user_id, name)

    def shutdown(self) -> None:
        for request in self.pending_requests:
            request.cancel()
        self._executor.shutdown(wait=True)

    def _take_pending(self, request_id: Optional[int]) -> Optional[SessionInfoRequest]:
        with self._lock:
            if request_id is None:
                if not self._pending:
                    return None
                _, request = self._pending.popitem(last=False)
                return request
            return self._pending.pop(request_id, None)

    def _handle_answer(self, request: SessionInfoRequest, user_id: int) -> None:
        # Runs on whichever thread answered the request.
        with self._lock:
            self._pending.pop(request.id, None)
        duration = request.duration_seconds
        try:
            info = request.wait(0)
        except FutureTimeout:
            logger.info("Session info request %s timed out; discarding.", request.id)
            request.outcome.set_result(Discarded(reason="timeout", duration_seconds=duration))
            return
        if info is None:
            logger.info("Session discarded by user.")
            request.outcome.set_result(Discarded(reason="cancelled", duration_seconds=duration))
            return
        if not info.title.strip():
            logger.info("Session discarded: no title supplied.")
            request.outcome.set_result(Discarded(reason="no-title", duration_seconds=duration))
            return
        try:
            self._executor.submit(self._save, request, user_id, info)
        except RuntimeError:
            logger.warning("Session saver is shut down; dropping request %s.", request.id)
            request.outcome.set_result(Discarded(reason="cancelled", duration_seconds=duration))

    def _save(self, request: SessionInfoRequest, user_id: int, info: SessionInfo) -> None:
        try:
            outcome = self.create_session(
                user_id,
                request.start_time,
                request.duration_seconds,
                info.title,
                info.description,
                info.tags,
            )
        except Exception as exc:
            logger.exception("Saving session for request %s failed", request.id)
            request.outcome.set_exception(exc)
            return
        request.outcome.set_result(outcome)
