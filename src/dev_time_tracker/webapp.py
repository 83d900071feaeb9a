"""FastAPI application exposing the tracker's commands, events and reports."""

from __future__ import annotations

import base64
import logging
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from .config import TrackerSettings, save_idle_timeout
from .engine import DEFAULT_USER_ID, TrackingEngine, create_default_engine
from .errors import InvalidPlanError, InvalidSettingError, PersistenceError, TimerArmError
from .models import (
    Created,
    DailyGoal,
    DailySummaryFilters,
    DateRange,
    FinalizedSession,
    Reminder,
    ReminderKind,
    ScheduledSession,
    ScheduledSessionFilters,
    ScheduledStatus,
    SessionFilters,
    SessionInfo,
    SessionOutcome,
    WeeklyRecurrence,
)
from .paths import get_config_path, get_db_path
from .planning import PlanningService
from .storage import SQLiteStorage

logger = logging.getLogger(__name__)

REPLY_WAIT_SECONDS = 10.0


class StartPayload(BaseModel):
    user_id: int = DEFAULT_USER_ID

    model_config = ConfigDict(extra="forbid")


class StopPayload(BaseModel):
    user_id: Optional[int] = None

    model_config = ConfigDict(extra="forbid")


class SessionInfoPayload(BaseModel):
    request_id: Optional[int] = None
    title: str = ""
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class SessionUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[list[str]] = None

    model_config = ConfigDict(extra="forbid")


class TagsPayload(BaseModel):
    tags: list[str]

    model_config = ConfigDict(extra="forbid")


class TagColorPayload(BaseModel):
    color: str

    model_config = ConfigDict(extra="forbid")


class IdleTimeoutPayload(BaseModel):
    seconds: int

    model_config = ConfigDict(extra="forbid")


class RecurrencePayload(BaseModel):
    end_date: Optional[date] = None
    occurrences: Optional[int] = Field(default=None, ge=1)

    model_config = ConfigDict(extra="forbid")


class ScheduledSessionPayload(BaseModel):
    user_id: int = DEFAULT_USER_ID
    title: str
    scheduled_at: datetime
    description: Optional[str] = None
    estimated_minutes: Optional[int] = None
    recurrence: Optional[RecurrencePayload] = None
    tags: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class ScheduledSessionUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    estimated_minutes: Optional[int] = None
    status: Optional[ScheduledStatus] = None
    tags: Optional[list[str]] = None

    model_config = ConfigDict(extra="forbid")


class CompletePayload(BaseModel):
    actual_session_id: Optional[int] = None

    model_config = ConfigDict(extra="forbid")


class ReminderSentPayload(BaseModel):
    kind: ReminderKind

    model_config = ConfigDict(extra="forbid")


class DailyGoalPayload(BaseModel):
    target_minutes: int
    description: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    engine: Optional[TrackingEngine] = None,
    config_path: Optional[Path] = None,
) -> FastAPI:
    """Instantiate the FastAPI application.

    When ``engine`` is omitted one is built against the Windows probes and the
    SQLite database at ``db_path``.
    """
    resolved_config_path = Path(config_path or get_config_path())
    storage: Optional[SQLiteStorage] = None
    if engine is None:
        storage = SQLiteStorage(Path(db_path or get_db_path()))
        engine = create_default_engine(storage, settings or TrackerSettings())
    tracker = engine

    app = FastAPI(title="Dev Time Tracker", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.engine = tracker

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        tracker.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        tracker.shutdown()
        if storage is not None:
            storage.close()

    def _storage(request: Request) -> SQLiteStorage:
        return request.app.state.engine.storage

    # --- tracking commands ---

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        engine_: TrackingEngine = request.app.state.engine
        payload = engine_.status()
        payload["today"] = [
            {
                "app": bucket.app,
                "language": bucket.language,
                "seconds": bucket.time_spent_seconds,
            }
            for bucket in engine_.aggregation.today_snapshot(date.today())
        ]
        payload["pending_session_info"] = [
            {"request_id": pending.id, "duration_seconds": pending.duration_seconds}
            for pending in engine_.sessions.pending_requests
        ]
        return payload

    @app.post("/api/tracking/start")
    def start_tracking(request: Request, payload: Optional[StartPayload] = None) -> Dict[str, Any]:
        user_id = payload.user_id if payload else DEFAULT_USER_ID
        try:
            state = request.app.state.engine.start_tracking(user_id)
        except TimerArmError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"state": state.value}

    @app.post("/api/tracking/pause")
    def pause_tracking(request: Request) -> Dict[str, Any]:
        return {"state": request.app.state.engine.pause_tracking().value}

    @app.post("/api/tracking/resume")
    def resume_tracking(request: Request) -> Dict[str, Any]:
        try:
            state = request.app.state.engine.resume_tracking()
        except TimerArmError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"state": state.value}

    @app.post("/api/tracking/stop")
    def stop_tracking(request: Request, payload: Optional[StopPayload] = None) -> Dict[str, Any]:
        engine_: TrackingEngine = request.app.state.engine
        outcome_future = engine_.stop_tracking(payload.user_id if payload else None)
        response: Dict[str, Any] = {"state": engine_.state.value, "request_id": None}
        if outcome_future.done():
            response["outcome"] = _outcome_payload(outcome_future.result())
            return response
        for pending in engine_.sessions.pending_requests:
            if pending.outcome is outcome_future:
                response["request_id"] = pending.id
        response["outcome"] = None
        return response

    @app.post("/api/session-info")
    def reply_session_info(payload: SessionInfoPayload, request: Request) -> Dict[str, Any]:
        engine_: TrackingEngine = request.app.state.engine
        info = SessionInfo(
            title=payload.title,
            description=payload.description,
            tags=tuple(payload.tags),
        )
        pending = engine_.reply_session_info(info, payload.request_id)
        if pending is None:
            raise HTTPException(status_code=404, detail="No session is waiting for info")
        try:
            outcome = pending.outcome.result(timeout=REPLY_WAIT_SECONDS)
        except FutureTimeout as exc:
            raise HTTPException(status_code=504, detail="Session is still being saved") from exc
        return {"outcome": _outcome_payload(outcome)}

    @app.get("/api/events")
    def events(
        request: Request,
        after: Optional[int] = Query(default=None, description="Only events after this sequence."),
    ) -> Dict[str, Any]:
        return {
            "events": [
                {
                    "seq": event.seq,
                    "name": event.name,
                    "payload": event.payload,
                    "emitted_at": event.emitted_at.isoformat(),
                }
                for event in request.app.state.engine.events.recent(after)
            ]
        }

    # --- usage reports ---

    @app.get("/api/summary")
    def summary(
        request: Request,
        date_: Optional[str] = Query(
            default=None, alias="date", description="Target date in YYYY-MM-DD format."
        ),
    ) -> Dict[str, Any]:
        target_day = _parse_date(date_) or date.today()
        rows = _read(lambda: _storage(request).summary_for_day(target_day))
        return {
            "date": target_day.isoformat(),
            "total_seconds": sum(row["seconds"] for row in rows),
            "entries": [_bucket_payload(row) for row in rows],
        }

    @app.get("/api/editors")
    def editors(request: Request) -> Dict[str, Any]:
        return {"editors": _read(lambda: _storage(request).editor_totals())}

    @app.get("/api/languages")
    def languages(request: Request) -> Dict[str, Any]:
        return {"languages": _read(lambda: _storage(request).language_totals())}

    @app.get("/api/daily-summary")
    def daily_summary(
        request: Request,
        app_name: Optional[str] = Query(default=None, alias="app"),
        language: Optional[str] = Query(default=None),
        start: Optional[str] = Query(default=None, description="First day, inclusive."),
        end: Optional[str] = Query(default=None, description="Last day, inclusive."),
    ) -> Dict[str, Any]:
        filters = DailySummaryFilters(
            app=app_name,
            language=language,
            start_date=_parse_date(start),
            end_date=_parse_date(end),
        )
        rows = _read(lambda: _storage(request).daily_summary(filters))
        return {"days": [_bucket_payload(row) for row in rows]}

    @app.get("/api/languages/range")
    def language_range(
        request: Request,
        start: str = Query(..., description="First day, inclusive."),
        end: str = Query(..., description="Last day, inclusive."),
    ) -> Dict[str, Any]:
        start_day = _parse_date(start)
        end_day = _parse_date(end)
        if start_day is None or end_day is None:
            raise HTTPException(status_code=400, detail="start and end dates are required")
        try:
            days = DateRange(start_day, end_day)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {
            "start": start_day.isoformat(),
            "end": end_day.isoformat(),
            "languages": _read(lambda: _storage(request).language_summary(days)),
        }

    @app.get("/api/logged-days")
    def logged_days(
        request: Request,
        year: int = Query(..., ge=1970, le=9999),
        month: int = Query(..., ge=1, le=12),
    ) -> Dict[str, Any]:
        return {"days": _read(lambda: _storage(request).logged_days(year, month))}

    @app.get("/api/logs")
    def logs(
        request: Request,
        date_: Optional[str] = Query(default=None, alias="date"),
    ) -> Dict[str, Any]:
        day = _parse_date(date_)
        return {"logs": _read(lambda: _storage(request).usage_logs(day))}

    # --- sessions and tags ---

    @app.get("/api/sessions")
    def list_sessions(
        request: Request,
        user_id: int = Query(default=DEFAULT_USER_ID),
        tag: Optional[str] = Query(default=None),
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
    ) -> Dict[str, Any]:
        filters = SessionFilters(tag=tag, start_date=_parse_date(start), end_date=_parse_date(end))
        sessions = _read(lambda: request.app.state.engine.sessions.list_sessions(user_id, filters))
        return {"sessions": [_session_payload(session) for session in sessions]}

    @app.patch("/api/sessions/{session_id}")
    def update_session(
        session_id: int,
        payload: SessionUpdate,
        request: Request,
        user_id: int = Query(default=DEFAULT_USER_ID),
    ) -> Dict[str, Any]:
        if payload.title is not None and not payload.title.strip():
            raise HTTPException(status_code=400, detail="title must not be empty")
        try:
            session = request.app.state.engine.sessions.edit_session(
                user_id,
                session_id,
                title=payload.title,
                description=payload.description,
                tags=payload.tags,
            )
        except ValueError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except PersistenceError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return _session_payload(session)

    @app.delete("/api/sessions/{session_id}")
    def delete_session(session_id: int, request: Request) -> Dict[str, Any]:
        if not _read(lambda: request.app.state.engine.sessions.delete_session(session_id)):
            raise HTTPException(status_code=404, detail="Session not found")
        return {"deleted": session_id}

    @app.put("/api/sessions/{session_id}/tags")
    def set_session_tags(
        session_id: int,
        payload: TagsPayload,
        request: Request,
        user_id: int = Query(default=DEFAULT_USER_ID),
    ) -> Dict[str, Any]:
        sessions = request.app.state.engine.sessions
        if _read(lambda: sessions.get_session(session_id)) is None:
            raise HTTPException(status_code=404, detail="Session not found")
        _read(lambda: sessions.set_session_tags(user_id, session_id, payload.tags))
        return _session_payload(sessions.get_session(session_id))

    @app.get("/api/tags")
    def list_tags(request: Request, user_id: int = Query(default=DEFAULT_USER_ID)) -> Dict[str, Any]:
        tags = _read(lambda: request.app.state.engine.sessions.list_tags(user_id))
        return {"tags": [{"id": tag.id, "name": tag.name, "color": tag.color} for tag in tags]}

    @app.put("/api/tags/{name}/color")
    def set_tag_color(
        name: str,
        payload: TagColorPayload,
        request: Request,
        user_id: int = Query(default=DEFAULT_USER_ID),
    ) -> Dict[str, Any]:
        sessions = request.app.state.engine.sessions
        if not _read(lambda: sessions.set_tag_color(user_id, name, payload.color)):
            raise HTTPException(status_code=404, detail="Tag not found")
        return {"name": name, "color": payload.color}

    @app.delete("/api/tags/{name}")
    def delete_tag(
        name: str, request: Request, user_id: int = Query(default=DEFAULT_USER_ID)
    ) -> Dict[str, Any]:
        if not _read(lambda: request.app.state.engine.sessions.delete_tag(user_id, name)):
            raise HTTPException(status_code=404, detail="Tag not found")
        return {"deleted": name}

    # --- scheduled sessions and reminders ---

    def _planning(request: Request) -> PlanningService:
        return request.app.state.engine.planning

    @app.post("/api/scheduled-sessions")
    def create_scheduled_session(
        payload: ScheduledSessionPayload, request: Request
    ) -> Dict[str, Any]:
        recurrence = (
            WeeklyRecurrence(
                end_date=payload.recurrence.end_date,
                occurrences=payload.recurrence.occurrences,
            )
            if payload.recurrence is not None
            else None
        )
        created = _plan(
            lambda: _planning(request).schedule_session(
                payload.user_id,
                payload.title,
                payload.scheduled_at,
                description=payload.description,
                estimated_minutes=payload.estimated_minutes,
                recurrence=recurrence,
                tags=payload.tags,
            )
        )
        return {"scheduled_sessions": [_scheduled_payload(plan) for plan in created]}

    @app.get("/api/scheduled-sessions")
    def list_scheduled_sessions(
        request: Request,
        user_id: int = Query(default=DEFAULT_USER_ID),
        start: Optional[str] = Query(default=None),
        end: Optional[str] = Query(default=None),
        status: Optional[list[ScheduledStatus]] = Query(default=None),
    ) -> Dict[str, Any]:
        filters = ScheduledSessionFilters(
            start_date=_parse_date(start),
            end_date=_parse_date(end),
            statuses=tuple(status or ()),
        )
        plans = _read(lambda: _planning(request).list_scheduled(user_id, filters))
        return {"scheduled_sessions": [_scheduled_payload(plan) for plan in plans]}

    @app.get("/api/scheduled-sessions/{scheduled_id}")
    def get_scheduled_session(
        scheduled_id: int, request: Request, user_id: int = Query(default=DEFAULT_USER_ID)
    ) -> Dict[str, Any]:
        plan = _read(lambda: _planning(request).get_scheduled(user_id, scheduled_id))
        return _scheduled_payload(plan)

    @app.patch("/api/scheduled-sessions/{scheduled_id}")
    def update_scheduled_session(
        scheduled_id: int,
        payload: ScheduledSessionUpdate,
        request: Request,
        user_id: int = Query(default=DEFAULT_USER_ID),
    ) -> Dict[str, Any]:
        sent = payload.model_fields_set
        changes: Dict[str, Any] = {
            name: getattr(payload, name)
            for name in ("description", "estimated_minutes")
            if name in sent
        }
        plan = _plan(
            lambda: _planning(request).update_scheduled(
                user_id,
                scheduled_id,
                title=payload.title,
                scheduled_at=payload.scheduled_at,
                status=payload.status,
                tags=payload.tags,
                **changes,
            )
        )
        return _scheduled_payload(plan)

    @app.delete("/api/scheduled-sessions/{scheduled_id}")
    def delete_scheduled_session(
        scheduled_id: int, request: Request, user_id: int = Query(default=DEFAULT_USER_ID)
    ) -> Dict[str, Any]:
        if not _read(lambda: _planning(request).delete_scheduled(user_id, scheduled_id)):
            raise HTTPException(status_code=404, detail="Scheduled session not found")
        return {"deleted": scheduled_id}

    @app.post("/api/scheduled-sessions/{scheduled_id}/complete")
    def complete_scheduled_session(
        scheduled_id: int,
        request: Request,
        payload: Optional[CompletePayload] = None,
        user_id: int = Query(default=DEFAULT_USER_ID),
    ) -> Dict[str, Any]:
        actual = payload.actual_session_id if payload else None
        planning = _planning(request)
        if not _read(lambda: planning.complete_scheduled(user_id, scheduled_id, actual)):
            raise HTTPException(status_code=404, detail="Scheduled session not found")
        return _scheduled_payload(_read(lambda: planning.get_scheduled(user_id, scheduled_id)))

    @app.get("/api/reminders")
    def upcoming_reminders(
        request: Request, user_id: int = Query(default=DEFAULT_USER_ID)
    ) -> Dict[str, Any]:
        reminders = _read(lambda: _planning(request).upcoming_reminders(user_id))
        return {"reminders": [_reminder_payload(reminder) for reminder in reminders]}

    @app.post("/api/reminders/{scheduled_id}/sent")
    def mark_reminder_sent(
        scheduled_id: int,
        payload: ReminderSentPayload,
        request: Request,
        user_id: int = Query(default=DEFAULT_USER_ID),
    ) -> Dict[str, Any]:
        planning = _planning(request)
        if not _read(lambda: planning.mark_reminder_sent(user_id, scheduled_id, payload.kind)):
            raise HTTPException(status_code=404, detail="Scheduled session not found")
        return {"scheduled_session_id": scheduled_id, "kind": payload.kind.value}

    # --- daily goals ---

    @app.get("/api/goals")
    def list_goals(request: Request, user_id: int = Query(default=DEFAULT_USER_ID)) -> Dict[str, Any]:
        goals = _read(lambda: _planning(request).list_daily_goals(user_id))
        return {"goals": [_goal_payload(goal) for goal in goals]}

    @app.get("/api/goals/{day}")
    def get_goal(
        day: str, request: Request, user_id: int = Query(default=DEFAULT_USER_ID)
    ) -> Dict[str, Any]:
        target_day = _require_date(day)
        progress = _read(lambda: _planning(request).goal_progress(user_id, target_day))
        if progress["goal"] is None:
            raise HTTPException(status_code=404, detail="No goal set for this day")
        return {
            **_goal_payload(progress["goal"]),
            "tracked_minutes": progress["tracked_minutes"],
            "reached": progress["reached"],
        }

    @app.put("/api/goals/{day}")
    def set_goal(
        day: str,
        payload: DailyGoalPayload,
        request: Request,
        user_id: int = Query(default=DEFAULT_USER_ID),
    ) -> Dict[str, Any]:
        target_day = _require_date(day)
        goal = _plan(
            lambda: _planning(request).set_daily_goal(
                user_id, target_day, payload.target_minutes, payload.description
            )
        )
        return _goal_payload(goal)

    @app.post("/api/goals/{day}/complete")
    def complete_goal(
        day: str, request: Request, user_id: int = Query(default=DEFAULT_USER_ID)
    ) -> Dict[str, Any]:
        target_day = _require_date(day)
        planning = _planning(request)
        if not _read(lambda: planning.complete_daily_goal(user_id, target_day)):
            raise HTTPException(status_code=404, detail="No goal set for this day")
        return _goal_payload(_read(lambda: planning.get_daily_goal(user_id, target_day)))

    @app.delete("/api/goals/{day}")
    def delete_goal(
        day: str, request: Request, user_id: int = Query(default=DEFAULT_USER_ID)
    ) -> Dict[str, Any]:
        target_day = _require_date(day)
        if not _read(lambda: _planning(request).delete_daily_goal(user_id, target_day)):
            raise HTTPException(status_code=404, detail="No goal set for this day")
        return {"deleted": target_day.isoformat()}

    @app.get("/api/total-time")
    def total_time(
        request: Request,
        date_: Optional[str] = Query(default=None, alias="date"),
    ) -> Dict[str, Any]:
        target_day = _parse_date(date_) or date.today()
        minutes = _read(lambda: _planning(request).total_minutes_for_day(target_day))
        return {"date": target_day.isoformat(), "minutes": round(minutes, 2)}

    # --- settings ---

    @app.get("/api/settings/idle-timeout")
    def get_idle_timeout(request: Request) -> Dict[str, Any]:
        seconds = request.app.state.engine.settings.idle_timeout.total_seconds()
        return {"seconds": int(seconds)}

    @app.put("/api/settings/idle-timeout")
    def set_idle_timeout(payload: IdleTimeoutPayload, request: Request) -> Dict[str, Any]:
        try:
            request.app.state.engine.set_idle_timeout(payload.seconds)
            save_idle_timeout(resolved_config_path, payload.seconds)
        except InvalidSettingError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"seconds": payload.seconds}

    return app


def _read(operation: Any) -> Any:
    try:
        return operation()
    except PersistenceError as exc:
        logger.exception("Storage call failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc


def _encode_icon(icon: Optional[bytes]) -> Optional[str]:
    if not icon:
        return None
    return base64.b64encode(icon).decode("ascii")


def _bucket_payload(row: Dict[str, Any]) -> Dict[str, Any]:
    payload = dict(row)
    if "icon" in payload:
        payload["icon"] = _encode_icon(payload["icon"])
    return payload


def _session_payload(session: Optional[FinalizedSession]) -> Dict[str, Any]:
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {
        "id": session.id,
        "user_id": session.user_id,
        "date": session.day.isoformat(),
        "start_time": session.start_time.isoformat(),
        "duration_seconds": session.duration_seconds,
        "title": session.title,
        "description": session.description,
        "tags": sorted(session.tags, key=str.casefold),
    }


def _outcome_payload(outcome: SessionOutcome) -> Dict[str, Any]:
    if isinstance(outcome, Created):
        return {"created": True, "session": _session_payload(outcome.session)}
    return {
        "created": False,
        "reason": outcome.reason,
        "duration_seconds": outcome.duration_seconds,
    }


def _plan(operation: Any) -> Any:
    try:
        result = operation()
    except InvalidPlanError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PersistenceError as exc:
        logger.exception("Storage call failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    if result is None:
        raise HTTPException(status_code=404, detail="Scheduled session not found")
    return result


def _require_date(value: str) -> date:
    day = _parse_date(value)
    if day is None:
        raise HTTPException(status_code=400, detail="A date is required")
    return day


def _scheduled_payload(plan: Optional[ScheduledSession]) -> Dict[str, Any]:
    if plan is None:
        raise HTTPException(status_code=404, detail="Scheduled session not found")
    recurrence = None
    if plan.recurrence is not None:
        recurrence = {
            "type": "weekly",
            "end_date": plan.recurrence.end_date.isoformat() if plan.recurrence.end_date else None,
            "occurrences": plan.recurrence.occurrences,
        }
    return {
        "id": plan.id,
        "user_id": plan.user_id,
        "title": plan.title,
        "description": plan.description,
        "scheduled_at": plan.scheduled_at.isoformat(),
        "estimated_minutes": plan.estimated_minutes,
        "recurrence": recurrence,
        "status": plan.status.value,
        "tags": sorted(plan.tags, key=str.casefold),
        "last_notification_sent": (
            plan.last_notification_sent.isoformat() if plan.last_notification_sent else None
        ),
        "actual_session_id": plan.actual_session_id,
    }


def _reminder_payload(reminder: Reminder) -> Dict[str, Any]:
    return {
        "scheduled_session_id": reminder.scheduled_session_id,
        "title": reminder.title,
        "scheduled_at": reminder.scheduled_at.isoformat(),
        "kind": reminder.kind.value,
        "estimated_minutes": reminder.estimated_minutes,
        "tags": sorted(reminder.tags, key=str.casefold),
    }


def _goal_payload(goal: Optional[DailyGoal]) -> Dict[str, Any]:
    if goal is None:
        raise HTTPException(status_code=404, detail="No goal set for this day")
    return {
        "id": goal.id,
        "date": goal.day.isoformat(),
        "target_minutes": goal.target_minutes,
        "description": goal.description,
        "completed": goal.completed,
        "completed_at": goal.completed_at.isoformat() if goal.completed_at else None,
    }
