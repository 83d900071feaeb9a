"""Planned work sessions, their reminders, and daily time goals."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional

from .errors import InvalidPlanError
from .events import EventBus
from .models import (
    DailyGoal,
    Reminder,
    ReminderKind,
    ScheduledSession,
    ScheduledSessionFilters,
    ScheduledStatus,
    WeeklyRecurrence,
)
from .storage import SQLiteStorage

logger = logging.getLogger(__name__)

DEFAULT_WEEKLY_OCCURRENCES = 52
DEFAULT_RECURRENCE_SPAN = timedelta(days=365)

SAME_DAY_WINDOW = timedelta(hours=2)
START_WINDOW = timedelta(minutes=5)
# Minimum gap between two reminders for the same planned session.
SAME_DAY_THROTTLE = timedelta(minutes=30)
START_THROTTLE = timedelta(minutes=2)

_UNSET = object()


def weekly_occurrences(
    first: datetime,
    recurrence: Optional[WeeklyRecurrence],
    *,
    now: Optional[datetime] = None,
) -> list[datetime]:
    """Every start time of a planned session, the first one included."""
    if recurrence is None:
        return [first]
    limit = recurrence.occurrences or DEFAULT_WEEKLY_OCCURRENCES
    if recurrence.end_date is not None:
        last_day = recurrence.end_date
    else:
        last_day = ((now or datetime.now()) + DEFAULT_RECURRENCE_SPAN).date()
    starts = [first]
    current = first + timedelta(weeks=1)
    while len(starts) < limit and current.date() <= last_day:
        starts.append(current)
        current += timedelta(weeks=1)
    return starts


class PlanningService:
    """Schedules future sessions, decides when to remind about them, and
    tracks daily goals against the time recorded in the usage buckets."""

    def __init__(
        self,
        storage: SQLiteStorage,
        events: Optional[EventBus] = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._storage = storage
        self._events = events or EventBus()
        self._clock = clock

    # --- scheduled sessions ---

    def schedule_session(
        self,
        user_id: int,
        title: str,
        scheduled_at: datetime,
        *,
        description: Optional[str] = None,
        estimated_minutes: Optional[int] = None,
        recurrence: Optional[WeeklyRecurrence] = None,
        tags: Iterable[str] = (),
    ) -> list[ScheduledSession]:
        """Plan a session, expanding a weekly recurrence into its instances.

        Returns every created row; the first one carries the recurrence.
        """
        title = _require_title(title)
        _check_estimate(estimated_minutes)
        occurrences = recurrence.occurrences if recurrence is not None else None
        if occurrences is not None and occurrences < 1:
            raise InvalidPlanError("A weekly recurrence needs at least one occurrence.")
        starts = weekly_occurrences(scheduled_at, recurrence, now=self._clock())
        created = self._storage.insert_scheduled_sessions(
            user_id,
            title,
            starts,
            description=description or None,
            estimated_minutes=estimated_minutes,
            recurrence=recurrence,
            tags=tags,
        )
        logger.info("Scheduled %r for user %s (%d occurrence(s)).", title, user_id, len(created))
        return created

    def list_scheduled(
        self, user_id: int, filters: Optional[ScheduledSessionFilters] = None
    ) -> list[ScheduledSession]:
        return self._storage.list_scheduled_sessions(user_id, filters)

    def get_scheduled(self, user_id: int, scheduled_id: int) -> Optional[ScheduledSession]:
        return self._storage.get_scheduled_session(user_id, scheduled_id)

    def update_scheduled(
        self,
        user_id: int,
        scheduled_id: int,
        *,
        title: Optional[str] = None,
        description: object = _UNSET,
        scheduled_at: Optional[datetime] = None,
        estimated_minutes: object = _UNSET,
        status: Optional[ScheduledStatus] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Optional[ScheduledSession]:
        """Change the given fields; ``None`` clears description and estimate.

        Returns the updated session, or None when it does not exist.
        """
        changes: dict[str, object] = {}
        if title is not None:
            changes["title"] = _require_title(title)
        if description is not _UNSET:
            changes["description"] = description or None
        if scheduled_at is not None:
            changes["scheduled_at"] = scheduled_at
        if estimated_minutes is not _UNSET:
            _check_estimate(estimated_minutes)  # type: ignore[arg-type]
            changes["estimated_minutes"] = estimated_minutes
        if status is not None:
            changes["status"] = ScheduledStatus(status)
        if not self._storage.update_scheduled_session(user_id, scheduled_id, changes, tags):
            return None
        return self._storage.get_scheduled_session(user_id, scheduled_id)

    def delete_scheduled(self, user_id: int, scheduled_id: int) -> bool:
        return self._storage.delete_scheduled_session(user_id, scheduled_id)

    def complete_scheduled(
        self, user_id: int, scheduled_id: int, actual_session_id: Optional[int] = None
    ) -> bool:
        """Mark a plan as done, optionally linking the session that fulfilled it."""
        return self._storage.complete_scheduled_session(user_id, scheduled_id, actual_session_id)

    # --- reminders ---

    def upcoming_reminders(self, user_id: int) -> list[Reminder]:
        """Reminders due now for pending plans of today and tomorrow.

        A plan for tomorrow is announced once per day. A plan later today is
        announced within two hours of its start, and again within five
        minutes either side of it.
        """
        now = self._clock()
        today = now.date()
        tomorrow = today + timedelta(days=1)
        plans = self._storage.list_scheduled_sessions(
            user_id,
            ScheduledSessionFilters(
                start_date=today, end_date=tomorrow, statuses=(ScheduledStatus.PENDING,)
            ),
        )
        reminders: list[Reminder] = []
        for plan in plans:
            sent = plan.last_notification_sent
            if plan.scheduled_at.date() == tomorrow:
                if sent is None or sent.date() < today:
                    reminders.append(_reminder(plan, ReminderKind.DAY_BEFORE))
                continue
            until = plan.scheduled_at - now
            since_sent = now - sent if sent is not None else None
            if timedelta(0) < until <= SAME_DAY_WINDOW and _quiet_for(
                since_sent, SAME_DAY_THROTTLE
            ):
                reminders.append(_reminder(plan, ReminderKind.SAME_DAY))
            if -START_WINDOW < until <= START_WINDOW and _quiet_for(since_sent, START_THROTTLE):
                reminders.append(_reminder(plan, ReminderKind.TIME_TO_START))
        return reminders

    def mark_reminder_sent(self, user_id: int, scheduled_id: int, kind: ReminderKind) -> bool:
        return self._storage.mark_scheduled_notified(
            user_id, scheduled_id, ReminderKind(kind), self._clock()
        )

    def send_due_reminders(self, user_id: int) -> list[Reminder]:
        """Announce due reminders on the event bus and record them as sent."""
        reminders = self.upcoming_reminders(user_id)
        for reminder in reminders:
            self._events.notify(_reminder_message(reminder))
            self.mark_reminder_sent(user_id, reminder.scheduled_session_id, reminder.kind)
        return reminders

    # --- daily goals ---

    def set_daily_goal(
        self,
        user_id: int,
        day: date,
        target_minutes: int,
        description: Optional[str] = None,
    ) -> DailyGoal:
        if target_minutes <= 0:
            raise InvalidPlanError("A daily goal needs a positive number of minutes.")
        return self._storage.set_daily_goal(user_id, day, target_minutes, description or None)

    def get_daily_goal(self, user_id: int, day: date) -> Optional[DailyGoal]:
        return self._storage.get_daily_goal(user_id, day)

    def list_daily_goals(self, user_id: int) -> list[DailyGoal]:
        return self._storage.list_daily_goals(user_id)

    def complete_daily_goal(self, user_id: int, day: date) -> bool:
        return self._storage.complete_daily_goal(user_id, day)

    def delete_daily_goal(self, user_id: int, day: date) -> bool:
        return self._storage.delete_daily_goal(user_id, day)

    def total_minutes_for_day(self, day: date) -> float:
        return self._storage.total_seconds_for_day(day) / 60

    def goal_progress(self, user_id: int, day: date) -> dict[str, object]:
        """The day's goal next to the minutes tracked so far."""
        goal = self._storage.get_daily_goal(user_id, day)
        tracked = self.total_minutes_for_day(day)
        return {
            "date": day.isoformat(),
            "goal": goal,
            "tracked_minutes": round(tracked, 2),
            "reached": goal is not None and tracked >= goal.target_minutes,
        }


def _require_title(title: str) -> str:
    title = (title or "").strip()
    if not title:
        raise InvalidPlanError("A scheduled session needs a title.")
    return title


def _check_estimate(estimated_minutes: Optional[int]) -> None:
    if estimated_minutes is not None and estimated_minutes <= 0:
        raise InvalidPlanError("The estimated duration must be positive.")


def _quiet_for(since_sent: Optional[timedelta], gap: timedelta) -> bool:
    return since_sent is None or since_sent > gap


def _reminder(plan: ScheduledSession, kind: ReminderKind) -> Reminder:
    return Reminder(
        scheduled_session_id=plan.id,
        title=plan.title,
        scheduled_at=plan.scheduled_at,
        kind=kind,
        estimated_minutes=plan.estimated_minutes,
        tags=plan.tags,
    )


def _reminder_message(reminder: Reminder) -> str:
    at = reminder.scheduled_at.strftime("%H:%M")
    if reminder.kind is ReminderKind.DAY_BEFORE:
        return f"Tomorrow at {at}: {reminder.title}"
    if reminder.kind is ReminderKind.SAME_DAY:
        return f"Coming up at {at}: {reminder.title}"
    return f"Time to start: {reminder.title}"
