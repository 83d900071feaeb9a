"""Domain models for recorded activity and work sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

UNKNOWN_LANGUAGE = "Unknown"


class TrackingState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"


class PauseCause(str, Enum):
    USER = "user"
    IDLE = "idle"
    LOCK = "lock"


@dataclass(slots=True, frozen=True)
class WindowIdentity:
    """What the resolver knows about the foreground window."""

    exec_name: str
    title: str
    icon: Optional[bytes] = None


@dataclass(slots=True, frozen=True)
class Sample:
    """One accepted observation of the foreground application."""

    app: str
    title: str
    language: Optional[str]
    icon: Optional[bytes]
    observed_at: datetime
    duration_seconds: int
    language_extension: Optional[str] = None

    @property
    def day(self) -> date:
        return self.observed_at.date()


@dataclass(slots=True)
class DailyUsageBucket:
    """Accumulated seconds for a (date, app, language) key."""

    day: date
    app: str
    language: Optional[str]
    time_spent_seconds: int = 0
    icon: Optional[bytes] = None
    language_extension: Optional[str] = None

    @property
    def key(self) -> tuple[date, str, Optional[str]]:
        return (self.day, self.app, self.language)

    def absorb(
        self,
        delta_seconds: int,
        icon: Optional[bytes],
        language_extension: Optional[str] = None,
    ) -> None:
        self.time_spent_seconds += delta_seconds
        if not self.icon:
            self.icon = icon
        if language_extension is not None:
            self.language_extension = language_extension


@dataclass(slots=True)
class TrackingSession:
    """In-memory state of the one tracking session a process owns."""

    state: TrackingState = TrackingState.IDLE
    user_id: Optional[int] = None
    session_start: Optional[datetime] = None
    active_duration: float = 0.0
    last_active_timestamp: Optional[datetime] = None
    pause_cause: Optional[PauseCause] = None

    def reset(self) -> None:
        self.state = TrackingState.IDLE
        self.user_id = None
        self.session_start = None
        self.active_duration = 0.0
        self.last_active_timestamp = None
        self.pause_cause = None


@dataclass(slots=True, frozen=True)
class FinalizedSession:
    id: int
    user_id: int
    day: date
    start_time: datetime
    duration_seconds: int
    title: str
    description: Optional[str] = None
    tags: frozenset[str] = field(default_factory=frozenset)
    created_at: Optional[datetime] = None


@dataclass(slots=True, frozen=True)
class Tag:
    id: int
    user_id: int
    name: str
    color: Optional[str] = None


@dataclass(slots=True, frozen=True)
class SessionInfo:
    """Reply from the UI to a session metadata request."""

    title: str
    description: Optional[str] = None
    tags: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class Created:
    session: FinalizedSession


@dataclass(slots=True, frozen=True)
class Discarded:
    reason: str
    duration_seconds: int = 0


SessionOutcome = Union[Created, Discarded]


@dataclass(slots=True, frozen=True)
class DateRange:
    """Inclusive range of local calendar dates."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("end date must be on or after start date")


@dataclass(slots=True, frozen=True)
class DailySummaryFilters:
    app: Optional[str] = None
    language: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


@dataclass(slots=True, frozen=True)
class SessionFilters:
    tag: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ScheduledStatus(str, Enum):
    PENDING = "pending"
    NOTIFIED = "notified"
    COMPLETED = "completed"
    MISSED = "missed"
    CANCELLED = "cancelled"


class ReminderKind(str, Enum):
    DAY_BEFORE = "day_before"
    SAME_DAY = "same_day"
    TIME_TO_START = "time_to_start"


@dataclass(slots=True, frozen=True)
class WeeklyRecurrence:
    """Repeat a planned session every seven days.

    Stops after ``occurrences`` sessions (the first one included) or after
    ``end_date``, whichever comes first; with neither, a year of sessions.
    """

    end_date: Optional[date] = None
    occurrences: Optional[int] = None


@dataclass(slots=True, frozen=True)
class ScheduledSession:
    """A planned block of work, later linked to the session that fulfilled it."""

    id: int
    user_id: int
    title: str
    scheduled_at: datetime
    description: Optional[str] = None
    estimated_minutes: Optional[int] = None
    recurrence: Optional[WeeklyRecurrence] = None
    status: ScheduledStatus = ScheduledStatus.PENDING
    tags: frozenset[str] = field(default_factory=frozenset)
    created_at: Optional[datetime] = None
    last_notification_sent: Optional[datetime] = None
    last_notification_kind: Optional[ReminderKind] = None
    actual_session_id: Optional[int] = None


@dataclass(slots=True, frozen=True)
class ScheduledSessionFilters:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    statuses: tuple[ScheduledStatus, ...] = ()


@dataclass(slots=True, frozen=True)
class Reminder:
    scheduled_session_id: int
    title: str
    scheduled_at: datetime
    kind: ReminderKind
    estimated_minutes: Optional[int] = None
    tags: frozenset[str] = field(default_factory=frozenset)


@dataclass(slots=True, frozen=True)
class DailyGoal:
    id: int
    user_id: int
    day: date
    target_minutes: int
    description: Optional[str] = None
    completed: bool = False
    completed_at: Optional[datetime] = None
