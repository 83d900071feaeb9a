from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from conftest import T0
from dev_time_tracker.errors import InvalidPlanError
from dev_time_tracker.events import NOTIFY, EventBus
from dev_time_tracker.models import (
    ReminderKind,
    ScheduledSessionFilters,
    ScheduledStatus,
    WeeklyRecurrence,
)
from dev_time_tracker.planning import PlanningService, weekly_occurrences


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def planning(storage, bus, clock):
    return PlanningService(storage, bus, clock=clock)


def test_weekly_occurrences_stop_at_count():
    starts = weekly_occurrences(T0, WeeklyRecurrence(occurrences=3))
    assert starts == [T0, T0 + timedelta(weeks=1), T0 + timedelta(weeks=2)]


def test_weekly_occurrences_stop_at_end_date():
    starts = weekly_occurrences(T0, WeeklyRecurrence(end_date=date(2026, 3, 20)))
    assert [start.date() for start in starts] == [
        date(2026, 3, 2),
        date(2026, 3, 9),
        date(2026, 3, 16),
    ]


def test_weekly_occurrences_default_to_a_year():
    starts = weekly_occurrences(T0, WeeklyRecurrence(), now=T0)
    assert len(starts) == 52
    assert starts[-1] == T0 + timedelta(weeks=51)


def test_single_session_has_no_recurrence():
    assert weekly_occurrences(T0, None) == [T0]


def test_weekly_schedule_creates_independent_instances(planning):
    created = planning.schedule_session(
        1,
        " Standup prep ",
        T0,
        estimated_minutes=30,
        recurrence=WeeklyRecurrence(occurrences=3),
        tags=["team", "team", " planning "],
    )

    assert [plan.scheduled_at for plan in created] == [
        T0,
        T0 + timedelta(weeks=1),
        T0 + timedelta(weeks=2),
    ]
    assert created[0].recurrence == WeeklyRecurrence(occurrences=3)
    assert all(plan.recurrence is None for plan in created[1:])
    assert all(plan.tags == frozenset({"team", "planning"}) for plan in created)
    assert all(plan.title == "Standup prep" for plan in created)
    assert all(plan.status is ScheduledStatus.PENDING for plan in created)


@pytest.mark.parametrize(
    ("title", "kwargs"),
    [
        ("  ", {}),
        ("Work", {"estimated_minutes": 0}),
        ("Work", {"recurrence": WeeklyRecurrence(occurrences=0)}),
    ],
)
def test_invalid_plans_are_rejected(planning, title, kwargs):
    with pytest.raises(InvalidPlanError):
        planning.schedule_session(1, title, T0, **kwargs)
    assert planning.list_scheduled(1) == []


def test_list_filters_by_day_and_status(planning):
    later = planning.schedule_session(1, "Later", T0 + timedelta(days=3))[0]
    first = planning.schedule_session(1, "First", T0)[0]
    done = planning.schedule_session(1, "Done", T0 + timedelta(hours=2))[0]
    planning.schedule_session(2, "Someone else", T0)
    planning.complete_scheduled(1, done.id)

    assert [plan.id for plan in planning.list_scheduled(1)] == [first.id, done.id, later.id]
    pending = planning.list_scheduled(
        1, ScheduledSessionFilters(statuses=(ScheduledStatus.PENDING,))
    )
    assert [plan.id for plan in pending] == [first.id, later.id]
    today = planning.list_scheduled(
        1, ScheduledSessionFilters(start_date=T0.date(), end_date=T0.date())
    )
    assert [plan.id for plan in today] == [first.id, done.id]


def test_update_changes_fields_and_tags(planning):
    plan = planning.schedule_session(
        1, "Draft", T0, description="notes", estimated_minutes=45, tags=["a"]
    )[0]

    updated = planning.update_scheduled(
        1,
        plan.id,
        title="Write RFC",
        description=None,
        scheduled_at=T0 + timedelta(hours=1),
        status=ScheduledStatus.CANCELLED,
        tags=["b"],
    )

    assert updated.title == "Write RFC"
    assert updated.description is None
    assert updated.estimated_minutes == 45
    assert updated.scheduled_at == T0 + timedelta(hours=1)
    assert updated.status is ScheduledStatus.CANCELLED
    assert updated.tags == frozenset({"b"})


def test_update_of_missing_or_foreign_plan_returns_none(planning):
    plan = planning.schedule_session(1, "Mine", T0)[0]
    assert planning.update_scheduled(1, 999, title="x") is None
    assert planning.update_scheduled(2, plan.id, title="x") is None
    assert planning.get_scheduled(1, plan.id).title == "Mine"


def test_complete_links_the_recorded_session(planning, storage):
    session = storage.insert_finalized_session(1, T0, 1800, "Did it")
    plan = planning.schedule_session(1, "Do it", T0)[0]

    assert planning.complete_scheduled(1, plan.id, session.id)
    completed = planning.get_scheduled(1, plan.id)
    assert completed.status is ScheduledStatus.COMPLETED
    assert completed.actual_session_id == session.id

    storage.delete_session(session.id)
    assert planning.get_scheduled(1, plan.id).actual_session_id is None


def test_delete_removes_plan(planning):
    plan = planning.schedule_session(1, "Gone", T0)[0]
    assert planning.delete_scheduled(1, plan.id)
    assert not planning.delete_scheduled(1, plan.id)
    assert planning.get_scheduled(1, plan.id) is None


class TestReminders:
    @pytest.fixture
    def plans(self, planning):
        def at(hour: int, minute: int = 0, days: int = 0) -> datetime:
            return T0.replace(hour=hour, minute=minute) + timedelta(days=days)

        created = {
            "tomorrow": planning.schedule_session(1, "Tomorrow", at(10, days=1))[0],
            "soon": planning.schedule_session(1, "Soon", at(10, 30))[0],
            "now": planning.schedule_session(1, "Now", at(9, 3))[0],
            "afternoon": planning.schedule_session(1, "Afternoon", at(12))[0],
            "done": planning.schedule_session(1, "Done", at(10))[0],
        }
        planning.complete_scheduled(1, created["done"].id)
        return created

    def test_reminder_windows(self, planning, plans):
        due = {(r.title, r.kind) for r in planning.upcoming_reminders(1)}
        assert due == {
            ("Tomorrow", ReminderKind.DAY_BEFORE),
            ("Soon", ReminderKind.SAME_DAY),
            ("Now", ReminderKind.SAME_DAY),
            ("Now", ReminderKind.TIME_TO_START),
        }

    def test_sent_reminders_are_throttled(self, planning, plans, bus, clock):
        sent = planning.send_due_reminders(1)
        assert len(sent) == 4
        messages = [event.payload["message"] for event in bus.recent() if event.name == NOTIFY]
        assert "Tomorrow at 10:00: Tomorrow" in messages
        assert "Time to start: Now" in messages

        assert planning.upcoming_reminders(1) == []

        clock.advance(3 * 60)
        due = [(r.title, r.kind) for r in planning.upcoming_reminders(1)]
        assert due == [("Now", ReminderKind.TIME_TO_START)]

    def test_marked_day_before_reminder_is_not_repeated(self, planning, plans, clock):
        planning.mark_reminder_sent(1, plans["tomorrow"].id, ReminderKind.DAY_BEFORE)
        assert ("Tomorrow", ReminderKind.DAY_BEFORE) not in {
            (r.title, r.kind) for r in planning.upcoming_reminders(1)
        }
        stored = planning.get_scheduled(1, plans["tomorrow"].id)
        assert stored.last_notification_sent == T0
        assert stored.last_notification_kind is ReminderKind.DAY_BEFORE


class TestDailyGoals:
    DAY = date(2026, 3, 2)

    def test_set_get_and_list(self, planning):
        planning.set_daily_goal(1, self.DAY, 120, "Ship the parser")
        planning.set_daily_goal(1, self.DAY + timedelta(days=1), 60)

        goal = planning.get_daily_goal(1, self.DAY)
        assert goal.target_minutes == 120
        assert goal.description == "Ship the parser"
        assert not goal.completed
        assert [g.day for g in planning.list_daily_goals(1)] == [
            self.DAY + timedelta(days=1),
            self.DAY,
        ]
        assert planning.get_daily_goal(2, self.DAY) is None

    def test_changing_the_target_reopens_a_completed_goal(self, planning):
        planning.set_daily_goal(1, self.DAY, 90)
        assert planning.complete_daily_goal(1, self.DAY)
        assert planning.get_daily_goal(1, self.DAY).completed

        planning.set_daily_goal(1, self.DAY, 90, "same target")
        assert planning.get_daily_goal(1, self.DAY).completed

        planning.set_daily_goal(1, self.DAY, 150)
        goal = planning.get_daily_goal(1, self.DAY)
        assert not goal.completed
        assert goal.completed_at is None
        assert len(planning.list_daily_goals(1)) == 1

    def test_invalid_target_is_rejected(self, planning):
        with pytest.raises(InvalidPlanError):
            planning.set_daily_goal(1, self.DAY, 0)

    def test_complete_and_delete_missing_goal(self, planning):
        assert not planning.complete_daily_goal(1, self.DAY)
        assert not planning.delete_daily_goal(1, self.DAY)

    def test_progress_uses_tracked_usage(self, planning, storage):
        storage.upsert_daily_bucket(self.DAY, "Editor", "Go", None, 1200)
        storage.upsert_daily_bucket(self.DAY, "Editor", "Python", None, 600)
        planning.set_daily_goal(1, self.DAY, 25)

        assert planning.total_minutes_for_day(self.DAY) == 30
        progress = planning.goal_progress(1, self.DAY)
        assert progress["tracked_minutes"] == 30
        assert progress["reached"]
        assert not planning.goal_progress(1, self.DAY + timedelta(days=1))["reached"]
