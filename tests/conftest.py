from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

import pytest

from dev_time_tracker.config import TrackerSettings
from dev_time_tracker.engine import TrackingEngine
from dev_time_tracker.events import EventBus
from dev_time_tracker.models import WindowIdentity
from dev_time_tracker.resolver import (
    ApplicationRegistry,
    KnownApplication,
    WindowIdentityResolver,
)
from dev_time_tracker.storage import SQLiteStorage

T0 = datetime(2026, 3, 2, 9, 0, 0)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


class FakeProbe:
    def __init__(self, identity: Optional[WindowIdentity] = None) -> None:
        self.identity = identity
        self.error: Optional[Exception] = None
        self.calls = 0

    def get_active_window(self) -> Optional[WindowIdentity]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.identity


class FakeIdleSource:
    def __init__(self) -> None:
        self.idle_seconds = 0.0
        self.locked = False

    def seconds_since_input(self) -> float:
        return self.idle_seconds

    def is_locked(self) -> bool:
        return self.locked


class EventRecorder:
    def __init__(self, bus: EventBus) -> None:
        self.events = []
        bus.subscribe(self.events.append)

    def names(self) -> list[str]:
        return [event.name for event in self.events]

    def count(self, name: str) -> int:
        return self.names().count(name)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> ApplicationRegistry:
    return ApplicationRegistry(
        [
            KnownApplication(name="Editor", exec_names=("editor",)),
            KnownApplication(name="Visual Studio Code", exec_names=("code",)),
        ]
    )


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe(WindowIdentity(exec_name="editor.exe", title="main.go - project"))


@pytest.fixture
def resolver(probe: FakeProbe, registry: ApplicationRegistry) -> WindowIdentityResolver:
    return WindowIdentityResolver(probe, registry)


@pytest.fixture
def storage(tmp_path):
    store = SQLiteStorage(tmp_path / "usage.sqlite3")
    yield store
    store.close()


@pytest.fixture
def idle_source() -> FakeIdleSource:
    return FakeIdleSource()


@pytest.fixture
def settings() -> TrackerSettings:
    return TrackerSettings()


@pytest.fixture
def engine(resolver, storage, settings, idle_source, clock):
    tracker = TrackingEngine(
        resolver,
        storage,
        settings,
        idle_source=idle_source,
        clock=clock,
        background_writes=False,
    )
    yield tracker
    tracker.shutdown()


@pytest.fixture
def recorder(engine: TrackingEngine) -> EventRecorder:
    return EventRecorder(engine.events)
