from __future__ import annotations

import threading

import pytest

from conftest import FakeProbe, T0
from dev_time_tracker.errors import ResolverError
from dev_time_tracker.models import UNKNOWN_LANGUAGE, WindowIdentity
from dev_time_tracker.normalization import extract_extension, normalize_window_title
from dev_time_tracker.resolver import (
    ApplicationRegistry,
    WindowIdentityResolver,
    language_for_extension,
)
from dev_time_tracker.sampler import ActivitySampler


@pytest.mark.parametrize(
    ("exec_name", "title", "expected"),
    [
        ("Code.exe", "● app.py - repo - Visual Studio Code", "app.py - repo"),
        ("sublime_text.exe", "notes.md - Sublime Text", "notes.md"),
        ("editor.exe", "main.go - project", "main.go - project"),
        (None, "  untitled  ", "untitled"),
    ],
)
def test_normalize_window_title(exec_name, title, expected):
    assert normalize_window_title(exec_name, title) == expected


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("main.go - project", ".go"),
        ("index.test.ts - web", ".ts"),
        ("Welcome - project", None),
        ("README - notes", None),
        ("", None),
    ],
)
def test_extract_extension(title, expected):
    assert extract_extension(title) == expected


def test_language_lookup_prefers_overrides():
    assert language_for_extension(".GO") == "Go"
    assert language_for_extension(".h", {".h": "C++"}) == "C++"
    assert language_for_extension(".unknownext") is None
    assert language_for_extension(None) is None


def test_bundled_registry_knows_common_editors():
    registry = ApplicationRegistry.load()
    assert len(registry) > 0
    assert registry.match("Code.exe") is not None
    assert registry.match("explorer.exe") is None


def test_missing_registry_file_is_empty(tmp_path):
    assert len(ApplicationRegistry.load(tmp_path / "missing.json")) == 0


def test_resolver_maps_known_window(resolver):
    window = resolver.resolve()
    assert window.app == "Editor"
    assert window.language == "Go"
    assert window.extension == ".go"


def test_resolver_ignores_unknown_application(probe, resolver):
    probe.identity = WindowIdentity(exec_name="explorer.exe", title="Downloads")
    assert resolver.resolve() is None


def test_resolver_wraps_probe_failures(probe, resolver):
    probe.error = OSError("access denied")
    with pytest.raises(ResolverError):
        resolver.resolve()


class TestSampler:
    @pytest.fixture
    def received(self):
        return []

    @pytest.fixture
    def sampler(self, resolver, clock, received):
        return ActivitySampler(resolver, 10, received.append, clock=clock)

    def test_tick_emits_interval_sized_sample(self, sampler, received):
        sample = sampler.tick()
        assert received == [sample]
        assert sample.duration_seconds == 10
        assert sample.observed_at == T0
        assert sample.app == "Editor"

    def test_unrecognized_extension_falls_back_to_unknown(self, sampler, probe, received):
        probe.identity = WindowIdentity(exec_name="editor.exe", title="Welcome - project")
        sample = sampler.tick()
        assert sample.language == UNKNOWN_LANGUAGE

    def test_resolver_failure_skips_tick(self, sampler, probe, received):
        probe.error = OSError("gone")
        assert sampler.tick() is None
        assert received == []

    def test_unknown_application_is_dropped(self, sampler, probe, received):
        probe.identity = WindowIdentity(exec_name="explorer.exe", title="x")
        assert sampler.tick() is None
        assert received == []

    def test_sample_resolved_after_disarm_is_dropped(self, sampler, probe, received, monkeypatch):
        stop = threading.Event()
        resolve_window = probe.get_active_window

        def disarmed_mid_resolve():
            stop.set()
            return resolve_window()

        monkeypatch.setattr(probe, "get_active_window", disarmed_mid_resolve)
        assert sampler.tick(stop) is None
        assert received == []

    def test_arm_is_idempotent_and_disarm_stops(self, sampler):
        sampler.arm()
        first = sampler._thread
        sampler.arm()
        assert sampler._thread is first
        sampler.disarm()
        assert not sampler.armed
        first.join(timeout=1)
        assert not first.is_alive()


def test_fake_probe_counts_calls():
    probe = FakeProbe()
    resolver = WindowIdentityResolver(probe, ApplicationRegistry([]))
    assert resolver.resolve() is None
    assert probe.calls == 1
