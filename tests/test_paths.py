from __future__ import annotations

from pathlib import Path

import pytest

from dev_time_tracker import paths
from dev_time_tracker.server_runner import browser_url


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv(paths.HOME_ENV_VAR, str(tmp_path / "tracker"))
    return tmp_path / "tracker"


def test_home_override_collects_every_file(home):
    assert paths.get_db_path() == home / "usage.sqlite3"
    assert paths.get_config_path() == home / "config.json"
    assert paths.get_log_path() == home / "logs" / "tracker.log"
    assert (home / "logs").is_dir()


def test_platform_directories_without_override(tmp_path, monkeypatch):
    monkeypatch.delenv(paths.HOME_ENV_VAR, raising=False)

    class FakeDirs:
        user_data_path = tmp_path / "data"
        user_config_path = tmp_path / "config"
        user_log_path = tmp_path / "log"

    monkeypatch.setattr(paths, "_platform_dirs", FakeDirs)
    assert paths.get_db_path() == tmp_path / "data" / "usage.sqlite3"
    assert paths.get_config_path() == tmp_path / "config" / "config.json"
    assert paths.get_log_dir() == Path(tmp_path / "log")


def test_blank_override_is_ignored(monkeypatch):
    monkeypatch.setenv(paths.HOME_ENV_VAR, "   ")
    assert paths._home_override() is None


@pytest.mark.parametrize(
    ("host", "expected"),
    [
        ("127.0.0.1", "http://127.0.0.1:8765"),
        ("0.0.0.0", "http://127.0.0.1:8765"),
        ("::", "http://127.0.0.1:8765"),
        ("::1", "http://[::1]:8765"),
        ("localhost", "http://localhost:8765"),
    ],
)
def test_browser_url(host, expected):
    assert browser_url(host, 8765) == expected
