"""Configuration models and helpers for the tracker."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from .errors import InvalidSettingError

logger = logging.getLogger(__name__)

DEFAULT_TRACKING_INTERVAL_SECONDS = 10
DEFAULT_IDLE_TIMEOUT_SECONDS = 60
MIN_IDLE_TIMEOUT_SECONDS = 60
MAX_IDLE_TIMEOUT_SECONDS = 300
IDLE_POLL_SECONDS = 2
MIN_SESSION_SECONDS = 10


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the tracking engine."""

    tracking_interval: timedelta = timedelta(seconds=DEFAULT_TRACKING_INTERVAL_SECONDS)
    idle_timeout: timedelta = timedelta(seconds=DEFAULT_IDLE_TIMEOUT_SECONDS)
    idle_poll_interval: timedelta = timedelta(seconds=IDLE_POLL_SECONDS)
    min_session_duration: timedelta = timedelta(seconds=MIN_SESSION_SECONDS)
    session_info_timeout: Optional[timedelta] = None
    auto_resume: bool = True
    language_overrides: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_seconds(
        cls,
        tracking_seconds: float = DEFAULT_TRACKING_INTERVAL_SECONDS,
        idle_seconds: float = DEFAULT_IDLE_TIMEOUT_SECONDS,
        session_info_timeout_seconds: float | None = None,
        auto_resume: bool = True,
    ) -> "TrackerSettings":
        validate_idle_timeout(idle_seconds)
        if tracking_seconds < 1:
            raise InvalidSettingError("tracking interval must be at least one second")
        info_timeout = (
            timedelta(seconds=session_info_timeout_seconds)
            if session_info_timeout_seconds is not None
            else None
        )
        return cls(
            tracking_interval=timedelta(seconds=tracking_seconds),
            idle_timeout=timedelta(seconds=idle_seconds),
            session_info_timeout=info_timeout,
            auto_resume=auto_resume,
        )

    @property
    def interval_seconds(self) -> int:
        return int(self.tracking_interval.total_seconds())


def validate_idle_timeout(seconds: float) -> None:
    if not MIN_IDLE_TIMEOUT_SECONDS <= seconds <= MAX_IDLE_TIMEOUT_SECONDS:
        raise InvalidSettingError(
            f"idle timeout must be between {MIN_IDLE_TIMEOUT_SECONDS} and "
            f"{MAX_IDLE_TIMEOUT_SECONDS} seconds, got {seconds}"
        )


def _clamp_idle_timeout(seconds: float) -> float:
    return min(max(seconds, MIN_IDLE_TIMEOUT_SECONDS), MAX_IDLE_TIMEOUT_SECONDS)


def load_config(path: Path) -> dict[str, Any]:
    """Read the JSON config file, returning an empty mapping when absent or unreadable."""
    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        return {}
    except (OSError, ValueError):
        logger.exception("Failed to read config %s; using defaults.", path)
        return {}
    return data if isinstance(data, dict) else {}


def save_config(path: Path, data: dict[str, Any]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=2)


def load_settings(path: Path, user_id: Optional[int] = None) -> TrackerSettings:
    """Build settings from the persisted config, falling back to defaults."""
    data = load_config(path)
    settings = TrackerSettings()
    idle = data.get("idle_timeout_seconds")
    if isinstance(idle, (int, float)):
        settings.idle_timeout = timedelta(seconds=_clamp_idle_timeout(idle))
    interval = data.get("tracking_interval_seconds")
    if isinstance(interval, (int, float)) and interval >= 1:
        settings.tracking_interval = timedelta(seconds=interval)
    if isinstance(data.get("auto_resume"), bool):
        settings.auto_resume = data["auto_resume"]
    if user_id is not None:
        overrides = data.get("language_overrides", {}).get(str(user_id), {})
        if isinstance(overrides, dict):
            settings.language_overrides = {
                str(ext).lower(): str(name) for ext, name in overrides.items()
            }
    return settings


def save_idle_timeout(path: Path, seconds: float) -> None:
    validate_idle_timeout(seconds)
    data = load_config(path)
    data["idle_timeout_seconds"] = seconds
    save_config(path, data)


def save_language_override(path: Path, user_id: int, extension: str, language: str) -> None:
    data = load_config(path)
    overrides = data.setdefault("language_overrides", {})
    overrides.setdefault(str(user_id), {})[extension.lower()] = language
    save_config(path, data)
