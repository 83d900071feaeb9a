"""Exception types raised by the tracker."""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for tracker failures."""


class ResolverError(TrackerError):
    """The foreground window could not be identified."""


class PersistenceError(TrackerError):
    """A write or read against the activity database failed."""


class TimerArmError(TrackerError):
    """The sampler timer could not be started."""


class InvalidSettingError(TrackerError, ValueError):
    """A configuration value is outside its allowed range."""


class InvalidPlanError(TrackerError, ValueError):
    """A scheduled session or daily goal was given invalid values."""
