"""Local-first tracker for time spent in editors and programming languages."""

__version__ = "1.0.0"
