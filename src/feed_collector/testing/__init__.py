"""Test-only utilities for deterministic collector assertions."""

from .time_control import FakeClock, SleepRecorder, fixed_now, sequenced_now

__all__ = [
    "FakeClock",
    "SleepRecorder",
    "fixed_now",
    "sequenced_now",
]
