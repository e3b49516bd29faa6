"""
Test fixtures for deterministic engine tests.

In-memory stand-ins for the activity log, user directory and alert sink,
plus a controllable clock.
"""

from .fakes import (
    FailingActivityLog,
    FakeClock,
    FakeDirectory,
    FlakyRegistry,
    InMemoryActivityLog,
    RecordingPublisher,
)

__all__ = [
    "FailingActivityLog",
    "FakeClock",
    "FakeDirectory",
    "FlakyRegistry",
    "InMemoryActivityLog",
    "RecordingPublisher",
]
