"""
Shared fixtures: an in-memory retention store driven by a controllable clock.
"""

from datetime import datetime, timedelta, timezone

import pytest

from smartproctor.core.config import RetentionSettings
from smartproctor.core.dao import RetentionStore
from smartproctor.core.storage import InMemoryStore

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def backing_store():
    return InMemoryStore()


@pytest.fixture
def store(backing_store, clock):
    return RetentionStore(backing_store, RetentionSettings(), clock=clock)


def make_recording(recording_id="rec-1", student_id="S1", **overrides):
    payload = {
        "id": recording_id,
        "student_id": student_id,
        "student_name": "Ada Lovelace",
        "start_time": T0,
        "duration": 1800,
        "file_path": f"/recordings/{recording_id}.webm",
        "file_size": 4 * 1024 * 1024
    }
    payload.update(overrides)
    return payload


def make_event(event_id="evt-1", student_id="S1", **overrides):
    payload = {
        "id": event_id,
        "student_id": student_id,
        "timestamp": T0,
        "type": "face_lost",
        "severity": "high",
        "suspicious_score": "75.500",
        "description": "Face not detected in frame"
    }
    payload.update(overrides)
    return payload
