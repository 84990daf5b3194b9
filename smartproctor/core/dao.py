"""
Retention store: append-only recording and flagged-event logs with expiry.

Writes validate through the request schemas before touching the backing
store. Reads and cleanups propagate StoreCorruptionError to the caller.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ValidationError as SchemaValidationError

from util.logging import logger

from ..api.schemas import EventCreateRequest, RecordingCreateRequest
from .config import EVENTS_KEY, RECORDINGS_KEY, RetentionSettings, get_retention_settings
from .errors import ValidationError
from .repositories import EventRepository, RecordingRepository
from .schema import CleanupResult, FlaggedEvent, Recording, RecordingStatus, utcnow
from .storage import KeyValueStore, create_store

Clock = Callable[[], datetime]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _validate(model: type, operation: str, payload: Union[Mapping[str, Any], BaseModel]):
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    try:
        return model(**dict(payload))
    except SchemaValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        logger.log_validation_error(operation, errors)
        raise ValidationError(operation, errors) from e
    except TypeError as e:
        logger.log_validation_error(operation, [str(e)])
        raise ValidationError(operation, [str(e)]) from e


class RetentionStore:
    """Owns the recording and event collections and their expiry rules."""

    def __init__(self, store: KeyValueStore = None, settings: RetentionSettings = None,
                 clock: Clock = None):
        self.backing_store = store if store is not None else create_store()
        self.settings = settings or get_retention_settings()
        self.clock = clock or utcnow
        self.recordings = RecordingRepository(self.backing_store, RECORDINGS_KEY)
        self.events = EventRepository(self.backing_store, EVENTS_KEY)

    def now(self) -> datetime:
        return _as_utc(self.clock())

    @property
    def retention_window(self) -> timedelta:
        return timedelta(hours=self.settings.retention_hours)

    @property
    def grace_period(self) -> timedelta:
        return timedelta(days=self.settings.grace_period_days)

    # Recording management

    def save_recording(self, recording: Union[Mapping[str, Any], RecordingCreateRequest]) -> Recording:
        """Append a recording; expiry is computed from the store's clock, status starts active."""
        request = _validate(RecordingCreateRequest, "save_recording", recording)

        full_recording = Recording(
            id=request.id,
            student_id=request.student_id,
            student_name=request.student_name,
            start_time=_as_utc(request.start_time),
            end_time=_as_utc(request.end_time),
            duration=request.duration,
            file_path=request.file_path,
            file_size=request.file_size,
            expires_at=self.now() + self.retention_window,
            status=RecordingStatus.ACTIVE
        )

        with self.recordings.transaction() as recordings:
            recordings.append(full_recording)

        logger.log_recording_operation("saved", full_recording.id, full_recording.student_id, {
            "expires_at": full_recording.expires_at.isoformat(),
            "file_size": full_recording.file_size
        })
        return full_recording

    def get_recordings(self) -> List[Recording]:
        return self.recordings.load()

    def get_active_recordings(self) -> List[Recording]:
        now = self.now()
        return [r for r in self.get_recordings() if r.is_active(now)]

    def get_recordings_by_student(self, student_id: str) -> List[Recording]:
        return [r for r in self.get_active_recordings() if r.student_id == student_id]

    def finish_recording(self, recording_id: str, end_time: datetime = None) -> Recording:
        """Set a recording's end time; raises KeyError for unknown ids."""
        end_time = _as_utc(end_time) or self.now()

        with self.recordings.transaction() as recordings:
            for index, recording in enumerate(recordings):
                if recording.id == recording_id:
                    updated = replace(recording, end_time=end_time)
                    recordings[index] = updated
                    break
            else:
                raise KeyError(recording_id)

        logger.log_recording_operation("finished", recording_id, updated.student_id,
                                       {"end_time": end_time.isoformat()})
        return updated

    def delete_recording(self, recording_id: str) -> bool:
        """Explicitly remove a recording entry; media deletion happens out of band."""
        with self.recordings.transaction() as recordings:
            remaining = [r for r in recordings if r.id != recording_id]
            removed = [r for r in recordings if r.id == recording_id]
            recordings[:] = remaining

        if not removed:
            return False

        logger.log_recording_operation("deleted", recording_id, removed[0].student_id, {
            "file_path": removed[0].file_path,
            "reason": "explicit"
        })
        return True

    def cleanup_expired_recordings(self) -> CleanupResult:
        """Expire overdue active recordings, then drop expired ones past the grace period."""
        now = self.now()
        result = CleanupResult()

        with self.recordings.transaction() as recordings:
            marked = []
            for recording in recordings:
                if recording.status is RecordingStatus.ACTIVE and recording.expires_at <= now:
                    result.expired += 1
                    logger.log_recording_operation("expired", recording.id, recording.student_id, {
                        "file_path": recording.file_path,
                        "media_action": "delete_requested"
                    })
                    recording = recording.with_status(RecordingStatus.EXPIRED)
                marked.append(recording)

            kept = []
            for recording in marked:
                if (recording.status is RecordingStatus.EXPIRED
                        and recording.expires_at + self.grace_period <= now):
                    result.deleted += 1
                    logger.log_recording_operation("removed", recording.id, recording.student_id, {
                        "file_path": recording.file_path
                    })
                    continue
                kept.append(recording)

            recordings[:] = kept

        logger.log_cleanup_pass("recordings", result.to_dict(), len(kept))
        return result

    # Event management

    def save_event(self, event: Union[Mapping[str, Any], EventCreateRequest]) -> FlaggedEvent:
        """Append a flagged event expiring one retention window from now."""
        request = _validate(EventCreateRequest, "save_event", event)

        full_event = FlaggedEvent(
            id=request.id,
            student_id=request.student_id,
            timestamp=_as_utc(request.timestamp),
            type=request.type,
            severity=request.severity,
            suspicious_score=request.suspicious_score,
            description=request.description,
            screenshot_path=request.screenshot_path,
            expires_at=self.now() + self.retention_window
        )

        with self.events.transaction() as events:
            events.append(full_event)

        logger.log_event_operation("saved", full_event.id, full_event.student_id, {
            "type": full_event.type,
            "severity": full_event.severity
        })
        return full_event

    def get_events(self) -> List[FlaggedEvent]:
        return self.events.load()

    def get_events_by_student(self, student_id: str) -> List[FlaggedEvent]:
        """Unexpired events for one subject, newest first; equal timestamps keep stored order."""
        now = self.now()
        events = [e for e in self.get_events() if e.student_id == student_id and e.is_active(now)]
        return sorted(events, key=lambda e: e.timestamp, reverse=True)

    def get_active_events(self) -> List[FlaggedEvent]:
        now = self.now()
        return [e for e in self.get_events() if e.is_active(now)]

    def cleanup_expired_events(self) -> int:
        """Remove expired events; returns how many were removed."""
        now = self.now()

        with self.events.transaction() as events:
            before = len(events)
            kept = []
            for event in events:
                if event.expires_at <= now:
                    logger.log_event_operation("expired", event.id, event.student_id)
                    continue
                kept.append(event)
            events[:] = kept

        removed = before - len(kept)
        logger.log_cleanup_pass("events", {"removed": removed}, len(kept))
        return removed

    # Maintenance

    def reset_collection(self, key: str) -> None:
        """Drop a collection, typically after StoreCorruptionError."""
        if key == RECORDINGS_KEY:
            self.recordings.reset()
        elif key == EVENTS_KEY:
            self.events.reset()
        else:
            raise KeyError(key)

    def get_counts(self) -> Dict[str, int]:
        return {
            "recordings": len(self.get_recordings()),
            "events": len(self.get_events())
        }
