"""
Retention store: expiry, cleanup, ordering, persistence and corruption handling.
"""

import json
import threading
from datetime import timedelta

import pytest

from conftest import T0, make_event, make_recording
from smartproctor.core.config import EVENTS_KEY, RECORDINGS_KEY, RetentionSettings
from smartproctor.core.dao import RetentionStore
from smartproctor.core.errors import StoreCorruptionError, ValidationError
from smartproctor.core.schema import RecordingStatus
from smartproctor.core.storage import EncryptedStore, InMemoryStore, SQLiteStore


class TestSaveRecording:
    """Recording writes and their expiry stamp."""

    def test_expiry_is_one_retention_window_after_save(self, store, clock):
        """Expiry is computed from the store clock, not the recording start."""
        clock.advance(minutes=30)
        recording = store.save_recording(make_recording(start_time=T0 - timedelta(hours=3)))

        assert recording.expires_at == clock() + timedelta(hours=24)
        assert recording.status is RecordingStatus.ACTIVE

    def test_custom_retention_window(self, backing_store, clock):
        """Retention hours come from the injected settings."""
        store = RetentionStore(backing_store, RetentionSettings(retention_hours=2), clock=clock)
        recording = store.save_recording(make_recording())

        assert recording.expires_at == T0 + timedelta(hours=2)

    def test_invalid_recording_rejected_without_mutation(self, store, backing_store):
        """A negative duration is rejected and nothing is persisted."""
        with pytest.raises(ValidationError) as exc_info:
            store.save_recording(make_recording(duration=-5))

        assert exc_info.value.operation == "save_recording"
        assert backing_store.get(RECORDINGS_KEY) is None
        assert store.get_recordings() == []

    def test_missing_field_rejected(self, store):
        """A payload without a file path is a validation error."""
        payload = make_recording()
        del payload["file_path"]

        with pytest.raises(ValidationError):
            store.save_recording(payload)

    def test_empty_identifier_rejected(self, store):
        with pytest.raises(ValidationError):
            store.save_recording(make_recording(recording_id="   "))

    def test_get_recordings_by_student_filters_active(self, store):
        store.save_recording(make_recording("rec-1", "S1"))
        store.save_recording(make_recording("rec-2", "S2"))
        store.save_recording(make_recording("rec-3", "S1"))

        ids = [r.id for r in store.get_recordings_by_student("S1")]
        assert ids == ["rec-1", "rec-3"]


class TestFinishAndDelete:
    """Explicit recording mutations."""

    def test_finish_recording_sets_end_time(self, store, clock):
        store.save_recording(make_recording())
        clock.advance(minutes=45)

        finished = store.finish_recording("rec-1")

        assert finished.end_time == clock()
        assert store.get_recordings()[0].end_time == clock()

    def test_finish_unknown_recording_raises(self, store):
        with pytest.raises(KeyError):
            store.finish_recording("missing")

    def test_delete_recording_removes_entry(self, store):
        store.save_recording(make_recording("rec-1"))
        store.save_recording(make_recording("rec-2"))

        assert store.delete_recording("rec-1") is True
        assert [r.id for r in store.get_recordings()] == ["rec-2"]

    def test_delete_unknown_recording(self, store):
        assert store.delete_recording("missing") is False


class TestRecordingExpiry:
    """Active/expired/deleted lifecycle."""

    def test_recording_inactive_exactly_at_expiry(self, store, clock):
        """Expiry is inclusive: at expires_at the recording is no longer active."""
        store.save_recording(make_recording())

        clock.advance(hours=24, seconds=-1)
        assert len(store.get_active_recordings()) == 1

        clock.advance(seconds=1)
        assert store.get_active_recordings() == []

    def test_cleanup_marks_expired_and_keeps_within_grace(self, store, clock):
        store.save_recording(make_recording())
        clock.advance(hours=25)

        result = store.cleanup_expired_recordings()

        assert result.expired == 1
        assert result.deleted == 0
        recordings = store.get_recordings()
        assert len(recordings) == 1
        assert recordings[0].status is RecordingStatus.EXPIRED

    def test_grace_boundary_one_second_before(self, store, clock):
        """An expired recording one second short of the grace period survives."""
        store.save_recording(make_recording())
        clock.advance(hours=24)
        store.cleanup_expired_recordings()

        clock.advance(days=7, seconds=-1)
        result = store.cleanup_expired_recordings()

        assert result.deleted == 0
        assert len(store.get_recordings()) == 1

    def test_grace_boundary_exact(self, store, clock):
        """At expires_at + grace period the entry is removed."""
        store.save_recording(make_recording())
        clock.advance(hours=24)
        store.cleanup_expired_recordings()

        clock.advance(days=7)
        result = store.cleanup_expired_recordings()

        assert result.deleted == 1
        assert store.get_recordings() == []

    def test_grace_boundary_one_second_after(self, store, clock):
        """An expired recording one second past the grace period is removed."""
        store.save_recording(make_recording())
        clock.advance(hours=24)
        store.cleanup_expired_recordings()

        clock.advance(days=7, seconds=1)
        result = store.cleanup_expired_recordings()

        assert result.deleted == 1
        assert store.get_recordings() == []

    def test_overdue_recording_expires_and_deletes_in_one_pass(self, store, clock):
        """A recording first seen after expiry plus grace goes through both phases at once."""
        store.save_recording(make_recording())
        clock.advance(days=9)

        result = store.cleanup_expired_recordings()

        assert (result.expired, result.deleted) == (1, 1)
        assert store.get_recordings() == []

    def test_cleanup_is_idempotent(self, store, clock):
        """A second pass at the same instant changes nothing."""
        store.save_recording(make_recording("rec-1"))
        store.save_recording(make_recording("rec-2"))
        clock.advance(hours=30)

        first = store.cleanup_expired_recordings()
        snapshot = store.get_recordings()
        second = store.cleanup_expired_recordings()

        assert first.expired == 2
        assert (second.expired, second.deleted) == (0, 0)
        assert store.get_recordings() == snapshot

    def test_cleanup_on_empty_store(self, store):
        result = store.cleanup_expired_recordings()
        assert (result.expired, result.deleted) == (0, 0)


class TestEvents:
    """Flagged event writes, ordering and expiry."""

    def test_save_event_normalizes_score(self, store):
        """Numeric scores are stored as 3-decimal strings."""
        event = store.save_event(make_event(suspicious_score=75.5))
        assert event.suspicious_score == "75.500"

        event = store.save_event(make_event("evt-2", suspicious_score="80.25"))
        assert event.suspicious_score == "80.250"

    def test_non_numeric_score_rejected(self, store):
        with pytest.raises(ValidationError):
            store.save_event(make_event(suspicious_score="high"))
        assert store.get_events() == []

    def test_unknown_type_rejected(self, store):
        with pytest.raises(ValidationError):
            store.save_event(make_event(type="phone_detected"))

    def test_unknown_severity_rejected(self, store):
        with pytest.raises(ValidationError):
            store.save_event(make_event(severity="extreme"))

    def test_saved_event_round_trips_all_fields(self, store, clock):
        """Every field given to save_event reads back unchanged; only expires_at is added."""
        payload = make_event("evt-rt", timestamp=T0 + timedelta(minutes=3), type="audio_anomaly",
                             severity="medium", suspicious_score="42.125",
                             description="Background voice", screenshot_path="/shots/evt-rt.png")
        store.save_event(payload)

        [event] = store.get_events()
        assert event.id == payload["id"]
        assert event.student_id == payload["student_id"]
        assert event.timestamp == payload["timestamp"]
        assert event.type == payload["type"]
        assert event.severity == payload["severity"]
        assert event.suspicious_score == payload["suspicious_score"]
        assert event.description == payload["description"]
        assert event.screenshot_path == payload["screenshot_path"]
        assert event.expires_at == clock() + timedelta(hours=24)

    def test_score_out_of_range_rejected(self, store):
        """Scores are percentages; values outside 0-100 never reach the store."""
        for score in ("1e30", "-0.5", 100.001):
            with pytest.raises(ValidationError):
                store.save_event(make_event(suspicious_score=score))
        assert store.get_events() == []

    def test_concurrent_saves_lose_no_updates(self, store):
        """Writers on separate threads never overwrite each other's appends."""
        def writer(worker):
            for i in range(50):
                store.save_event(make_event(f"w{worker}-{i}", student_id=f"S{worker}"))

        threads = [threading.Thread(target=writer, args=(w,)) for w in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        events = store.get_events()
        assert len(events) == 200
        assert len({e.id for e in events}) == 200

    def test_events_by_student_newest_first(self, store):
        store.save_event(make_event("evt-1", timestamp=T0))
        store.save_event(make_event("evt-2", timestamp=T0 + timedelta(minutes=5)))
        store.save_event(make_event("evt-3", timestamp=T0 + timedelta(minutes=2)))
        store.save_event(make_event("other", student_id="S2", timestamp=T0 + timedelta(minutes=9)))

        ids = [e.id for e in store.get_events_by_student("S1")]
        assert ids == ["evt-2", "evt-3", "evt-1"]

    def test_equal_timestamps_keep_insertion_order(self, store):
        """Ties are stable: stored order is preserved."""
        for event_id in ("a", "b", "c"):
            store.save_event(make_event(event_id, timestamp=T0))

        assert [e.id for e in store.get_events_by_student("S1")] == ["a", "b", "c"]

    def test_expired_events_hidden_before_cleanup(self, store, clock):
        store.save_event(make_event())
        clock.advance(hours=24)

        assert store.get_active_events() == []
        assert store.get_events_by_student("S1") == []
        assert len(store.get_events()) == 1

    def test_cleanup_expired_events(self, store, clock):
        store.save_event(make_event("old"))
        clock.advance(hours=12)
        store.save_event(make_event("new"))
        clock.advance(hours=12)

        removed = store.cleanup_expired_events()

        assert removed == 1
        assert [e.id for e in store.get_events()] == ["new"]
        assert store.cleanup_expired_events() == 0


class TestPersistence:
    """Persisted layout and decoding."""

    def test_persisted_layout_uses_collection_keys(self, store, backing_store):
        store.save_recording(make_recording())
        store.save_event(make_event())

        recordings = json.loads(backing_store.get(RECORDINGS_KEY))
        events = json.loads(backing_store.get(EVENTS_KEY))

        assert recordings[0]["studentId"] == "S1"
        assert recordings[0]["expiresAt"] == "2024-03-02T12:00:00Z"
        assert recordings[0]["status"] == "active"
        assert events[0]["suspiciousScore"] == "75.500"

    def test_reload_from_same_backing_store(self, store, backing_store, clock):
        """A fresh store over the same backing data reads identical records."""
        saved = store.save_recording(make_recording())
        event = store.save_event(make_event())

        reopened = RetentionStore(backing_store, RetentionSettings(), clock=clock)

        assert reopened.get_recordings() == [saved]
        assert reopened.get_events() == [event]

    def test_epoch_millisecond_dates_accepted(self, clock):
        """Dates stored as epoch milliseconds decode to the same instant."""
        expires_ms = int((T0 + timedelta(hours=1)).timestamp() * 1000)
        backing = InMemoryStore({EVENTS_KEY: json.dumps([{
            "id": "evt-1",
            "studentId": "S1",
            "timestamp": int(T0.timestamp() * 1000),
            "type": "gaze_deviation",
            "severity": "low",
            "suspiciousScore": "12.000",
            "description": "",
            "expiresAt": expires_ms
        }])})
        store = RetentionStore(backing, RetentionSettings(), clock=clock)

        event = store.get_events()[0]
        assert event.timestamp == T0
        assert event.expires_at == T0 + timedelta(hours=1)

    def test_sqlite_backend_survives_reopen(self, tmp_path, clock):
        db_path = str(tmp_path / "proctor.db")
        first = RetentionStore(SQLiteStore(db_path), RetentionSettings(), clock=clock)
        first.save_recording(make_recording())

        second = RetentionStore(SQLiteStore(db_path), RetentionSettings(), clock=clock)
        assert [r.id for r in second.get_recordings()] == ["rec-1"]

    def test_encrypted_backend_round_trip(self, clock):
        inner = InMemoryStore()
        store = RetentionStore(EncryptedStore(inner, "correct horse"), RetentionSettings(), clock=clock)
        store.save_event(make_event())

        assert "studentId" not in inner.get(EVENTS_KEY)
        assert [e.id for e in store.get_events()] == ["evt-1"]


class TestCorruption:
    """Unreadable collections raise instead of reading as empty."""

    def _store_with(self, clock, key, raw):
        return RetentionStore(InMemoryStore({key: raw}), RetentionSettings(), clock=clock)

    def test_invalid_json(self, clock):
        store = self._store_with(clock, RECORDINGS_KEY, "{not json")

        with pytest.raises(StoreCorruptionError) as exc_info:
            store.get_recordings()
        assert exc_info.value.collection == RECORDINGS_KEY

    def test_collection_not_a_list(self, clock):
        store = self._store_with(clock, EVENTS_KEY, json.dumps({"id": "evt-1"}))

        with pytest.raises(StoreCorruptionError):
            store.get_events()

    def test_entry_missing_fields(self, clock):
        store = self._store_with(clock, EVENTS_KEY, json.dumps([{"id": "evt-1"}]))

        with pytest.raises(StoreCorruptionError):
            store.get_active_events()

    def test_cleanup_propagates_corruption(self, clock):
        store = self._store_with(clock, RECORDINGS_KEY, "[")

        with pytest.raises(StoreCorruptionError):
            store.cleanup_expired_recordings()

    def test_corrupt_write_path_leaves_data_untouched(self, clock):
        """A save on a corrupt collection fails and does not overwrite it."""
        backing = InMemoryStore({EVENTS_KEY: "garbage"})
        store = RetentionStore(backing, RetentionSettings(), clock=clock)

        with pytest.raises(StoreCorruptionError):
            store.save_event(make_event())
        assert backing.get(EVENTS_KEY) == "garbage"

    def test_wrong_passphrase_is_corruption(self, clock):
        inner = InMemoryStore()
        RetentionStore(EncryptedStore(inner, "right"), RetentionSettings(), clock=clock).save_event(make_event())

        store = RetentionStore(EncryptedStore(inner, "wrong"), RetentionSettings(), clock=clock)
        with pytest.raises(StoreCorruptionError):
            store.get_events()

    def test_reset_collection_recovers(self, clock):
        store = self._store_with(clock, RECORDINGS_KEY, "[")
        store.reset_collection(RECORDINGS_KEY)

        assert store.get_recordings() == []
