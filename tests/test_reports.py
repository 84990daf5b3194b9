"""
Student report aggregation and score redaction.
"""

from dataclasses import replace
from datetime import timedelta
from unittest.mock import patch

import pytest

from conftest import T0, make_event, make_recording
from smartproctor.core.config import EVENTS_KEY
from smartproctor.core.errors import StoreCorruptionError
from smartproctor.core.privacy import REDACTED, is_redacted, redact_scores
from smartproctor.reports.aggregator import (
    calculate_average_suspicious_score,
    format_average,
    generate_student_report,
    parse_score
)

S1_EVENTS = [
    ("e1", "low", "10.000", "gaze_deviation"),
    ("e2", "high", "75.500", "face_lost"),
    ("e3", "critical", "95.000", "multiple_faces"),
    ("e4", "high", "80.250", "face_lost"),
]


@pytest.fixture
def s1_store(store):
    for offset, (event_id, severity, score, event_type) in enumerate(S1_EVENTS):
        store.save_event(make_event(event_id, "S1", severity=severity, suspicious_score=score,
                                    type=event_type, timestamp=T0 + timedelta(minutes=offset)))
    store.save_recording(make_recording("rec-1", "S1", duration=1200))
    store.save_recording(make_recording("rec-2", "S1", duration=600))
    return store


class TestScoreHelpers:

    def test_parse_score(self):
        assert parse_score("75.500") == 75.5
        assert parse_score(12) == 12.0
        assert parse_score("n/a") is None
        assert parse_score(None) is None
        assert parse_score("nan") is None
        assert parse_score("inf") is None

    def test_format_average_empty(self):
        assert format_average([]) == "0.000"

    def test_format_average_rounds_half_up(self):
        assert format_average([65.1875]) == "65.188"
        assert format_average([0.0005]) == "0.001"

    def test_format_average_beyond_default_precision(self):
        """Magnitudes past 28 significant digits still format instead of raising."""
        assert format_average([1e30]) == "1000000000000000000000000000000.000"
        assert format_average([1e300, 1e300]).startswith("1" + "0" * 300)

    def test_oversized_stored_score_does_not_break_average(self, store):
        """Scores stored before range validation still average."""
        event = store.save_event(make_event("a", suspicious_score="40"))
        legacy = replace(event, id="b", suspicious_score="1e30")

        assert calculate_average_suspicious_score([event, legacy]).endswith(".000")

    def test_unparseable_scores_excluded(self, store):
        """Stored scores that do not parse are skipped, not counted as zero."""
        events = [
            store.save_event(make_event("a", suspicious_score="40")),
            store.save_event(make_event("b", suspicious_score="60")),
        ]
        broken = replace(events[0], id="c", suspicious_score="???")

        assert calculate_average_suspicious_score(events + [broken]) == "50.000"


class TestStudentReport:
    """Report contents for a subject."""

    def test_detailed_report_scenario(self, s1_store):
        report = generate_student_report(s1_store, "S1", "Ada Lovelace", detailed=True)

        summary = report["summary"]
        assert summary["total_events"] == 4
        assert summary["events_by_severity"] == {"low": 1, "high": 2, "critical": 1}
        assert summary["events_by_type"] == {"gaze_deviation": 1, "face_lost": 2, "multiple_faces": 1}
        assert summary["suspicious_score"] == "65.188"
        assert summary["total_recordings"] == 2
        assert summary["total_recording_time"] == 1800

    def test_detailed_scores_are_three_decimal_strings(self, s1_store):
        report = generate_student_report(s1_store, "S1", "Ada Lovelace", detailed=True)

        for event in report["flagged_events"]:
            whole, _, fraction = event["suspicious_score"].partition(".")
            assert whole.isdigit() and len(fraction) == 3

    def test_flagged_events_newest_first(self, s1_store):
        report = generate_student_report(s1_store, "S1", "Ada Lovelace", detailed=True)
        assert [e["id"] for e in report["flagged_events"]] == ["e4", "e3", "e2", "e1"]

    def test_student_info(self, s1_store):
        report = generate_student_report(s1_store, "S1", "Ada Lovelace")

        assert report["student_info"] == {
            "id": "S1",
            "name": "Ada Lovelace",
            "report_generated_at": "2024-03-01T12:00:00Z",
            "data_retention_hours": 24
        }

    def test_default_report_is_redacted(self, s1_store):
        report = generate_student_report(s1_store, "S1", "Ada Lovelace")

        assert report["summary"]["suspicious_score"] == REDACTED
        assert all(e["suspicious_score"] == REDACTED for e in report["flagged_events"])
        assert is_redacted(report)

    def test_redaction_keeps_other_fields(self, s1_store):
        redacted = generate_student_report(s1_store, "S1", "Ada Lovelace")
        detailed = generate_student_report(s1_store, "S1", "Ada Lovelace", detailed=True)

        assert redacted["summary"]["events_by_severity"] == detailed["summary"]["events_by_severity"]
        assert [e["type"] for e in redacted["flagged_events"]] == [e["type"] for e in detailed["flagged_events"]]
        assert redacted["recordings"] == detailed["recordings"]

    def test_no_events(self, store):
        report = generate_student_report(store, "nobody", "Nobody", detailed=True)

        assert report["summary"]["total_events"] == 0
        assert report["summary"]["suspicious_score"] == "0.000"
        assert report["summary"]["events_by_type"] == {}

    def test_expired_data_excluded(self, s1_store, clock):
        clock.advance(hours=24)
        report = generate_student_report(s1_store, "S1", "Ada Lovelace", detailed=True)

        assert report["summary"]["total_events"] == 0
        assert report["summary"]["total_recordings"] == 0

    def test_report_does_not_mutate_store(self, s1_store):
        before = (s1_store.get_events(), s1_store.get_recordings())
        generate_student_report(s1_store, "S1", "Ada Lovelace", detailed=True)
        assert (s1_store.get_events(), s1_store.get_recordings()) == before

    def test_corruption_propagates(self, s1_store, backing_store):
        backing_store.set(EVENTS_KEY, "{broken")

        with pytest.raises(StoreCorruptionError):
            generate_student_report(s1_store, "S1", "Ada Lovelace")

    @patch("smartproctor.reports.aggregator.audit_detailed_access")
    def test_detailed_access_audited(self, mock_audit, s1_store):
        generate_student_report(s1_store, "S1", "Ada Lovelace", detailed=True, accessor="registrar")
        mock_audit.assert_called_once_with("registrar", "S1")

    @patch("smartproctor.reports.aggregator.audit_detailed_access")
    def test_redacted_access_not_audited(self, mock_audit, s1_store):
        generate_student_report(s1_store, "S1", "Ada Lovelace")
        mock_audit.assert_not_called()


class TestRedaction:

    def test_redact_scores_copies(self):
        report = {
            "summary": {"suspicious_score": "50.000", "total_events": 1},
            "flagged_events": [{"id": "e1", "suspicious_score": "50.000"}]
        }

        redacted = redact_scores(report)

        assert redacted["summary"] == {"suspicious_score": REDACTED, "total_events": 1}
        assert report["summary"]["suspicious_score"] == "50.000"
        assert is_redacted(redacted)
        assert not is_redacted(report)

    @patch("smartproctor.core.privacy.audit_event")
    def test_audit_detailed_access(self, mock_audit):
        from smartproctor.core.privacy import audit_detailed_access

        audit_detailed_access("registrar", "S1", reason="appeal")

        kwargs = mock_audit.call_args.kwargs
        assert kwargs["event_type"] == "privacy.detailed_report"
        assert kwargs["identifiers"] == {"accessor": "registrar", "student_id": "S1"}
        assert kwargs["payload"]["reason"] == "appeal"
