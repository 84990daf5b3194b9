"""
Score redaction for non-detailed reports and audit of detailed report access.

No access decision is made here: callers decide who may request detailed
reports. Redaction only hides score values.
"""

import copy
from datetime import datetime, timezone
from typing import Any, Dict

from util.logging import audit_event

REDACTED = "***"


def redact_scores(report: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of a student report with the summary score and every event score hidden."""
    redacted = copy.deepcopy(report)

    summary = redacted.get("summary")
    if isinstance(summary, dict) and "suspicious_score" in summary:
        summary["suspicious_score"] = REDACTED

    for event in redacted.get("flagged_events", []):
        if "suspicious_score" in event:
            event["suspicious_score"] = REDACTED

    return redacted


def is_redacted(report: Dict[str, Any]) -> bool:
    """True when no score in the report is visible."""
    if report.get("summary", {}).get("suspicious_score") != REDACTED:
        return False
    return all(e.get("suspicious_score") == REDACTED for e in report.get("flagged_events", []))


def audit_detailed_access(accessor: str, student_id: str, reason: str = "detailed report") -> None:
    """Record that unredacted scores were produced for a subject."""
    audit_event(
        event_type="privacy.detailed_report",
        identifiers={"accessor": accessor, "student_id": student_id},
        payload={
            "reason": reason,
            "requested_at": datetime.now(timezone.utc).isoformat()
        }
    )
