"""
Point-in-time student report over the retention store's unexpired data.
"""

import math
from collections import Counter
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Dict, Iterable, List, Optional

from ..core.dao import RetentionStore
from ..core.privacy import audit_detailed_access, redact_scores
from ..core.schema import FlaggedEvent, format_datetime


def parse_score(value: Any) -> Optional[float]:
    """Parse a stored score, None when it is not a finite number."""
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    return score if math.isfinite(score) else None


def format_average(scores: List[float]) -> str:
    """Mean of the scores rounded half away from zero to 3 places; "0.000" when empty."""
    if not scores:
        return "0.000"
    values = [Decimal(str(s)) for s in scores]
    # Precision must cover every integer digit of the sum plus the 3 decimals
    with localcontext() as ctx:
        ctx.prec = max(28, max(v.adjusted() for v in values) + len(str(len(values))) + 10)
        average = sum(values, Decimal(0)) / Decimal(len(values))
        return str(average.quantize(Decimal("0.001"), rounding=ROUND_HALF_UP))


def calculate_average_suspicious_score(events: Iterable[FlaggedEvent]) -> str:
    scores = [s for s in (parse_score(e.suspicious_score) for e in events) if s is not None]
    return format_average(scores)


def generate_student_report(store: RetentionStore, student_id: str, student_name: str,
                            detailed: bool = False, accessor: str = "report_aggregator") -> Dict[str, Any]:
    """Summarise one subject's unexpired events and active recordings.

    Without ``detailed`` every score is replaced by the redaction placeholder;
    all other fields stay visible.
    """
    events = store.get_events_by_student(student_id)
    recordings = store.get_recordings_by_student(student_id)

    report = {
        "student_info": {
            "id": student_id,
            "name": student_name,
            "report_generated_at": format_datetime(store.now()),
            "data_retention_hours": store.settings.retention_hours
        },
        "summary": {
            "total_events": len(events),
            "events_by_type": dict(Counter(e.type for e in events)),
            "events_by_severity": dict(Counter(e.severity for e in events)),
            "total_recordings": len(recordings),
            "total_recording_time": sum(r.duration for r in recordings),
            "suspicious_score": calculate_average_suspicious_score(events)
        },
        "flagged_events": [
            {
                "id": event.id,
                "timestamp": format_datetime(event.timestamp),
                "type": event.type,
                "severity": event.severity,
                "suspicious_score": event.suspicious_score,
                "description": event.description,
                "screenshot_path": event.screenshot_path,
                "expires_at": format_datetime(event.expires_at)
            }
            for event in events
        ],
        "recordings": [
            {
                "id": recording.id,
                "start_time": format_datetime(recording.start_time),
                "duration": recording.duration,
                "file_path": recording.file_path,
                "file_size": recording.file_size,
                "expires_at": format_datetime(recording.expires_at)
            }
            for recording in recordings
        ]
    }

    if not detailed:
        return redact_scores(report)

    audit_detailed_access(accessor, student_id)
    return report
