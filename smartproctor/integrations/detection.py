"""
Clients for the external frame-analysis service and alert sink, and the
recorder that turns detections into flagged events.

Nothing here simulates detections: a failed analysis call raises.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

import requests

from util.logging import logger

from ..core import config
from ..core.dao import RetentionStore
from ..core.errors import DetectionServiceError
from ..core.schema import MAX_SCORE, MIN_SCORE, EventType, FlaggedEvent, Severity, format_datetime, utcnow


@dataclass
class DetectionResult:
    faces_detected: int
    suspicious_score: float
    alerts: List[str] = field(default_factory=list)
    gaze_on_screen: Optional[bool] = None

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "DetectionResult":
        """Decode the analysis service's JSON body."""
        try:
            faces = payload["face_detection"]["faces_detected"]
            score = float(payload["suspicion_score"])
        except (KeyError, TypeError, ValueError) as e:
            raise DetectionServiceError(f"Malformed analysis response: {e}") from e

        gaze = payload.get("gaze_on_screen")
        return cls(
            faces_detected=int(faces),
            suspicious_score=score,
            alerts=[str(a) for a in payload.get("alerts") or []],
            gaze_on_screen=None if gaze is None else bool(gaze)
        )


class DetectionSource(Protocol):
    def detect(self, frame: bytes) -> DetectionResult:
        ...


class FrameAnalysisClient:
    """Posts JPEG frames to the analysis service's /analyze-frame endpoint."""

    def __init__(self, base_url: str = None, timeout: float = None, session_id: str = None):
        self.base_url = (base_url or config.DETECTOR_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.DETECTOR_TIMEOUT_SEC
        self.session_id = session_id or f"session_{uuid.uuid4().hex[:12]}"

    def analyze_frame(self, frame: bytes, session_id: str = None) -> DetectionResult:
        try:
            response = requests.post(
                f"{self.base_url}/analyze-frame",
                files={"file": ("frame.jpg", frame, "image/jpeg")},
                data={"session_id": session_id or self.session_id},
                timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            logger.log_operation("detection.analyze_frame", "failed", {"error": str(e)[:200]})
            raise DetectionServiceError(f"Frame analysis failed: {e}") from e
        except ValueError as e:
            raise DetectionServiceError(f"Frame analysis returned invalid JSON: {e}") from e

        return DetectionResult.from_response(payload)

    def detect(self, frame: bytes) -> DetectionResult:
        return self.analyze_frame(frame)


class AlertSink:
    """Fire-and-forget notifications for newly flagged events."""

    def __init__(self, url: str = None, timeout: float = 3.0):
        self.url = url or config.ALERT_SINK_URL
        self.timeout = timeout

    def send(self, payload: Dict[str, Any]) -> bool:
        if not self.url:
            return False
        try:
            requests.post(self.url, json=payload, timeout=self.timeout).raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Alert delivery to {self.url} failed: {e}")
            return False
        return True


def severity_for_score(score: float) -> Severity:
    if score >= 90:
        return Severity.CRITICAL
    if score >= 70:
        return Severity.HIGH
    if score >= 50:
        return Severity.MEDIUM
    return Severity.LOW


class DetectionRecorder:
    """Records the flagged events implied by one detection result."""

    def __init__(self, store: RetentionStore, source: DetectionSource = None,
                 sink: AlertSink = None, threshold: float = 70.0):
        self.store = store
        self.source = source
        self.sink = sink
        self.threshold = threshold

    def flags_for(self, result: DetectionResult) -> Dict[EventType, Severity]:
        flags: Dict[EventType, Severity] = {}

        if result.faces_detected == 0:
            flags[EventType.FACE_LOST] = Severity.HIGH
        elif result.faces_detected > 1:
            flags[EventType.MULTIPLE_FACES] = Severity.HIGH

        if result.gaze_on_screen is False or result.suspicious_score > self.threshold:
            flags[EventType.GAZE_DEVIATION] = severity_for_score(result.suspicious_score)

        for alert in result.alerts:
            event_type = EventType.parse(alert)
            if event_type is EventType.UNKNOWN:
                logger.debug(f"Ignoring unrecognised detector alert: {alert}")
                continue
            flags.setdefault(event_type, severity_for_score(result.suspicious_score))

        return flags

    def record(self, student_id: str, result: DetectionResult,
               timestamp: datetime = None) -> List[FlaggedEvent]:
        timestamp = timestamp or utcnow()
        saved = []
        for event_type, severity in self.flags_for(result).items():
            event = self.store.save_event({
                "id": f"evt_{uuid.uuid4().hex}",
                "student_id": student_id,
                "timestamp": timestamp,
                "type": event_type.value,
                "severity": severity.value,
                "suspicious_score": min(max(result.suspicious_score, MIN_SCORE), MAX_SCORE),
                "description": f"{event_type.value.replace('_', ' ')} detected ({result.faces_detected} faces)"
            })
            saved.append(event)

            if self.sink:
                self.sink.send({
                    "event_id": event.id,
                    "student_id": event.student_id,
                    "type": event.type,
                    "severity": event.severity,
                    "timestamp": format_datetime(event.timestamp)
                })
        return saved

    def process_frame(self, student_id: str, frame: bytes) -> List[FlaggedEvent]:
        if self.source is None:
            raise DetectionServiceError("No detection source configured")
        return self.record(student_id, self.source.detect(frame))
