"""
Recording and flagged-event records with their persisted JSON encoding.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

MIN_SCORE = 0.0
MAX_SCORE = 100.0


class EventType(str, Enum):
    FACE_LOST = "face_lost"
    MULTIPLE_FACES = "multiple_faces"
    AUDIO_ANOMALY = "audio_anomaly"
    GAZE_DEVIATION = "gaze_deviation"
    SUSPICIOUS_OBJECT = "suspicious_object"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "EventType":
        """Map a raw value to a member, UNKNOWN when it is not one of the known types."""
        try:
            member = cls(value)
        except ValueError:
            return cls.UNKNOWN
        return member

    @classmethod
    def known(cls):
        return [m for m in cls if m is not cls.UNKNOWN]


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        """Map a raw value to a member, UNKNOWN when it is not one of the known severities."""
        try:
            member = cls(value)
        except ValueError:
            return cls.UNKNOWN
        return member

    @classmethod
    def known(cls):
        return [m for m in cls if m is not cls.UNKNOWN]


class RecordingStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    DELETED = "deleted"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: Union[str, int, float, datetime]) -> datetime:
    """Decode a persisted date: ISO-8601 text or epoch milliseconds."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool):
        raise ValueError(f"Not a date: {value!r}")
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Not a date: {value!r}")

    if parsed.tzinfo is None:
        # Naive values are stored as UTC
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def format_score(value: Union[str, int, float]) -> str:
    """Normalise numeric scores to the fixed 3-decimal string form; strings pass through."""
    if isinstance(value, str):
        return value
    return f"{float(value):.3f}"


@dataclass(frozen=True)
class Recording:
    id: str
    student_id: str
    student_name: str
    start_time: datetime
    duration: int
    file_path: str
    file_size: int
    expires_at: datetime
    status: RecordingStatus = RecordingStatus.ACTIVE
    end_time: Optional[datetime] = None

    def is_active(self, now: datetime) -> bool:
        return self.status is RecordingStatus.ACTIVE and self.expires_at > now

    def with_status(self, status: RecordingStatus) -> "Recording":
        return replace(self, status=status)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "studentId": self.student_id,
            "studentName": self.student_name,
            "startTime": format_datetime(self.start_time),
            "duration": self.duration,
            "filePath": self.file_path,
            "fileSize": self.file_size,
            "expiresAt": format_datetime(self.expires_at),
            "status": self.status.value
        }
        if self.end_time is not None:
            data["endTime"] = format_datetime(self.end_time)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recording":
        end_time = data.get("endTime")
        return cls(
            id=str(data["id"]),
            student_id=str(data["studentId"]),
            student_name=str(data["studentName"]),
            start_time=parse_datetime(data["startTime"]),
            end_time=parse_datetime(end_time) if end_time else None,
            duration=int(data["duration"]),
            file_path=str(data["filePath"]),
            file_size=int(data["fileSize"]),
            expires_at=parse_datetime(data["expiresAt"]),
            status=RecordingStatus(data["status"])
        )


@dataclass(frozen=True)
class FlaggedEvent:
    id: str
    student_id: str
    timestamp: datetime
    type: str
    severity: str
    suspicious_score: str
    description: str
    expires_at: datetime
    screenshot_path: Optional[str] = None

    def is_active(self, now: datetime) -> bool:
        return self.expires_at > now

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "studentId": self.student_id,
            "timestamp": format_datetime(self.timestamp),
            "type": self.type,
            "severity": self.severity,
            "suspiciousScore": self.suspicious_score,
            "description": self.description,
            "expiresAt": format_datetime(self.expires_at)
        }
        if self.screenshot_path is not None:
            data["screenshotPath"] = self.screenshot_path
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlaggedEvent":
        return cls(
            id=str(data["id"]),
            student_id=str(data["studentId"]),
            timestamp=parse_datetime(data["timestamp"]),
            type=str(data["type"]),
            severity=str(data["severity"]),
            suspicious_score=format_score(data["suspiciousScore"]),
            description=str(data.get("description", "")),
            expires_at=parse_datetime(data["expiresAt"]),
            screenshot_path=data.get("screenshotPath")
        )


@dataclass
class CleanupResult:
    """Counts from one recording cleanup pass."""
    expired: int = 0
    deleted: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"expired": self.expired, "deleted": self.deleted}
