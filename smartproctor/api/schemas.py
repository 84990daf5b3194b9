"""
Request and response models for the retention store and its HTTP surface.
The store validates save calls through the request models before mutating anything.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from ..core.schema import MAX_SCORE, MIN_SCORE, EventType, Severity

class RecordingCreateRequest(BaseModel):
    id: str
    student_id: str
    student_name: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: int = Field(ge=0)
    file_path: str
    file_size: int = Field(ge=0)

    @field_validator('id', 'student_id')
    @classmethod
    def identifier_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('identifier cannot be empty')
        return v.strip()

    @field_validator('file_path')
    @classmethod
    def file_path_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('file_path cannot be empty')
        return v

class RecordingFinishRequest(BaseModel):
    end_time: datetime

class EventCreateRequest(BaseModel):
    id: str
    student_id: str
    timestamp: datetime
    type: str
    severity: str
    suspicious_score: Union[str, float]
    description: str = ""
    screenshot_path: Optional[str] = None

    @field_validator('id', 'student_id')
    @classmethod
    def identifier_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('identifier cannot be empty')
        return v.strip()

    @field_validator('type')
    @classmethod
    def type_must_be_valid(cls, v):
        valid_types = [t.value for t in EventType.known()]
        if v not in valid_types:
            raise ValueError(f'type must be one of: {valid_types}')
        return v

    @field_validator('severity')
    @classmethod
    def severity_must_be_valid(cls, v):
        valid_severities = [s.value for s in Severity.known()]
        if v not in valid_severities:
            raise ValueError(f'severity must be one of: {valid_severities}')
        return v

    @field_validator('suspicious_score')
    @classmethod
    def score_must_be_numeric(cls, v):
        if isinstance(v, str):
            try:
                v = float(v)
            except ValueError:
                raise ValueError('suspicious_score must be a numeric string')
        if not math.isfinite(v):
            raise ValueError('suspicious_score must be finite')
        if not MIN_SCORE <= v <= MAX_SCORE:
            raise ValueError(f'suspicious_score must be between {MIN_SCORE:g} and {MAX_SCORE:g}')
        return f"{v:.3f}"

class CleanupResponse(BaseModel):
    recordings_expired: int
    recordings_deleted: int
    events_removed: int

class HealthResponse(BaseModel):
    status: str
    version: str
    backend: str
    recording_count: int
    event_count: int
    scheduler: Dict[str, Any]

class ErrorResponse(BaseModel):
    error_type: str
    message: str
    details: Optional[List[Any]] = None
    collection: Optional[str] = None
