"""
HTTP surface over the retention store, cleanup scheduler and report generators.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from .schemas import (
    CleanupResponse,
    ErrorResponse,
    EventCreateRequest,
    HealthResponse,
    RecordingCreateRequest,
    RecordingFinishRequest
)
from ..core.config import (
    STORE_BACKEND,
    VERSION,
    debug_enabled,
    is_cleanup_scheduler_enabled,
    validate_retention_config
)
from ..core.dao import RetentionStore
from ..core.db import health_check
from ..core.errors import StoreCorruptionError, ValidationError
from ..core.scheduler import CleanupScheduler
from ..core.storage import SQLiteStore
from ..reports.aggregator import generate_student_report
from ..reports.analysis import perform_analysis
from ..reports.legal import ExamSession, LegalReportGenerator, render_text


@asynccontextmanager
async def lifespan(app: FastAPI):
    for issue in validate_retention_config():
        logging.warning(f"Retention config: {issue}")

    store = RetentionStore()
    app.state.store = store
    app.state.scheduler = None

    if is_cleanup_scheduler_enabled():
        app.state.scheduler = CleanupScheduler(store)
        app.state.scheduler.start()

    try:
        yield
    finally:
        if app.state.scheduler:
            app.state.scheduler.stop()


app = FastAPI(
    title="SmartProctor Retention API",
    version=VERSION,
    description="Recording and flagged-event retention with report generation",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None,
    lifespan=lifespan
)


def get_store(request: Request) -> RetentionStore:
    return request.app.state.store


def get_scheduler(request: Request) -> Optional[CleanupScheduler]:
    return getattr(request.app.state, "scheduler", None)


@app.exception_handler(ValidationError)
async def validation_error_handler(request, exc: ValidationError):
    error = ErrorResponse(error_type="validation_error", message=str(exc), details=exc.errors)
    return JSONResponse(status_code=422, content=error.model_dump(mode="json", exclude_none=True))


@app.exception_handler(StoreCorruptionError)
async def corruption_error_handler(request, exc: StoreCorruptionError):
    logging.error(f"Store corruption in {exc.collection}: {exc.reason}")
    error = ErrorResponse(error_type="store_corruption", message=str(exc), collection=exc.collection)
    return JSONResponse(status_code=500, content=error.model_dump(mode="json", exclude_none=True))


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint(store: RetentionStore = Depends(get_store),
                          scheduler: Optional[CleanupScheduler] = Depends(get_scheduler)):
    """Check system health."""
    backing = getattr(store.backing_store, "inner", store.backing_store)
    db_health = health_check(backing.db_path) if isinstance(backing, SQLiteStore) else True
    counts = store.get_counts()
    return HealthResponse(
        status="healthy" if db_health else "unhealthy",
        version=VERSION,
        backend=STORE_BACKEND,
        recording_count=counts["recordings"],
        event_count=counts["events"],
        scheduler=scheduler.get_status() if scheduler else {"status": "disabled"}
    )


# Recordings

@app.post("/recordings", status_code=201)
def save_recording_endpoint(request: RecordingCreateRequest, store: RetentionStore = Depends(get_store)):
    return store.save_recording(request).to_dict()


@app.get("/recordings")
def list_recordings_endpoint(store: RetentionStore = Depends(get_store)) -> List[dict]:
    """All stored recordings, including expired ones still in their grace period."""
    return [r.to_dict() for r in store.get_recordings()]


# Defined before /recordings/{recording_id} routes
@app.get("/recordings/active")
def list_active_recordings_endpoint(store: RetentionStore = Depends(get_store)) -> List[dict]:
    return [r.to_dict() for r in store.get_active_recordings()]


@app.post("/recordings/{recording_id}/finish")
def finish_recording_endpoint(recording_id: str, request: Optional[RecordingFinishRequest] = None,
                              store: RetentionStore = Depends(get_store)):
    try:
        recording = store.finish_recording(recording_id, request.end_time if request else None)
    except KeyError:
        raise HTTPException(status_code=404, detail="Recording not found")
    return recording.to_dict()


@app.delete("/recordings/{recording_id}")
def delete_recording_endpoint(recording_id: str, store: RetentionStore = Depends(get_store)):
    if not store.delete_recording(recording_id):
        raise HTTPException(status_code=404, detail="Recording not found")
    return {"success": True, "id": recording_id}


# Flagged events

@app.post("/events", status_code=201)
def save_event_endpoint(request: EventCreateRequest, store: RetentionStore = Depends(get_store)):
    return store.save_event(request).to_dict()


@app.get("/events/active")
def list_active_events_endpoint(store: RetentionStore = Depends(get_store)) -> List[dict]:
    return [e.to_dict() for e in store.get_active_events()]


@app.get("/students/{student_id}/events")
def list_student_events_endpoint(student_id: str, store: RetentionStore = Depends(get_store)) -> List[dict]:
    return [e.to_dict() for e in store.get_events_by_student(student_id)]


# Maintenance

@app.post("/maintenance/cleanup", response_model=CleanupResponse)
def cleanup_endpoint(store: RetentionStore = Depends(get_store)):
    """Run both cleanup passes now, independent of the scheduler."""
    recordings = store.cleanup_expired_recordings()
    events_removed = store.cleanup_expired_events()
    return CleanupResponse(
        recordings_expired=recordings.expired,
        recordings_deleted=recordings.deleted,
        events_removed=events_removed
    )


# Reports

@app.get("/students/{student_id}/report")
def student_report_endpoint(student_id: str, name: Optional[str] = None, detailed: bool = False,
                            accessor: str = "api", store: RetentionStore = Depends(get_store)):
    return generate_student_report(store, student_id, name or student_id,
                                   detailed=detailed, accessor=accessor)


@app.get("/students/{student_id}/analysis")
def student_analysis_endpoint(student_id: str, store: RetentionStore = Depends(get_store)):
    events = store.get_events_by_student(student_id)
    recordings = store.get_recordings_by_student(student_id)
    return perform_analysis(events, recordings).to_dict()


def _session_for(store: RetentionStore, student_id: str, name: Optional[str],
                 session_start: Optional[datetime], duration_minutes: Optional[int]) -> ExamSession:
    """Session details default to the subject's active recordings."""
    recordings = store.get_recordings_by_student(student_id)
    if session_start is None:
        session_start = min((r.start_time for r in recordings), default=store.now())
    if duration_minutes is None:
        duration_minutes = sum(r.duration for r in recordings) // 60
    return ExamSession(
        student_id=student_id,
        student_name=name or student_id,
        session_start=session_start,
        duration_minutes=duration_minutes
    )


@app.get("/students/{student_id}/legal-report")
def legal_report_endpoint(student_id: str, name: Optional[str] = None, language: Optional[str] = None,
                          format: str = Query("json", pattern="^(json|text)$"),
                          institution: Optional[str] = None, exam_title: Optional[str] = None,
                          session_start: Optional[datetime] = None, duration_minutes: Optional[int] = None,
                          store: RetentionStore = Depends(get_store)):
    session = _session_for(store, student_id, name, session_start, duration_minutes)
    events = store.get_events_by_student(student_id)

    generator = LegalReportGenerator(clock=store.now)
    document = generator.generate_legal_report(session, events, language, institution, exam_title)

    if format == "text":
        return PlainTextResponse(render_text(document))
    return document


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions."""
    logging.error(f"Unhandled exception: {exc}")
    content = {"detail": "Internal server error"}
    if debug_enabled():
        content["debug"] = str(exc)
    return JSONResponse(status_code=500, content=content)
