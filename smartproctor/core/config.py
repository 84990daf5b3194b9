"""
Retention, storage and report configuration.
Values come from the environment once at import; accessors re-read where noted.
"""

import os
from dataclasses import dataclass
from pathlib import Path

# Retention windows
RETENTION_HOURS = int(os.getenv("RETENTION_HOURS", "24"))
GRACE_PERIOD_DAYS = int(os.getenv("GRACE_PERIOD_DAYS", "7"))
CLEANUP_INTERVAL_MINUTES = int(os.getenv("CLEANUP_INTERVAL_MINUTES", "60"))
CLEANUP_SCHEDULER_ENABLED = os.getenv("CLEANUP_SCHEDULER_ENABLED", "false").lower() == "true"

# Backing store
STORE_BACKEND = os.getenv("STORE_BACKEND", "memory")  # memory|sqlite
DB_PATH = os.getenv("DB_PATH", "./data/smartproctor.db")
STORE_ENCRYPTION_ENABLED = os.getenv("STORE_ENCRYPTION_ENABLED", "false").lower() == "true"
STORE_ENCRYPTION_KEY = os.getenv("STORE_ENCRYPTION_KEY")  # Required when encryption enabled

# Collection keys in the backing store
RECORDINGS_KEY = "smartproctor_recordings"
EVENTS_KEY = "smartproctor_events"

# External collaborators
DETECTOR_URL = os.getenv("DETECTOR_URL", "http://localhost:8000")
DETECTOR_TIMEOUT_SEC = float(os.getenv("DETECTOR_TIMEOUT_SEC", "5"))
ALERT_SINK_URL = os.getenv("ALERT_SINK_URL")

# Legal report defaults
REPORT_LANGUAGE = os.getenv("REPORT_LANGUAGE", "en")  # en|es|fr
INSTITUTION_NAME = os.getenv("INSTITUTION_NAME", "Educational Institution")
EXAM_TITLE = os.getenv("EXAM_TITLE", "Proctored Examination")
CASE_NUMBER_PREFIX = os.getenv("CASE_NUMBER_PREFIX", "SPX")

DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# Version string
VERSION = "2.0.0"

SYSTEM_VERSION = "SmartProctor-X v2.0 Enterprise Legal Edition"
AI_MODEL_VERSION = "CortexShade-AI v3.1 Certified"


@dataclass
class RetentionSettings:
    """Retention parameters shared by the store and the cleanup scheduler."""
    retention_hours: int = 24
    grace_period_days: int = 7
    cleanup_interval_minutes: int = 60

    @property
    def retention_seconds(self) -> int:
        return self.retention_hours * 3600

    @property
    def grace_period_seconds(self) -> int:
        return self.grace_period_days * 86400

    @property
    def cleanup_interval_seconds(self) -> int:
        return self.cleanup_interval_minutes * 60


def get_retention_settings() -> RetentionSettings:
    """Build retention settings from the configured environment values."""
    return RetentionSettings(
        retention_hours=RETENTION_HOURS,
        grace_period_days=GRACE_PERIOD_DAYS,
        cleanup_interval_minutes=CLEANUP_INTERVAL_MINUTES
    )


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def is_cleanup_scheduler_enabled():
    """Check if the API should start the cleanup scheduler."""
    return CLEANUP_SCHEDULER_ENABLED


def get_cleanup_interval():
    """Get cleanup interval in seconds."""
    return CLEANUP_INTERVAL_MINUTES * 60


def validate_retention_config(settings: RetentionSettings = None):
    """Validate retention and storage configuration and return any issues."""
    issues = []
    settings = settings or get_retention_settings()

    if settings.retention_hours < 1:
        issues.append("RETENTION_HOURS must be >= 1")

    if settings.grace_period_days < 0:
        issues.append("GRACE_PERIOD_DAYS must be >= 0")

    if settings.cleanup_interval_minutes < 1:
        issues.append("CLEANUP_INTERVAL_MINUTES must be >= 1")

    if STORE_BACKEND not in ["memory", "sqlite"]:
        issues.append(f"Invalid STORE_BACKEND: {STORE_BACKEND}")

    if STORE_ENCRYPTION_ENABLED and not STORE_ENCRYPTION_KEY:
        issues.append("STORE_ENCRYPTION_ENABLED requires STORE_ENCRYPTION_KEY")

    if REPORT_LANGUAGE not in ["en", "es", "fr"]:
        issues.append(f"Unsupported REPORT_LANGUAGE: {REPORT_LANGUAGE} (falls back to en)")

    return issues
