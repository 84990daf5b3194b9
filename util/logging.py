"""
Structured logging for retention, cleanup and report operations.
Audit helpers keep score values and free text out of the log stream.
"""

import logging
from typing import Any, Dict, List

class StructuredLogger:
    """Structured logger for store writes, cleanup passes and report rendering."""

    def __init__(self, name: str = "smartproctor"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "error"):
            self.logger.error(message)
        elif status in ("anomaly", "corrupt"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_recording_operation(self, operation: str, recording_id: str, student_id: str = None,
                                details: Dict[str, Any] = None, status: str = "success"):
        """Log a recording-collection operation."""
        log_details = {"recording_id": recording_id}
        if student_id is not None:
            log_details["student_id"] = student_id
        if details:
            log_details.update(details)

        self.log_operation(f"recording.{operation}", status, log_details)

    def log_event_operation(self, operation: str, event_id: str, student_id: str = None,
                            details: Dict[str, Any] = None, status: str = "success"):
        """Log a flagged-event operation."""
        log_details = {"event_id": event_id}
        if student_id is not None:
            log_details["student_id"] = student_id
        if details:
            log_details.update(details)

        self.log_operation(f"event.{operation}", status, log_details)

    def log_cleanup_pass(self, collection: str, counts: Dict[str, int], remaining: int):
        """Log the outcome of one cleanup sweep over a collection."""
        log_details = dict(counts)
        log_details["remaining"] = remaining
        self.log_operation(f"cleanup.{collection}", "success", log_details)

    def log_scheduler_task(self, task_name: str, start_time: float, end_time: float,
                           status: str = "success", details: Dict[str, Any] = None):
        """Log cleanup scheduler task execution."""
        duration_ms = round((end_time - start_time) * 1000, 2)
        log_details = {"duration_ms": duration_ms}
        if details:
            log_details.update(details)
        elif status == "success":
            log_details["message"] = f"Cleanup task '{task_name}' completed in {duration_ms}ms"
        elif status == "failed":
            log_details["message"] = f"Cleanup task '{task_name}' failed after {duration_ms}ms"

        self.log_operation(f"scheduler.{task_name}", status, log_details)

    def log_render_anomaly(self, field: str, value: Any, incident_id: str = None):
        """Log a value the legal formatter could not map and replaced with fallback text."""
        log_details = {"field": field, "value": str(value)[:50]}
        if incident_id:
            log_details["incident_id"] = incident_id

        self.log_operation("legal_report.render", "anomaly", log_details)

    def log_store_corruption(self, collection: str, reason: str):
        """Log a persisted collection that could not be decoded."""
        self.log_operation(f"store.{collection}", "corrupt", {"reason": reason[:100]})

    def log_validation_error(self, operation: str, errors: List[Any]):
        """Log rejected input with field names only."""
        sanitized = []
        for error in errors:
            if isinstance(error, dict):
                sanitized.append({
                    "field": ".".join(str(part) for part in error.get("loc", ())),
                    "message": str(error.get("msg", ""))[:100]
                })
            else:
                sanitized.append(str(error)[:100])

        self.log_operation(f"validation.{operation}", "rejected",
                           {"errors": sanitized, "error_count": len(sanitized)})

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)

# Global logger instance
logger = StructuredLogger()

SENSITIVE_FIELDS = ['suspicious_score', 'score', 'description', 'frame', 'screenshot_path', 'passphrase']

def audit_event(event_type: str, identifiers: Dict[str, Any], payload: Dict[str, Any] = None,
                sensitive_fields: List[str] = None):
    """General audit event logging with privacy controls."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    log_details = identifiers.copy() if identifiers else {}

    if payload:
        log_details["payload"] = sanitize_payload(payload, sensitive_fields=sensitive_fields)

    logger.log_operation(event_type.replace(".", "_"), "audit", log_details)

def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for audit logging."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
