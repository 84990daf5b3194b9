"""Exceptions raised by the retention store, report formatters and collaborators."""

from typing import Any, List


class ProctorStoreError(Exception):
    """Base class for retention store failures."""
    pass


class StoreCorruptionError(ProctorStoreError):
    """A persisted collection could not be decrypted or parsed.

    The store never substitutes an empty collection for unreadable data; the
    caller decides whether to reset the collection or abort.
    """

    def __init__(self, collection: str, reason: str):
        self.collection = collection
        self.reason = reason
        super().__init__(f"Collection '{collection}' is corrupt: {reason}")


class ValidationError(ProctorStoreError):
    """A save call was rejected before any mutation."""

    def __init__(self, operation: str, errors: List[Any]):
        self.operation = operation
        self.errors = errors
        fields = ", ".join(
            ".".join(str(p) for p in e.get("loc", ())) if isinstance(e, dict) else str(e)
            for e in errors
        )
        super().__init__(f"Invalid input for {operation}: {fields}")


class RenderError(Exception):
    """A flagged event carries a type or severity the legal formatter cannot map.

    Reported through logging; document generation substitutes fallback text.
    """

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(f"Unmapped {field}: {value!r}")


class DetectionServiceError(Exception):
    """The external frame-analysis service failed or returned an unusable payload."""
    pass
