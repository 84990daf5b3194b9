"""
Collection repositories over a key-value backing store.

Each repository owns exactly one collection key. Every read-modify-write runs
under the repository's lock so concurrent writers cannot lose updates.
"""

import json
import threading
from contextlib import contextmanager
from typing import Generic, Iterator, List, Type, TypeVar

from util.logging import logger

from .errors import StoreCorruptionError
from .schema import FlaggedEvent, Recording
from .storage import KeyValueStore

T = TypeVar("T", Recording, FlaggedEvent)


class CollectionRepository(Generic[T]):
    """Whole-collection load/replace for one record type."""

    record_type: Type[T]

    def __init__(self, store: KeyValueStore, key: str):
        self.store = store
        self.key = key
        self.lock = threading.RLock()

    def load(self) -> List[T]:
        """Decode the stored collection; an absent key reads as empty."""
        with self.lock:
            try:
                raw = self.store.get(self.key)
            except StoreCorruptionError as e:
                logger.log_store_corruption(self.key, e.reason)
                raise
            if raw is None:
                return []
            return self._decode(raw)

    def replace(self, items: List[T]) -> None:
        """Persist the full collection."""
        with self.lock:
            self.store.set(self.key, json.dumps([item.to_dict() for item in items]))

    def reset(self) -> None:
        """Drop the stored collection entirely."""
        with self.lock:
            self.store.delete(self.key)
            logger.log_operation(f"store.{self.key}", "reset")

    @contextmanager
    def transaction(self) -> Iterator[List[T]]:
        """Yield the loaded collection and persist it if the block completes."""
        with self.lock:
            items = self.load()
            yield items
            self.replace(items)

    def _decode(self, raw: str) -> List[T]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.log_store_corruption(self.key, f"invalid JSON: {e}")
            raise StoreCorruptionError(self.key, f"invalid JSON: {e}") from e

        if not isinstance(data, list):
            logger.log_store_corruption(self.key, "collection is not a list")
            raise StoreCorruptionError(self.key, "collection is not a list")

        items = []
        for index, entry in enumerate(data):
            try:
                items.append(self.record_type.from_dict(entry))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                reason = f"entry {index} unreadable: {e.__class__.__name__}: {e}"
                logger.log_store_corruption(self.key, reason)
                raise StoreCorruptionError(self.key, reason) from e
        return items


class RecordingRepository(CollectionRepository[Recording]):
    record_type = Recording


class EventRepository(CollectionRepository[FlaggedEvent]):
    record_type = FlaggedEvent
