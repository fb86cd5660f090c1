"""
Base storage interface for shortmap.

Purpose:
    Define a small, stable contract that multiple storage backends
    (in-memory, JSON file, Postgres) can implement without requiring
    changes to the mapping service.

    The store is deliberately dumb: it keeps the full collection of
    MappingRecord entries under one namespaced key and replaces it
    wholesale on every write. Uniqueness, expiry and click rules live in
    the service. The store only guarantees that a failed `put_all` leaves
    the previously committed collection untouched.

Concurrency:
    `put_all` replaces the whole set, so "read, compute, write back" spans
    several calls. `transaction()` gives callers a single-writer critical
    section around that sequence. The default is a process-local re-entrant
    lock; backends shared between processes extend it.

Testing & Coverage:
    Abstract methods are not executed directly in tests and are annotated
    with `# pragma: no cover`.
"""

import contextlib
import threading
from abc import ABC, abstractmethod
from typing import Iterable, Iterator, List, Optional

from ..models import MappingRecord

DEFAULT_STORAGE_KEY = "shortmap_mappings"


class BaseStorage(ABC):
    """Abstract base class for storage backends."""

    def __init__(self, key: str = DEFAULT_STORAGE_KEY) -> None:
        self.key = key
        self._lock = threading.RLock()

    @abstractmethod  # pragma: no cover
    def get_all(self) -> List[MappingRecord]:
        """
        Return every stored record.

        Returned records are copies; mutating them does not change the store
        until they are written back with `put_all`.
        """
        raise NotImplementedError

    def get_by_shortcode(self, shortcode: str) -> Optional[MappingRecord]:
        """Exact-key lookup. Returns None when absent."""
        for record in self.get_all():
            if record.shortcode == shortcode:
                return record
        return None

    @abstractmethod  # pragma: no cover
    def put_all(self, records: Iterable[MappingRecord]) -> None:
        """
        Replace the entire collection.

        Raises:
            StorageFailure: If the write cannot be committed. Previously
                committed state must remain visible.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def clear(self) -> None:
        """Remove all records."""
        raise NotImplementedError

    @contextlib.contextmanager
    def transaction(self) -> Iterator["BaseStorage"]:
        """
        Single-writer critical section for read-modify-write sequences.

        Example:
            >>> with storage.transaction():
            ...     records = storage.get_all()
            ...     storage.put_all(records + [new_record])
        """
        with self._lock:
            yield self
