"""
Storage module for shortmap (in-memory implementation).

Responsibilities:
    - Hold the mapping collection under a single namespaced key
    - Hand out copies so callers cannot mutate committed state by accident
    - Optionally enforce a record quota, surfacing overflow as StorageFailure

Design:
    - This is the reference implementation of the BaseStorage contract.
    - It keeps unit/integration tests fast and deterministic.
    - For durability, swap in FileStorage or DBStorage through the factory;
      the service and API code do not change.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import StorageFailure
from ..models import MappingRecord
from .base import DEFAULT_STORAGE_KEY, BaseStorage

log = logging.getLogger(__name__)


class Storage(BaseStorage):
    def __init__(self, key: str = DEFAULT_STORAGE_KEY, max_records: Optional[int] = None):
        """
        Initialize empty storage.

        Internal schema:
            self.data = {
                key: (MappingRecord, ...)
            }

        Args:
            key (str): Namespaced key the collection is stored under.
            max_records (Optional[int]): Quota; a write holding more records
                than this fails with StorageFailure.
        """
        super().__init__(key=key)
        self.max_records = max_records
        self.data: Dict[str, Tuple[MappingRecord, ...]] = {}

    def get_all(self) -> List[MappingRecord]:
        return [record.model_copy(deep=True) for record in self.data.get(self.key, ())]

    def get_by_shortcode(self, shortcode: str) -> Optional[MappingRecord]:
        for record in self.data.get(self.key, ()):
            if record.shortcode == shortcode:
                return record.model_copy(deep=True)
        return None

    def put_all(self, records: Iterable[MappingRecord]) -> None:
        """
        Replace the stored collection.

        The new tuple is built completely before it is swapped in, so a
        quota failure leaves the old collection as it was.
        """
        snapshot = tuple(record.model_copy(deep=True) for record in records)
        if self.max_records is not None and len(snapshot) > self.max_records:
            log.error("Storage quota exceeded: %d records > %d", len(snapshot), self.max_records)
            raise StorageFailure("Failed to save URL mappings. Storage might be full.")
        self.data[self.key] = snapshot

    def clear(self) -> None:
        self.data.pop(self.key, None)
