"""
Serialization helpers shared by the persistent backends.

The persisted layout is a JSON array of records (camelCase keys, ISO-8601
timestamps, `expiresAt: null` when absent) stored under one namespaced key.
"""

from typing import Any, Iterable, List

from pydantic import ValidationError

from ..errors import StorageFailure
from ..models import MappingRecord


def dump_records(records: Iterable[MappingRecord]) -> List[dict]:
    return [record.to_json() for record in records]


def load_records(raw: Any) -> List[MappingRecord]:
    """
    Parse a persisted collection back into records.

    Raises:
        StorageFailure: If the payload is not a list of valid records.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise StorageFailure(f"Stored mappings must be a JSON array, got {type(raw).__name__}")
    try:
        return [MappingRecord.model_validate(item) for item in raw]
    except ValidationError as exc:
        raise StorageFailure(f"Stored mappings are corrupt: {exc.error_count()} invalid field(s)") from exc
