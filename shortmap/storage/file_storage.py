"""
FileStorage – JSON-file-backed storage for shortmap
==================================================

Persists the mapping collection in a single JSON document on local disk:

    {
        "shortmap_mappings": [ {record}, {record}, ... ]
    }

Other top-level keys in the document are preserved, so several namespaces
can share one file.

Key Design Points
-----------------
- **Atomic writes**: the new document is written to a temp file in the same
  directory, fsynced, then swapped in with `os.replace`. A crash or a full
  disk during the write leaves the previous file intact.
- **Failures**: any OSError or undecodable content surfaces as
  `StorageFailure`; nothing is half-written.
- **Concurrency**: writers inside one process serialize through
  `transaction()`. Several processes writing the same file are not
  coordinated.

Example
-------
>>> storage = FileStorage("/tmp/shortmap.json")
>>> storage.get_all()
[]
"""

import json
import logging
import os
import tempfile
from typing import Any, Dict, Iterable, List

from ..errors import StorageFailure
from ..models import MappingRecord
from .base import DEFAULT_STORAGE_KEY, BaseStorage
from .codec import dump_records, load_records

log = logging.getLogger(__name__)


class FileStorage(BaseStorage):
    """JSON file implementation of the storage contract.

    Parameters
    ----------
    path : str
        Location of the JSON document. Created on first write.
    key : str
        Namespaced key the collection is stored under.
    """

    def __init__(self, path: str, key: str = DEFAULT_STORAGE_KEY) -> None:
        super().__init__(key=key)
        self.path = os.path.abspath(path)

    # ---- Internal helpers -------------------------------------------------

    def _read_document(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                document = json.load(fh)
        except (OSError, ValueError) as exc:
            log.error("Failed to read mappings from %s: %s", self.path, exc)
            raise StorageFailure(f"Could not read mappings from {self.path}") from exc
        if not isinstance(document, dict):
            raise StorageFailure(f"{self.path} does not contain a JSON object")
        return document

    def _write_document(self, document: Dict[str, Any]) -> None:
        directory = os.path.dirname(self.path)
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".shortmap-", suffix=".tmp", dir=directory)
        except OSError as exc:
            log.error("Cannot create temp file in %s: %s", directory, exc)
            raise StorageFailure(f"Could not write mappings to {self.path}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except OSError as exc:
            log.error("Failed to save mappings to %s: %s", self.path, exc)
            _remove_quietly(tmp_path)
            raise StorageFailure("Failed to save URL mappings. Storage might be full.") from exc

    # ---- Contract methods -------------------------------------------------

    def get_all(self) -> List[MappingRecord]:
        return load_records(self._read_document().get(self.key))

    def put_all(self, records: Iterable[MappingRecord]) -> None:
        document = self._read_document()
        document[self.key] = dump_records(records)
        self._write_document(document)

    def clear(self) -> None:
        document = self._read_document()
        if self.key in document:
            del document[self.key]
            self._write_document(document)


def _remove_quietly(path: str) -> None:
    """Best-effort removal of a leftover temp file."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
