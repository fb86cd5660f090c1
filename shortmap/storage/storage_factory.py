"""
Storage factory – switch storage backend from config (lazy env version)
======================================================================

This module centralizes selection of the storage backend so the rest of the
app can stay ignorant of where mappings live.

- Reads environment **at call time** to avoid stale values in tests.
- Imports the DB backend **only if** the selected backend is "postgres".

Environment variables
---------------------
- SHORTMAP_STORAGE_BACKEND: "memory" (default), "file" or "postgres"
- SHORTMAP_DATA_FILE:       JSON path if backend=="file"
- SHORTMAP_DB_DSN:          DSN string if backend=="postgres"
- SHORTMAP_STORAGE_KEY:     namespaced key (default "shortmap_mappings")
"""

import logging
import os
from typing import Optional

from shortmap.storage.base import DEFAULT_STORAGE_KEY, BaseStorage
from shortmap.storage.storage import Storage

log = logging.getLogger(__name__)


def get_storage(backend: Optional[str] = None, **kwargs) -> BaseStorage:
    """
    Return a storage backend based on configuration.

    Parameters
    ----------
    backend : str, optional
        "memory", "file" or "postgres". If omitted, reads SHORTMAP_STORAGE_BACKEND.
    kwargs : dict
        Extra args for the backend: path="..." for file, dsn="..." for postgres,
        key="..." for any backend, max_records=N for memory.

    Returns
    -------
    BaseStorage-compatible instance
    """
    be = (backend or os.getenv("SHORTMAP_STORAGE_BACKEND", "memory")).strip().lower()
    key = kwargs.get("key") or os.getenv("SHORTMAP_STORAGE_KEY", DEFAULT_STORAGE_KEY)

    log.info("Selected storage backend: %r (key=%s)", be, key)

    if be == "memory":
        return Storage(key=key, max_records=kwargs.get("max_records"))

    if be == "file":
        path = kwargs.get("path") or os.getenv("SHORTMAP_DATA_FILE", "")
        if not path:
            raise ValueError("DATA_FILE is required for file backend (env SHORTMAP_DATA_FILE)")
        from shortmap.storage.file_storage import FileStorage
        return FileStorage(path=path, key=key)

    if be == "postgres":
        dsn = kwargs.get("dsn") or os.getenv("SHORTMAP_DB_DSN", "")
        if not dsn:
            raise ValueError("DB_DSN is required for postgres backend (env SHORTMAP_DB_DSN)")
        # Local import to avoid hard dependency when not using postgres
        from shortmap.storage.db_storage import DBStorage
        return DBStorage(dsn=dsn, key=key)

    raise ValueError(f"Unknown storage backend: {be!r}")
