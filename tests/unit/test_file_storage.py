"""
Unit tests for FileStorage.

Covers the persisted JSON layout, atomic replacement, preservation of other
namespaces, and StorageFailure on unreadable or unwritable files.
"""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest

from shortmap.errors import StorageFailure
from shortmap.models import MappingRecord
from shortmap.storage.file_storage import FileStorage

CREATED = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def path(tmp_path):
    return str(tmp_path / "mappings.json")


def _record(code, expires=None, clicks=0):
    return MappingRecord(
        shortcode=code,
        target_url="https://example.com/" + code,
        created_at=CREATED,
        expires_at=expires,
        click_count=clicks,
    )


def test_missing_file_reads_empty(path):
    assert FileStorage(path).get_all() == []
    assert not os.path.exists(path)


def test_persisted_layout(path):
    storage = FileStorage(path)
    storage.put_all([_record("abc123", expires=CREATED + timedelta(hours=2), clicks=3), _record("xyz789")])

    with open(path, encoding="utf-8") as fh:
        document = json.load(fh)

    assert list(document) == ["shortmap_mappings"]
    first, second = document["shortmap_mappings"]
    assert first["shortcode"] == "abc123"
    assert first["targetUrl"] == "https://example.com/abc123"
    assert first["clickCount"] == 3
    assert first["createdAt"].startswith("2026-01-01T12:00:00")
    assert first["expiresAt"].startswith("2026-01-01T14:00:00")
    assert second["expiresAt"] is None


def test_survives_reopen(path):
    FileStorage(path).put_all([_record("abc123", clicks=7)])
    reopened = FileStorage(path)
    record = reopened.get_by_shortcode("abc123")
    assert record is not None
    assert record.click_count == 7
    assert record.created_at == CREATED


def test_other_namespaces_preserved(path):
    FileStorage(path, key="other").put_all([_record("keepme")])
    storage = FileStorage(path)
    storage.put_all([_record("abc123")])
    storage.clear()
    assert storage.get_all() == []
    assert [r.shortcode for r in FileStorage(path, key="other").get_all()] == ["keepme"]


def test_corrupt_file_raises_storage_failure(path):
    with open(path, "w", encoding="utf-8") as fh:
        fh.write("{not json")
    with pytest.raises(StorageFailure):
        FileStorage(path).get_all()


def test_non_object_document_raises(path):
    with open(path, "w", encoding="utf-8") as fh:
        json.dump([1, 2, 3], fh)
    with pytest.raises(StorageFailure):
        FileStorage(path).get_all()


def test_invalid_record_raises(path):
    with open(path, "w", encoding="utf-8") as fh:
        json.dump({"shortmap_mappings": [{"shortcode": "abc"}]}, fh)
    with pytest.raises(StorageFailure, match="corrupt"):
        FileStorage(path).get_all()


def test_failed_write_keeps_previous_file(path, tmp_path, monkeypatch):
    storage = FileStorage(path)
    storage.put_all([_record("abc123")])

    def _disk_full(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(os, "replace", _disk_full)
    with pytest.raises(StorageFailure, match="Storage might be full"):
        storage.put_all([_record("abc123"), _record("xyz789")])
    monkeypatch.undo()

    assert [r.shortcode for r in storage.get_all()] == ["abc123"]
    # no temp files left behind
    assert sorted(os.listdir(tmp_path)) == ["mappings.json"]


def test_missing_directory_raises_storage_failure(tmp_path):
    storage = FileStorage(str(tmp_path / "nope" / "mappings.json"))
    with pytest.raises(StorageFailure):
        storage.put_all([_record("abc123")])
