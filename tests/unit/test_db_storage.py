import contextlib
from datetime import datetime, timezone

import psycopg
import pytest

from shortmap.errors import ShortcodeTaken, StorageFailure
from shortmap.models import MappingRecord
from shortmap.storage.db_storage import DBStorage

CREATED = datetime(2026, 1, 1, tzinfo=timezone.utc)

ROW = {
    "shortcode": "abc123",
    "targetUrl": "https://x.com",
    "createdAt": "2026-01-01T00:00:00Z",
    "expiresAt": None,
    "clickCount": 4,
}


class DummyCursor:
    def __init__(self, conn):
        self.conn = conn

    def execute(self, query, params=None):
        if self.conn.fail_on is not None and self.conn.fail_on in query:
            raise psycopg.OperationalError("server closed the connection unexpectedly")
        self.conn.executed.append((" ".join(query.split()), params))
        return self

    def fetchone(self):
        return self.conn.results.pop(0) if self.conn.results else None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class DummyConnection:
    def __init__(self, results=None, fail_on=None):
        self.results = list(results or [])
        self.fail_on = fail_on
        self.executed = []
        self.autocommit = False
        self.closed = False
        self.committed = 0
        self.rolled_back = 0

    def cursor(self):
        return DummyCursor(self)

    def execute(self, query, params=None):
        return self.cursor().execute(query, params)

    @contextlib.contextmanager
    def transaction(self):
        try:
            yield self
        except BaseException:
            self.rolled_back += 1
            raise
        else:
            self.committed += 1

    def close(self):
        self.closed = True


@pytest.fixture
def connect(monkeypatch):
    """Patch psycopg.connect; returns a list of connections handed out."""
    handed_out = []

    def _install(**kwargs):
        def _connect(dsn):
            conn = DummyConnection(**kwargs)
            handed_out.append(conn)
            return conn

        monkeypatch.setattr("psycopg.connect", _connect)
        return handed_out

    return _install


# ---------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------

def test_get_all_parses_jsonb_payload(connect):
    conns = connect(results=[([ROW],)])
    records = DBStorage("fake").get_all()
    assert len(records) == 1
    assert records[0].shortcode == "abc123"
    assert records[0].click_count == 4
    query, params = conns[0].executed[0]
    assert query.startswith("SELECT value FROM shortmap_kv")
    assert params == ("shortmap_mappings",)
    assert conns[0].closed is True
    assert conns[0].autocommit is True


def test_get_all_missing_row_is_empty(connect):
    connect(results=[])
    assert DBStorage("fake").get_all() == []


def test_get_by_shortcode(connect):
    connect(results=[([ROW],)])
    assert DBStorage("fake").get_by_shortcode("abc123").target_url == "https://x.com"


def test_put_all_upserts_serialized_collection(connect):
    conns = connect()
    record = MappingRecord(shortcode="abc123", target_url="https://x.com", created_at=CREATED)
    DBStorage("fake", key="ns").put_all([record])
    query, params = conns[0].executed[0]
    assert "ON CONFLICT (key) DO UPDATE" in query
    assert params[0] == "ns"
    assert params[1].obj == [record.to_json()]


def test_clear_deletes_row(connect):
    conns = connect()
    DBStorage("fake").clear()
    assert conns[0].executed[0][0].startswith("DELETE FROM shortmap_kv")


def test_connect_error_becomes_storage_failure(monkeypatch):
    def _refuse(dsn):
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr("psycopg.connect", _refuse)
    with pytest.raises(StorageFailure):
        DBStorage("fake").get_all()


def test_write_error_becomes_storage_failure(connect):
    connect(fail_on="INSERT")
    with pytest.raises(StorageFailure, match="Failed to save"):
        DBStorage("fake").put_all([])


def test_transaction_reuses_one_connection_and_locks(connect):
    conns = connect(results=[([ROW],)])
    storage = DBStorage("fake")
    with storage.transaction():
        records = storage.get_all()
        records[0].click_count += 1
        storage.put_all(records)

    assert len(conns) == 1
    statements = [q for q, _ in conns[0].executed]
    assert "pg_advisory_xact_lock" in statements[0]
    assert statements[1].startswith("SELECT value")
    assert statements[2].startswith("INSERT INTO shortmap_kv")
    assert conns[0].committed == 1
    assert conns[0].closed is True


def test_transaction_rolls_back_on_error(connect):
    conns = connect(results=[([ROW],)])
    storage = DBStorage("fake")
    with pytest.raises(ShortcodeTaken):
        with storage.transaction():
            storage.get_all()
            raise ShortcodeTaken("taken")
    assert conns[0].rolled_back == 1
    assert conns[0].committed == 0


def test_nested_transaction_reuses_outer(connect):
    conns = connect()
    storage = DBStorage("fake")
    with storage.transaction():
        with storage.transaction():
            storage.put_all([])
    assert len(conns) == 1
    assert conns[0].committed == 1


def test_init_schema(connect):
    conns = connect()
    DBStorage("fake").init_schema()
    assert "CREATE TABLE IF NOT EXISTS shortmap_kv" in conns[0].executed[0][0]
