"""
Statistics and export for shortmap.

Responsibilities:
    - Aggregate counts over the stored mappings (total, active, expired, clicks)
    - Break the collection down by recency, clicks, expiry and code origin
    - Build the JSON export document for backups and reporting

Both are read-only views computed from a record snapshot and one `now`
timestamp, so every record in a result is judged against the same instant.

Export document:
    {
        "exportDate": "2026-10-18T12:00:00Z",
        "statistics": {"total": 2, "active": 1, "expired": 1, "totalClicks": 7},
        "urls": [
            {
                "shortcode": "abc123",
                "targetUrl": "https://example.com",
                "createdAt": "...",
                "expiresAt": null,
                "clickCount": 7,
                "shortUrl": "https://sho.rt/abc123",
                "status": "active"
            },
            ...
        ]
    }
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List

from pydantic import TypeAdapter

from ..models import AdvancedStatistics, MappingRecord, Statistics

RECENT_WINDOW = timedelta(days=30)
VERY_RECENT_WINDOW = timedelta(days=7)

_TIMESTAMP = TypeAdapter(datetime)


def record_is_expired(record: MappingRecord, now: datetime) -> bool:
    """True once `now` is past the record's expiry; records without one never expire."""
    return record.expires_at is not None and now > record.expires_at


def compute_statistics(records: Iterable[MappingRecord], now: datetime) -> Statistics:
    total = expired = clicks = 0
    for record in records:
        total += 1
        clicks += record.click_count
        if record_is_expired(record, now):
            expired += 1
    return Statistics(total=total, active=total - expired, expired=expired, total_clicks=clicks)


def compute_advanced_statistics(
    records: Iterable[MappingRecord], now: datetime, generated_length: int = 6
) -> AdvancedStatistics:
    """
    Recency and click breakdown of the collection at `now`.

    Rules:
        - "recent" and "very recent" count records created strictly within
          the last 30 and 7 days.
        - The most clicked record is the first one holding the maximum count;
          an empty collection has none and averages 0.0 clicks.
        - Shortcodes longer than `generated_length` count as custom, since
          generated codes are padded to exactly that length.
    """
    records = list(records)
    if not records:
        return AdvancedStatistics()
    return AdvancedStatistics(
        recent=sum(1 for r in records if r.created_at > now - RECENT_WINDOW),
        very_recent=sum(1 for r in records if r.created_at > now - VERY_RECENT_WINDOW),
        most_clicked=max(records, key=lambda r: r.click_count),
        average_clicks=round(sum(r.click_count for r in records) / len(records), 2),
        with_expiry=sum(1 for r in records if r.expires_at is not None),
        custom_shortcodes=sum(1 for r in records if len(r.shortcode) > generated_length),
    )


def short_url_for(base_origin: str, shortcode: str) -> str:
    """Resolve a shortcode against a base origin such as "https://sho.rt/"."""
    return f"{base_origin.rstrip('/')}/{shortcode}"


def build_export(records: List[MappingRecord], now: datetime, base_origin: str) -> Dict[str, Any]:
    urls = []
    for record in records:
        entry = record.to_json()
        entry["shortUrl"] = short_url_for(base_origin, record.shortcode)
        entry["status"] = "expired" if record_is_expired(record, now) else "active"
        urls.append(entry)
    return {
        "exportDate": _TIMESTAMP.dump_python(now, mode="json"),
        "statistics": compute_statistics(records, now).as_dict(),
        "urls": urls,
    }
