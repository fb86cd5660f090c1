"""
Data model for shortmap.

`MappingRecord` is the only persisted entity: a shortcode pointing at a
target URL, with an optional expiry and a click counter. It serializes with
camelCase keys and ISO-8601 timestamps:

    {
        "shortcode": "abc123",
        "targetUrl": "https://example.com",
        "createdAt": "2026-10-18T12:00:00Z",
        "expiresAt": null,
        "clickCount": 0
    }

`shortcode` and `created_at` are frozen: assigning to them raises a
pydantic ValidationError. `click_count` is the only field the service mutates.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class MappingRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    shortcode: str = Field(frozen=True)
    target_url: str
    created_at: datetime = Field(frozen=True)
    expires_at: Optional[datetime] = None
    click_count: int = Field(default=0, ge=0)

    @field_validator("created_at", "expires_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Naive timestamps in stored data are treated as UTC.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_json(self) -> Dict[str, Any]:
        """Serialized form used for persistence and API responses."""
        return self.model_dump(mode="json", by_alias=True)


class MappingRequest(BaseModel):
    """One entry of a create request (single or batch)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    url: str
    shortcode: Optional[str] = None
    # Number of hours or a numeric string; validated by the service.
    expiry_hours: Optional[Any] = None


@dataclass
class BatchFailure:
    index: int
    error: str
    message: str = ""
    url: Any = None  # echoed as submitted, which may not be a string

    def as_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "error": self.error, "message": self.message, "url": self.url}


@dataclass
class BatchResult:
    """Outcome of a batch create: successes in input order plus indexed failures."""

    created: List[MappingRecord] = field(default_factory=list)
    failures: List[BatchFailure] = field(default_factory=list)


@dataclass
class MappingView:
    """A record annotated with its expiry status at lookup time."""

    record: MappingRecord
    expired: bool

    def as_dict(self) -> Dict[str, Any]:
        data = self.record.to_json()
        data["expired"] = self.expired
        return data


@dataclass(frozen=True)
class Statistics:
    total: int = 0
    active: int = 0
    expired: int = 0
    total_clicks: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "active": self.active,
            "expired": self.expired,
            "totalClicks": self.total_clicks,
        }


@dataclass(frozen=True)
class AdvancedStatistics:
    """Recency, click and expiry breakdown shown next to the basic counts."""

    recent: int = 0
    very_recent: int = 0
    most_clicked: Optional[MappingRecord] = None
    average_clicks: float = 0.0
    with_expiry: int = 0
    custom_shortcodes: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "recentUrls": self.recent,
            "veryRecentUrls": self.very_recent,
            "mostClicked": self.most_clicked.to_json() if self.most_clicked is not None else None,
            "averageClicks": self.average_clicks,
            "withExpiry": self.with_expiry,
            "customShortcodes": self.custom_shortcodes,
        }
