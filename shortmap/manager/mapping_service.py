"""
MappingService module for shortmap.

Responsibilities:
    - Validate target URLs, custom shortcodes and expiry periods
    - Resolve shortcodes (custom or generated) and keep them unique
    - Create mappings singly or in batches with partial-success reporting
    - Gate click accounting on expiry
    - Delete, clean up, aggregate and export mappings

Design notes:
    - Stateless: the service owns no data. Everything lives in the injected
      storage, so a service can be built per request.
    - Inputs are validated before the store is touched; validation errors
      never leave a partial write behind.
    - Every read-modify-write runs inside `storage.transaction()`, so the
      uniqueness check and the commit cannot interleave with another writer.
    - Records handed out are copies. If `put_all` fails, the caller gets a
      StorageFailure and the store still holds the previous collection.
    - Expiry is evaluated on every read against the injected clock and is
      never cached.

LLM Prompt Example:
    "Explain why the existence check for a custom shortcode and the write of
    the new collection must share one critical section when the store only
    supports whole-collection replacement."
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..analytics.statistics import build_export, compute_advanced_statistics, compute_statistics, record_is_expired
from ..config import settings
from ..errors import InvalidPeriod, InvalidShortcode, InvalidUrl, MappingError, ShortcodeTaken
from ..models import (
    AdvancedStatistics,
    BatchFailure,
    BatchResult,
    MappingRecord,
    MappingRequest,
    MappingView,
    Statistics,
)
from ..storage.base import BaseStorage
from . import validators
from .strategies import BaseStrategy, generate_unique_shortcode, get_strategy_from_config

log = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MappingService:
    """
    Business rules for shortcode mappings on top of a storage backend.
    """

    def __init__(
        self,
        storage: BaseStorage,
        clock: Optional[Clock] = None,
        strategy: Optional[BaseStrategy] = None,
        code_length: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ):
        """
        Args:
            storage (BaseStorage): Backend holding the mapping collection.
            clock (Optional[Clock]): Returns the current aware datetime; defaults to UTC now.
            strategy (Optional[BaseStrategy]): Shortcode generator; defaults to the configured one.
            code_length (Optional[int]): Length of generated shortcodes (default 6).
            max_attempts (Optional[int]): Retry cap for unique generation (default 1000).
        """
        self.storage = storage
        self.clock = clock or utcnow
        self.strategy = strategy or get_strategy_from_config()
        self.code_length = code_length or settings.CODE_LENGTH
        self.max_attempts = max_attempts or settings.MAX_ATTEMPTS

    # ---------------------------------------------------------------------
    # Generation / Validation Helpers
    # ---------------------------------------------------------------------
    def generate_unique_shortcode(self, existing: Iterable[str]) -> str:
        """
        Generate a shortcode absent from `existing`.

        Raises:
            ShortcodeSpaceExhausted: If the retry cap is reached.
        """
        taken = existing if isinstance(existing, (set, frozenset)) else set(existing)
        return generate_unique_shortcode(
            taken, length=self.code_length, max_attempts=self.max_attempts, strategy=self.strategy
        )

    validate_shortcode = staticmethod(validators.validate_shortcode)
    validate_url = staticmethod(validators.validate_url)
    validate_period_hours = staticmethod(validators.validate_period_hours)

    def is_expired(self, record: MappingRecord, now: Optional[datetime] = None) -> bool:
        """True when the record has an expiry and the current time is past it."""
        return record_is_expired(record, now or self.clock())

    def _check_inputs(
        self, target_url: Any, custom_shortcode: Any, expiry_hours: Any
    ) -> Tuple[str, Optional[str], Optional[float]]:
        """
        Validate and normalize create inputs without touching storage.

        Raises:
            InvalidUrl, InvalidShortcode, InvalidPeriod: In that order of precedence.
        """
        if not validators.validate_url(target_url):
            log.warning("Validation failed for url: %r", _truncate(target_url))
            raise InvalidUrl(f"Invalid URL: {_truncate(target_url)!r}")
        url = validators.normalize_url(target_url)

        code = custom_shortcode.strip() if isinstance(custom_shortcode, str) else custom_shortcode
        if code is None or code == "":
            code = None
        elif not validators.validate_shortcode(code):
            log.warning("Validation failed for shortcode: %r", _truncate(code))
            raise InvalidShortcode("Shortcode must be 3-20 letters or digits")

        try:
            hours = validators.parse_period_hours(expiry_hours)
        except ValueError as exc:
            log.warning("Validation failed for expiry period: %r", expiry_hours)
            raise InvalidPeriod(str(exc)) from exc
        return url, code, hours

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    def create_mapping(
        self,
        target_url: str,
        custom_shortcode: Optional[str] = None,
        expiry_hours: Union[float, str, None] = None,
    ) -> MappingRecord:
        """
        Create a mapping for a target URL.

        Rules:
            - URL must be absolute http/https once "https://" is prepended
              to scheme-less input; the normalized form is stored.
            - A custom shortcode must match ^[A-Za-z0-9]{3,20}$ and be unused.
            - Without a custom shortcode one is generated against the full
              current key set.
            - An expiry period, when given, is in (0, 8760] hours.

        Returns:
            MappingRecord: Copy of the stored record.

        Raises:
            InvalidUrl, InvalidShortcode, InvalidPeriod: Bad input (store untouched).
            ShortcodeTaken: The custom shortcode already exists.
            ShortcodeSpaceExhausted: No free code found within the retry cap.
            StorageFailure: The updated collection could not be persisted.
        """
        url, code, hours = self._check_inputs(target_url, custom_shortcode, expiry_hours)
        custom = code is not None

        with self.storage.transaction():
            records = self.storage.get_all()
            existing = {record.shortcode for record in records}
            if code is not None:
                if code in existing:
                    log.warning("Shortcode %r is already in use", code)
                    raise ShortcodeTaken(f'Shortcode "{code}" is already in use. Please choose a different one.')
            else:
                code = self.generate_unique_shortcode(existing)

            now = self.clock()
            record = MappingRecord(
                shortcode=code,
                target_url=url,
                created_at=now,
                expires_at=now + timedelta(hours=hours) if hours is not None else None,
                click_count=0,
            )
            self.storage.put_all(records + [record])

        log.info(
            "URL shortened: %s -> %s (custom=%s, expires=%s)",
            record.shortcode, record.target_url, custom, record.expires_at,
        )
        return record.model_copy(deep=True)

    def create_mappings(self, requests: Iterable[Union[MappingRequest, Mapping]]) -> BatchResult:
        """
        Create several mappings, one at a time, in input order.

        A failing request is recorded in `failures` with its original index
        and error code; processing continues with the next request.
        """
        result = BatchResult()
        for index, request in enumerate(requests):
            url, shortcode, expiry_hours = _request_fields(request)
            try:
                record = self.create_mapping(url, shortcode, expiry_hours)
            except MappingError as exc:
                result.failures.append(BatchFailure(index=index, error=exc.code, message=str(exc), url=url))
                continue
            result.created.append(record)
        log.info("Batch create: %d created, %d failed", len(result.created), len(result.failures))
        return result

    def record_access(self, shortcode: str) -> bool:
        """
        Count one click on a mapping.

        Returns:
            bool: False (and no write) if the shortcode is unknown or the
            mapping has expired, else True after incrementing and persisting.

        Raises:
            StorageFailure: The incremented collection could not be persisted.
        """
        with self.storage.transaction():
            records = self.storage.get_all()
            target = next((record for record in records if record.shortcode == shortcode), None)
            if target is None:
                log.info("URL access failed: %s not found", shortcode)
                return False
            if self.is_expired(target):
                log.info("URL access failed: %s expired at %s", shortcode, target.expires_at)
                return False
            target.click_count += 1
            self.storage.put_all(records)
        log.info("URL access successful: %s -> %s", shortcode, target.target_url)
        return True

    def get_mapping(self, shortcode: str) -> Optional[MappingView]:
        record = self.storage.get_by_shortcode(shortcode)
        if record is None:
            return None
        return MappingView(record=record, expired=self.is_expired(record))

    def list_mappings(self) -> List[MappingView]:
        now = self.clock()
        return [MappingView(record=r, expired=self.is_expired(r, now)) for r in self.storage.get_all()]

    def delete_mapping(self, shortcode: str) -> bool:
        """Remove a mapping. Returns whether it existed."""
        with self.storage.transaction():
            records = self.storage.get_all()
            remaining = [record for record in records if record.shortcode != shortcode]
            if len(remaining) == len(records):
                return False
            self.storage.put_all(remaining)
        log.info("Mapping deleted: %s", shortcode)
        return True

    def cleanup_expired(self) -> int:
        """Remove every expired mapping and return how many were removed."""
        with self.storage.transaction():
            now = self.clock()
            records = self.storage.get_all()
            active = [record for record in records if not self.is_expired(record, now)]
            removed = len(records) - len(active)
            if removed:
                self.storage.put_all(active)
        log.info("Cleanup removed %d expired mapping(s)", removed)
        return removed

    def clear_all(self) -> None:
        with self.storage.transaction():
            self.storage.clear()
        log.info("All mappings cleared")

    def compute_statistics(self) -> Statistics:
        return compute_statistics(self.storage.get_all(), self.clock())

    def compute_advanced_statistics(self) -> AdvancedStatistics:
        """Recency, click and expiry breakdown; custom codes are those longer than `code_length`."""
        return compute_advanced_statistics(self.storage.get_all(), self.clock(), generated_length=self.code_length)

    def export_mappings(self, base_origin: str) -> Dict[str, Any]:
        """Build the export document; short URLs are resolved against `base_origin`."""
        return build_export(self.storage.get_all(), self.clock(), base_origin)


def _request_fields(request: Union[MappingRequest, Mapping]) -> Tuple[Any, Any, Any]:
    if isinstance(request, MappingRequest):
        return request.url, request.shortcode, request.expiry_hours
    if isinstance(request, Mapping):
        hours = request.get("expiryHours", request.get("expiry_hours"))
        return request.get("url"), request.get("shortcode"), hours
    raise TypeError(f"Unsupported request type: {type(request).__name__}")


def _truncate(value: Any, limit: int = 100) -> Any:
    return value[:limit] if isinstance(value, str) else value
