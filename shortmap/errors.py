"""
Error taxonomy for shortmap.

Every error raised by the mapping service derives from `MappingError` and
carries a stable `code` string. Batch creation reports failures by that code,
and the HTTP layer maps codes to status codes.

Validation errors (`InvalidUrl`, `InvalidShortcode`, `ShortcodeTaken`,
`InvalidPeriod`) are raised before any mutation and also subclass
`ValueError`, so callers that only care about "bad input" can catch that.

Example:
    >>> from shortmap.errors import ShortcodeTaken
    >>> raise ShortcodeTaken('Shortcode "abc123" is already in use')
    Traceback (most recent call last):
        ...
    shortmap.errors.ShortcodeTaken: Shortcode "abc123" is already in use
"""


class MappingError(Exception):
    """Base class for mapping errors."""

    code = "MappingError"


class InvalidUrl(MappingError, ValueError):
    """The target URL is not an absolute http/https URL."""

    code = "InvalidUrl"


class InvalidShortcode(MappingError, ValueError):
    """A custom shortcode does not match ^[A-Za-z0-9]{3,20}$."""

    code = "InvalidShortcode"


class ShortcodeTaken(MappingError, ValueError):
    """A custom shortcode is already used by a stored record."""

    code = "ShortcodeTaken"


class InvalidPeriod(MappingError, ValueError):
    """The expiry period is not a number in (0, 8760] hours."""

    code = "InvalidPeriod"


class ShortcodeSpaceExhausted(MappingError):
    """No free shortcode was found within the retry cap."""

    code = "ShortcodeSpaceExhausted"


class StorageFailure(MappingError):
    """Persisting or loading the mapping collection failed.

    e.g. quota exceeded, disk full, connection lost, corrupt data file.
    """

    code = "StorageFailure"


class NotFound(MappingError):
    """No record exists for the requested shortcode."""

    code = "NotFound"
