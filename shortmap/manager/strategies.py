"""
Strategies for shortcode generation in shortmap.

Provided strategies:
- RandomStrategy: Random Base62 code of length L (default 6)
- SequentialStrategy: monotonically increasing integer -> Base62, left-padded to a minimum length

Common helpers:
- _base62_encode / _base62_decode: Non-negative integer <-> Base62 string
- _safe_len: Resolve/normalize desired code length from argument/config (clamped to [3, 20])
- generate_unique_shortcode: draw from a strategy until the code is unused, with a retry cap

Configuration (via shortmap.config.settings):
- CODE_STRATEGY: "random" (default) or "sequential"
- CODE_LENGTH: Default length (default 6; clamped 3..20)
- MAX_ATTEMPTS: Retry cap for unique generation (default 1000)
- SEQ_START: Starting integer for SequentialStrategy (default 3_500_000)

Notes:
- Shortcodes are convenience identifiers, not access tokens. RandomStrategy
  uses SystemRandom to keep codes hard to enumerate, nothing more.
- SequentialStrategy resumes from the stored key set: before drawing, the
  counter is moved past the largest stored code it could have produced, so a
  restarted process does not walk through codes already in use.
"""

import logging
import random
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Optional, Type

from shortmap.config import settings
from shortmap.errors import ShortcodeSpaceExhausted

log = logging.getLogger(__name__)

_BASE62_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
_BASE62_BASE = len(_BASE62_ALPHABET)
_BASE62_INDEX = {ch: i for i, ch in enumerate(_BASE62_ALPHABET)}
_MAX_CODE_VALUE = _BASE62_BASE ** 20 - 1


def _base62_encode(num: int) -> str:
    """
    Convert a non-negative integer to a Base62 string using the global alphabet.
    0 -> "0", 61 -> "Z", 62 -> "10"
    """
    if num < 0:
        raise ValueError("num must be non-negative")
    if num == 0:
        return "0"
    out = []
    while num > 0:
        num, rem = divmod(num, _BASE62_BASE)
        out.append(_BASE62_ALPHABET[rem])
    return "".join(reversed(out))


def _base62_decode(code: str) -> Optional[int]:
    """Inverse of `_base62_encode`; None if `code` holds a non-Base62 character."""
    num = 0
    for ch in code:
        digit = _BASE62_INDEX.get(ch)
        if digit is None:
            return None
        num = num * _BASE62_BASE + digit
    return num


def _safe_len(length: Optional[int]) -> int:
    """Resolve desired code length from arg or config, clamped to [3, 20]."""
    L = int(length) if length is not None else int(settings.CODE_LENGTH)
    return max(3, min(20, L))


class BaseStrategy(ABC):
    """Abstract base for code generation strategies."""

    @abstractmethod
    def generate(self, *, length: Optional[int] = None) -> str:  # pragma: no cover
        """Produce one candidate shortcode. Uniqueness is the caller's job."""
        raise NotImplementedError

    def resume(self, existing: AbstractSet[str]) -> None:
        """Hook called with the stored key set before drawing. Stateless strategies ignore it."""


@dataclass(frozen=True)
class RandomStrategy(BaseStrategy):
    """Random Base62 codes; uniqueness comes from retrying against the stored key set."""

    def generate(self, *, length: Optional[int] = None) -> str:
        L = _safe_len(length)
        rng = random.SystemRandom()
        return "".join(rng.choice(_BASE62_ALPHABET) for _ in range(L))


@dataclass
class SequentialStrategy(BaseStrategy):
    """
    Counter-based strategy:
    - Keeps a monotonically increasing counter, starting at `start`
    - Encodes the next integer to Base62
    - Enforces a minimum visible length via left-padding (e.g., "00eFgH")

    The requested length acts as the minimum; codes grow naturally once the
    counter exceeds 62^L - 1. `resume` moves the counter past the largest
    stored code, so the sequence survives restarts and per-request services.
    """

    start: int = 3_500_000
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)
    _next: int = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        self._next = self.start

    def resume(self, existing: AbstractSet[str]) -> None:
        highest = -1
        for code in existing:
            n = _base62_decode(code)
            # 20 x "Z" has no successor within the shortcode length limit
            if n is not None and highest < n < _MAX_CODE_VALUE:
                highest = n
        with self._lock:
            if highest >= self._next:
                log.debug("Sequential counter resumed at %d", highest + 1)
                self._next = highest + 1

    def generate(self, *, length: Optional[int] = None) -> str:
        with self._lock:
            n = self._next
            self._next += 1
        return _base62_encode(n).rjust(_safe_len(length), "0")


# Strategy registry and factory
STRATEGY_REGISTRY: Dict[str, Type[BaseStrategy]] = {
    "random": RandomStrategy,
    "rand": RandomStrategy,
    "sequential": SequentialStrategy,
    "seq": SequentialStrategy,
}


def get_strategy_from_config(name: Optional[str] = None) -> BaseStrategy:
    """
    Resolve the active strategy from parameter or settings.CODE_STRATEGY.
    Unknown names fall back to RandomStrategy.
    """
    key = (name or settings.CODE_STRATEGY or "random").strip().lower()
    cls = STRATEGY_REGISTRY.get(key)
    if cls is None:
        log.warning("Unknown code strategy %r, using random", key)
        cls = RandomStrategy
    log.debug("Using code strategy: %s -> %s", key, cls.__name__)

    if cls is SequentialStrategy:
        return SequentialStrategy(start=int(settings.SEQ_START))
    return cls()


def generate_unique_shortcode(
    existing: AbstractSet[str],
    length: int = 6,
    max_attempts: int = 1000,
    strategy: Optional[BaseStrategy] = None,
) -> str:
    """
    Draw candidates until one is absent from `existing`.
    The strategy is first shown `existing` so stateful ones can resume.

    With 62^6 possible codes a collision per draw is negligible, so the cap
    only trips on a tiny or saturated code space.

    Raises:
        ShortcodeSpaceExhausted: If `max_attempts` draws all collide.
    """
    strategy = strategy or RandomStrategy()
    strategy.resume(existing)
    for _ in range(max_attempts):
        candidate = strategy.generate(length=length)
        if candidate not in existing:
            return candidate
    log.error("No free shortcode after %d attempts (%d codes in use)", max_attempts, len(existing))
    raise ShortcodeSpaceExhausted(f"Could not find a free shortcode after {max_attempts} attempts")
