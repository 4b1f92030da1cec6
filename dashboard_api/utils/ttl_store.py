"""
Trade Dashboard - In-process TTL state

Small keyed stores with expiry checked on access (no background sweeps).
Writes also purge expired keys, at most once per TTL, so keys that are
never read again do not accumulate.

Used for the broker passthrough response cache and the contact form
rate limiter.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

T = TypeVar('T')


class TTLStore(Generic[T]):
    """Map of key -> (value, expires_at); expired entries are evicted on read."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[T, float]] = {}
        self._next_purge = clock() + ttl_seconds

    def get(self, key: str) -> Optional[T]:
        """Get value if present and not expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: T, ttl_seconds: Optional[float] = None) -> None:
        """Store value; expires after ttl_seconds (store default if omitted)."""
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        now = self._clock()
        self._purge_expired(now)
        self._entries[key] = (value, now + ttl)

    def _purge_expired(self, now: float) -> None:
        if now < self._next_purge:
            return
        self._next_purge = now + self.ttl_seconds
        for key in [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]:
            del self._entries[key]

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """
    Per-key request counter over a fixed window.

    The first hit opens a window of `window_seconds`; up to `max_hits`
    requests pass inside it, later ones are rejected until it expires.
    """

    def __init__(
        self,
        max_hits: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic
    ):
        self.max_hits = max_hits
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._next_purge = clock() + window_seconds

    def allow(self, key: str) -> bool:
        """Record a hit for key; False if the key is over its limit."""
        now = self._clock()
        self._purge_expired(now)
        window = self._windows.get(key)

        if window is None or now > window.reset_at:
            self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
            return True

        if window.count >= self.max_hits:
            return False

        window.count += 1
        return True

    def _purge_expired(self, now: float) -> None:
        if now < self._next_purge:
            return
        self._next_purge = now + self.window_seconds
        for key in [k for k, w in self._windows.items() if now > w.reset_at]:
            del self._windows[key]

    def retry_after(self, key: str) -> float:
        """Seconds until key's current window resets (0 if none is open)."""
        window = self._windows.get(key)
        if window is None:
            return 0.0
        return max(0.0, window.reset_at - self._clock())

    def reset(self) -> None:
        self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)


def cache_key(url: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Build a stable cache key from a URL and its non-empty query params."""
    if not params:
        return url
    parts = [f"{k}={params[k]}" for k in sorted(params) if params[k] is not None]
    return f"{url}?{'&'.join(parts)}"
