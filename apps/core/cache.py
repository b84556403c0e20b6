"""
TTL cache for reference data (customer lists, dumpster lists).

The cache is an explicit object owned by its caller, and time comes from an
injected clock so expiry can be tested without sleeping.
"""
import logging
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)

_MISSING = object()


class ReferenceDataCache:
    """
    Key/value cache where every entry expires ttl_seconds after it was set.

    Usage:
        cache = ReferenceDataCache(ttl_seconds=300)
        customers = cache.get('customers')
        if customers is None:
            customers = load_customers()
            cache.set('customers', customers)
    """

    def __init__(self, ttl_seconds: float, clock: Optional[Callable[[], float]] = None):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the cached value, or default when missing or expired."""
        entry = self._entries.get(key, _MISSING)
        if entry is _MISSING:
            return default

        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return default
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def invalidate(self, key: Hashable) -> bool:
        """Drop one entry. Returns True if something was removed."""
        removed = self._entries.pop(key, _MISSING) is not _MISSING
        if removed:
            logger.debug(f"Invalidated cached reference data: {key}")
        return removed

    def clear(self) -> None:
        self._entries.clear()

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Return the cached value or call loader and cache its result."""
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = loader()
            self.set(key, value)
        return value

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING
