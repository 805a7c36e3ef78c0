# portfolio_tracker/services/prices/cache.py
"""
TTL cache for price quotes.

One entry per (identifier_type, identifier, currency). An entry is served
while now < expires_at and evicted by the first read at or after that
instant; there is no negative caching, so a failed lookup never creates
an entry.

Thread Safety:
    All check/evict/insert sequences run under one threading.Lock, so a
    reader can't evict an entry that a concurrent writer just refreshed.
"""

import logging
import threading
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from portfolio_tracker.models import IdentifierType
from portfolio_tracker.services.constants import PRICE_CACHE_MAX_SIZE, PRICE_CACHE_TTL_SECONDS
from portfolio_tracker.services.prices.types import CacheEntry, PriceData

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PriceCache:
    """
    Thread-safe TTL cache with an optional LRU size bound.

    Cache key format: "{identifier_type}:{identifier}:{currency}"

    Memory Safety:
        With max_size set, inserting into a full cache evicts the least
        recently used entry. max_size=None disables the bound.
    """

    def __init__(
            self,
            ttl_seconds: int = PRICE_CACHE_TTL_SECONDS,
            max_size: int | None = PRICE_CACHE_MAX_SIZE,
            clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            ttl_seconds: Lifetime of an entry (default 15 minutes)
            max_size: Maximum number of entries (None = unbounded)
            clock: Time source returning aware datetimes (injectable for tests)
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_size is not None and max_size < 1:
            raise ValueError("max_size must be at least 1")

        self._cache: OrderedDict[str, CacheEntry] = OrderedDict()
        self._ttl = timedelta(seconds=ttl_seconds)
        self._max_size = max_size
        self._clock = clock
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @staticmethod
    def make_key(identifier: str, identifier_type: IdentifierType, currency: str) -> str:
        return f"{identifier_type.value}:{identifier}:{currency.upper()}"

    def get(
            self,
            identifier: str,
            identifier_type: IdentifierType,
            currency: str,
    ) -> PriceData | None:
        """
        Return the cached quote, or None if absent or expired.

        An expired entry is removed as part of the same locked read.
        """
        key = self.make_key(identifier, identifier_type, currency)

        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                logger.debug(f"Price cache miss for {key}")
                return None

            if entry.is_expired(self._clock()):
                del self._cache[key]
                self._misses += 1
                self._evictions += 1
                logger.debug(f"Price cache expired for {key}")
                return None

            self._cache.move_to_end(key)
            self._hits += 1
            logger.debug(f"Price cache hit for {key}")
            return entry.data

    def set(
            self,
            identifier: str,
            identifier_type: IdentifierType,
            currency: str,
            data: PriceData,
            ttl_seconds: int | None = None,
    ) -> CacheEntry:
        """
        Store a quote, replacing any previous entry for the key.

        Args:
            ttl_seconds: Override the cache TTL for this entry
        """
        key = self.make_key(identifier, identifier_type, currency)
        ttl = self._ttl if ttl_seconds is None else timedelta(seconds=ttl_seconds)

        with self._lock:
            now = self._clock()
            entry = CacheEntry(data=data, fetched_at=now, expires_at=now + ttl)

            if key in self._cache:
                del self._cache[key]
            while self._max_size is not None and len(self._cache) >= self._max_size:
                oldest_key, _ = self._cache.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Price cache evicted {oldest_key} (LRU)")
            self._cache[key] = entry

        logger.debug(f"Cached price for {key} until {entry.expires_at.isoformat()}")
        return entry

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.debug(f"Cleared {count} price cache entries")

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._cache),
                "max_size": self._max_size,
                "ttl_seconds": int(self._ttl.total_seconds()),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }
