"""Expiring, size-bounded LRU cache with an optional durable tier.

The in-memory map is authoritative for the running process.  Every ``set``
is mirrored into a :class:`DurableStore` as a JSON document
``{"data": ..., "timestamp": <epoch-millis>, "ttl": <millis>}`` so a fresh
process can start warm from the previous session.  Lookups that miss in
memory fall back to the durable tier and re-populate memory on a hit.

Expiry is lazy: an entry is dropped when a read finds ``age >= ttl``.
"""

from __future__ import annotations

import json
import logging
import math
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from repo_metadata.domain.entities import CacheStats, StaleCheckResult
from repo_metadata.domain.exceptions import CacheCorruptionError
from repo_metadata.domain.ports.durable_store import DurableStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_NAMESPACE = "cache-"


@dataclass(frozen=True, slots=True)
class _CacheEntry(Generic[T]):
    data: T
    stored_at: float  # epoch seconds
    ttl: float  # seconds

    def age(self, now: float) -> float:
        return now - self.stored_at

    def is_expired(self, now: float) -> bool:
        return self.age(now) >= self.ttl


def _identity(value: Any) -> Any:
    return value


def _millis(value: Any, name: str) -> float:
    """Validate a stored millisecond quantity: finite, non-negative, not bool."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number")
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"{name} must be finite and non-negative")
    return value


class CacheService(Generic[T]):
    """Generic TTL + LRU cache.

    Parameters
    ----------
    max_size:
        Maximum number of in-memory entries; ``None`` means unbounded.
    store:
        Optional durable tier.  Entries are stored under ``namespace + key``.
    serializer / deserializer:
        Convert ``T`` to and from a JSON-compatible value for the durable
        tier.  The deserializer should raise ``ValueError``, ``KeyError`` or
        ``TypeError`` on malformed input; such entries are discarded.
    clock:
        Returns the current time in epoch seconds.  Injected by tests.
    """

    def __init__(
        self,
        *,
        max_size: int | None = None,
        store: DurableStore | None = None,
        serializer: Callable[[T], Any] = _identity,
        deserializer: Callable[[Any], T] = _identity,
        namespace: str = DEFAULT_NAMESPACE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_size is not None and max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._store = store
        self._serialize = serializer
        self._deserialize = deserializer
        self._namespace = namespace
        self._clock = clock
        # Insertion order doubles as access order: first item is the LRU one.
        self._entries: OrderedDict[str, _CacheEntry[T]] = OrderedDict()
        self._hits = 0
        self._misses = 0

    # ── Public API ──────────────────────────────────────────────────────

    def get(self, key: str) -> T | None:
        """Return the cached value, or ``None`` on a miss or expiry."""
        entry = self._lookup(key, self._clock())
        if entry is None:
            self._misses += 1
            return None
        self._hits += 1
        self._entries.move_to_end(key)
        return entry.data

    def set(self, key: str, value: T, ttl: float) -> None:
        """Insert or replace *key*, evicting the LRU entry when full."""
        entry = _CacheEntry(data=value, stored_at=self._clock(), ttl=ttl)
        self._remember(key, entry)
        self._persist(key, entry)

    def invalidate(self, key: str) -> None:
        """Remove *key* from memory and from the durable tier."""
        self._entries.pop(key, None)
        self._delete_durable(key)

    def clear(self) -> None:
        """Drop every entry in both tiers and reset the hit/miss counters."""
        self._entries.clear()
        if self._store is not None:
            for stored_key in list(self._store.keys()):
                if stored_key.startswith(self._namespace):
                    self._store.delete(stored_key)
        self._hits = 0
        self._misses = 0

    def purge_expired(self) -> int:
        """Drop expired and corrupt entries from both tiers.

        Run at startup; otherwise a durable entry is only removed when its
        key is read again.  Returns the number of durable entries deleted.
        """
        now = self._clock()
        for key in [k for k, e in self._entries.items() if e.is_expired(now)]:
            del self._entries[key]
        if self._store is None:
            return 0

        try:
            stored_keys = [k for k in self._store.keys() if k.startswith(self._namespace)]
        except OSError:
            logger.warning("Could not list durable cache entries", exc_info=True)
            return 0

        removed = 0
        for stored_key in stored_keys:
            key = stored_key[len(self._namespace) :]
            entry = self._load_durable(key)
            if entry is None or entry.is_expired(now):
                self._delete_durable(key)
                removed += 1
        if removed:
            logger.info("Purged %d expired cache entries", removed)
        return removed

    def get_with_stale_check(self, key: str, stale_window: float) -> StaleCheckResult[T]:
        """Stale-while-revalidate lookup.

        * absent or expired → ``(None, False, True)``; the entry is invalidated
        * ``age > ttl - stale_window`` → ``(data, True, True)``
        * otherwise → ``(data, False, False)``
        """
        now = self._clock()
        entry = self._lookup(key, now)
        if entry is None:
            self._misses += 1
            return StaleCheckResult(data=None, is_stale=False, should_revalidate=True)

        self._hits += 1
        self._entries.move_to_end(key)
        is_stale = entry.age(now) > entry.ttl - stale_window
        return StaleCheckResult(data=entry.data, is_stale=is_stale, should_revalidate=is_stale)

    def stats(self) -> CacheStats:
        return CacheStats(
            entry_count=len(self._entries),
            hit_count=self._hits,
            miss_count=self._misses,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        """Fresh in-memory membership test; does not touch stats or LRU order."""
        entry = self._entries.get(key)  # type: ignore[call-overload]
        return entry is not None and not entry.is_expired(self._clock())

    # ── Lookup ──────────────────────────────────────────────────────────

    def _lookup(self, key: str, now: float) -> _CacheEntry[T] | None:
        """Find a live entry in memory, then in the durable tier."""
        entry = self._entries.get(key)
        if entry is not None:
            if not entry.is_expired(now):
                return entry
            self.invalidate(key)
            return None

        entry = self._load_durable(key)
        if entry is None:
            return None
        if entry.is_expired(now):
            self._delete_durable(key)
            return None
        self._remember(key, entry)
        return entry

    def _remember(self, key: str, entry: _CacheEntry[T]) -> None:
        if (
            self._max_size is not None
            and key not in self._entries
            and len(self._entries) >= self._max_size
        ):
            self._evict_lru()
        self._entries[key] = entry
        self._entries.move_to_end(key)

    def _evict_lru(self) -> None:
        lru_key = next(iter(self._entries))
        logger.debug("Evicting least-recently-used cache entry %s", lru_key)
        self.invalidate(lru_key)

    # ── Durable tier ────────────────────────────────────────────────────

    def _persist(self, key: str, entry: _CacheEntry[T]) -> None:
        if self._store is None:
            return
        document = json.dumps(
            {
                "data": self._serialize(entry.data),
                "timestamp": int(entry.stored_at * 1000),
                "ttl": int(entry.ttl * 1000),
            }
        )
        try:
            self._store.set(self._namespace + key, document)
        except OSError:
            logger.warning("Could not persist cache entry %s", key, exc_info=True)

    def _load_durable(self, key: str) -> _CacheEntry[T] | None:
        if self._store is None:
            return None
        try:
            text = self._store.get(self._namespace + key)
        except OSError:
            logger.warning("Could not read durable cache entry %s", key, exc_info=True)
            return None
        if text is None:
            return None

        try:
            return self._decode(text)
        except CacheCorruptionError as exc:
            logger.debug("Discarding corrupt cache entry %s: %s", key, exc)
            self._delete_durable(key)
            return None

    def _decode(self, text: str) -> _CacheEntry[T]:
        try:
            document = json.loads(text)
            timestamp = _millis(document["timestamp"], "timestamp")
            ttl = _millis(document["ttl"], "ttl")
            data = self._deserialize(document["data"])
        except (ValueError, KeyError, TypeError) as exc:
            raise CacheCorruptionError(str(exc)) from exc
        return _CacheEntry(data=data, stored_at=timestamp / 1000, ttl=ttl / 1000)

    def _delete_durable(self, key: str) -> None:
        if self._store is None:
            return
        try:
            self._store.delete(self._namespace + key)
        except OSError:
            logger.warning("Could not delete durable cache entry %s", key, exc_info=True)
