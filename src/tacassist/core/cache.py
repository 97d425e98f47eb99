"""
Suggestion Caching

Caches provider results in memory with an expiration instant per entry.
Expired entries are purged lazily when read.

Cache policies:
- None or "indefinite": never expires
- int: lifetime in milliseconds
- "minute" / "hour" / "day": expires at the start of the next UTC
  minute / hour / day
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from .dispatch import split_pattern

logger = logging.getLogger(__name__)

CachePolicy = int | str | None
Clock = Callable[[], datetime]

BOUNDARY_POLICIES = ("minute", "hour", "day")


def utc_now() -> datetime:
    return datetime.now(UTC)


def expiry_for(policy: CachePolicy, now: datetime) -> datetime | None:
    """
    Compute the expiration instant for a policy.

    Args:
        policy: Cache policy (see module docstring)
        now: Time the entry is written

    Returns:
        Expiration instant, or None for entries that never expire

    Raises:
        ValueError: If the policy is not recognised
    """
    if policy is None or policy == "indefinite":
        return None
    if isinstance(policy, bool):
        raise ValueError(f"Invalid cache policy: {policy!r}")
    if isinstance(policy, int):
        if policy < 0:
            raise ValueError(f"Cache lifetime must be >= 0 ms, got {policy}")
        return now + timedelta(milliseconds=policy)
    if policy == "minute":
        return now.replace(second=0, microsecond=0) + timedelta(minutes=1)
    if policy == "hour":
        return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    if policy == "day":
        return now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
    raise ValueError(f"Invalid cache policy: {policy!r}")


def cache_key(registration_key: str, token_type: str, by_pattern: bool) -> str:
    """
    Derive the cache key for a provider registration and a concrete token type.

    Pattern registrations keep their first three segments so that a
    ``sa.*.*.weather`` provider caches per token type; named registrations use
    the name.
    """
    if by_pattern:
        code, standard, lang, _ = split_pattern(registration_key)
        return f"{code}.{standard}.{lang}.{token_type}"
    return f"{registration_key}.{token_type}"


@dataclass
class CacheEntry:
    """Cached data plus its expiration instant (None: never expires)."""

    data: Any
    expires_at: datetime | None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class SuggestionCache:
    """In-memory provider result cache. Last writer wins."""

    def __init__(self, clock: Clock | None = None):
        """
        Initialize the cache.

        Args:
            clock: Returns the current time; injectable for tests
        """
        self.clock = clock or utc_now
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Any | None:
        """
        Get cached data for a key.

        Returns:
            Cached data if present and not expired, None otherwise
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self.clock()):
            del self._entries[key]
            logger.debug("Cache entry '%s' expired", key)
            return None
        logger.debug("Cache hit for '%s'", key)
        return entry.data

    def set(self, key: str, data: Any, policy: CachePolicy) -> CacheEntry:
        """Store data under a key with the given policy."""
        entry = CacheEntry(data=data, expires_at=expiry_for(policy, self.clock()))
        self._entries[key] = entry
        return entry

    def entry(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
