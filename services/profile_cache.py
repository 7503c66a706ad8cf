"""
Time-bounded profile cache in front of the remote profile store.

All profile reads funnel through ``ProfileCache.get_profile``. Entries live for
``ttl_seconds`` (1 hour by default) and are evicted lazily on the next access.
"Not found" results are cached too (as a None tombstone) so repeated lookups of
unlinked users don't hammer the store. Remote failures are never cached.

Concurrent misses for the same Discord id share a single in-flight fetch. A
per-key generation counter makes ``invalidate`` win over a fetch that was
already running: that fetch still answers its waiters but doesn't repopulate
the cache.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from utils.errors import RemoteUnavailableError
from utils.logging import get_logger
from utils.types import Profile

from .profile_client import ProfileStore

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 3600


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Profile | None  # None is the "not found" tombstone
    expires_at: float


class ProfileCache:
    """Read-through cache of profiles keyed by Discord id."""

    def __init__(
        self,
        client: ProfileStore,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._inflight: dict[str, asyncio.Future[Profile | None]] = {}
        self._generations: dict[str, int] = {}

        self._hits = 0
        self._misses = 0
        self._coalesced = 0
        self._failures = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    async def get_profile(self, discord_id: str | int) -> Profile | None:
        """
        Return the profile for ``discord_id``, fetching it on a miss.

        Returns:
            The profile, or None if the store has no row for this id.

        Raises:
            RemoteUnavailableError: The store failed and nothing fresh was cached.
        """
        key = str(discord_id)

        entry = self._entries.get(key)
        if entry is not None:
            if entry.expires_at > self._clock():
                self._hits += 1
                return entry.value
            del self._entries[key]

        fetch = self._inflight.get(key)
        if fetch is None:
            fetch = asyncio.ensure_future(self._load(key, self._generations.get(key, 0)))
            self._inflight[key] = fetch
            fetch.add_done_callback(lambda done, key=key: self._forget_inflight(key, done))
        else:
            self._coalesced += 1

        # Shielded so that one caller giving up doesn't cancel the shared fetch
        return await asyncio.shield(fetch)

    async def _load(self, key: str, generation: int) -> Profile | None:
        self._misses += 1
        try:
            profile = await self._client.get_profile(key)
        except RemoteUnavailableError:
            self._failures += 1
            logger.warning(
                "Profile lookup failed; result not cached",
                extra={"discord_id": key, "operation": "cache.load"},
            )
            raise

        if self._generations.get(key, 0) == generation:
            self._entries[key] = CacheEntry(key, profile, self._clock() + self._ttl)
        else:
            logger.debug(
                "Discarding profile fetched before invalidation",
                extra={"discord_id": key},
            )
        return profile

    def _forget_inflight(self, key: str, done: asyncio.Future[Profile | None]) -> None:
        if self._inflight.get(key) is done:
            del self._inflight[key]
        # Mark exceptions as retrieved when every waiter has gone away
        if not done.cancelled():
            done.exception()

    def invalidate(self, discord_id: str | int) -> None:
        """Drop the entry for ``discord_id``; the next read goes to the store."""
        key = str(discord_id)
        self._entries.pop(key, None)
        self._inflight.pop(key, None)
        self._generations[key] = self._generations.get(key, 0) + 1
        logger.debug("Invalidated cached profile", extra={"discord_id": key})

    def clear(self) -> None:
        """Drop every entry."""
        for key in list(self._entries) + list(self._inflight):
            self._generations[key] = self._generations.get(key, 0) + 1
        self._entries.clear()
        self._inflight.clear()

    async def is_verified(self, discord_id: str | int, *, default: bool | None = None) -> bool:
        """
        True if the profile exists, is verified and is not banned.

        Args:
            discord_id: Discord user id.
            default: Value to return when the store is unavailable. With the
                default of None the RemoteUnavailableError propagates, leaving
                the fail-closed/degrade decision to the caller.
        """
        try:
            profile = await self.get_profile(discord_id)
        except RemoteUnavailableError:
            if default is None:
                raise
            return default
        return profile is not None and profile.is_verified and not profile.is_banned

    async def is_banned(self, discord_id: str | int, *, default: bool | None = None) -> bool:
        """True if the profile exists and is banned. See ``is_verified`` for ``default``."""
        try:
            profile = await self.get_profile(discord_id)
        except RemoteUnavailableError:
            if default is None:
                raise
            return default
        return profile is not None and profile.is_banned

    def stats(self) -> dict[str, Any]:
        """Counters for health reporting."""
        now = self._clock()
        return {
            "entries": len(self._entries),
            "live_entries": sum(1 for e in self._entries.values() if e.expires_at > now),
            "inflight": len(self._inflight),
            "hits": self._hits,
            "misses": self._misses,
            "coalesced": self._coalesced,
            "failures": self._failures,
            "ttl_seconds": self._ttl,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, discord_id: object) -> bool:
        entry = self._entries.get(str(discord_id))
        return entry is not None and entry.expires_at > self._clock()
