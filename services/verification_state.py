"""
Verification state transitions for Discord <-> VRChat links.

Provides the single entry point for every mutating verification operation
(verify, unverify, ban, unban, delete, name refresh). Precondition checks read through
the shared ProfileCache; writes go to the profile store and are always followed
by invalidating the cache entry for that user, so the next read observes the
write.

Transitions for the same Discord id are serialized inside the process with a
per-user lock. Two processes racing on the same id still need store-side
support to be atomic.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from helpers.vrchat_code import code_in_bio, generate_code, get_vrchat_id
from utils.errors import (
    AccountAlreadyLinkedError,
    AlreadyBannedError,
    AlreadyVerifiedError,
    BannedError,
    ChallengeNotFoundError,
    ConfigError,
    MalformedIdError,
    NotBannedError,
    NotVerifiedError,
    ProfileNotFoundError,
)
from utils.logging import get_logger
from utils.types import Profile, VerificationState

from .profile_cache import ProfileCache
from .profile_client import ProfileStore
from .vrchat_client import VRChatClient

logger = get_logger(__name__)

DEFAULT_FALLBACK_NAME = "Unknown User"


class VerificationStateMachine:
    """Enforces the UNVERIFIED / VERIFIED / BANNED transitions."""

    def __init__(
        self,
        cache: ProfileCache,
        store: ProfileStore,
        *,
        vrchat_client: VRChatClient | None = None,
        unverify_bans: bool = False,
        fallback_name: str = DEFAULT_FALLBACK_NAME,
    ) -> None:
        self._cache = cache
        self._store = store
        self._vrchat = vrchat_client
        self.unverify_bans = unverify_bans
        self.fallback_name = fallback_name

        # discord_id -> [lock, holders]; entries are dropped once nobody holds them
        self._user_locks: dict[str, list[Any]] = {}

    @asynccontextmanager
    async def _user_lock(self, discord_id: str) -> AsyncIterator[None]:
        slot = self._user_locks.get(discord_id)
        if slot is None:
            slot = self._user_locks[discord_id] = [asyncio.Lock(), 0]
        slot[1] += 1
        try:
            async with slot[0]:
                yield
        finally:
            slot[1] -= 1
            if slot[1] == 0 and self._user_locks.get(discord_id) is slot:
                del self._user_locks[discord_id]

    async def _write(self, discord_id: str, fields: dict[str, Any], *, create: bool = False) -> None:
        try:
            if create:
                await self._store.put_profile({"discord_id": discord_id, **fields})
            else:
                await self._store.update_profile(discord_id, fields)
        finally:
            # Invalidate even when the write failed: the store may have applied it
            self._cache.invalidate(discord_id)

    async def _reload(self, discord_id: str) -> Profile:
        profile = await self._cache.get_profile(discord_id)
        if profile is None:
            # Store accepted the write but doesn't show the row yet
            raise ProfileNotFoundError(discord_id)
        return profile

    async def get_state(self, discord_id: str | int) -> VerificationState:
        """Current state of ``discord_id`` as seen through the cache."""
        return VerificationState.of(await self._cache.get_profile(str(discord_id)))

    async def _check_account_conflict(self, discord_id: str, vrchat_id: str) -> None:
        find = getattr(self._store, "find_by_vrchat_id", None)
        if find is None:
            return
        owner = await find(vrchat_id)
        if owner is not None and owner.discord_id != discord_id and owner.is_verified:
            raise AccountAlreadyLinkedError(discord_id, vrchat_id, owner.discord_id)

    async def _resolve_name(self, vrchat_id: str) -> str:
        if self._vrchat is None:
            return self.fallback_name
        return await self._vrchat.get_display_name(vrchat_id) or self.fallback_name

    async def verify(
        self,
        discord_id: str | int,
        vrchat_id: str,
        vrchat_name: str | None = None,
        *,
        verified_by: str | None = None,
    ) -> Profile:
        """
        Link ``discord_id`` to a VRChat account and mark it verified.

        Args:
            discord_id: Discord user id.
            vrchat_id: VRChat user id or profile URL.
            vrchat_name: Display name; resolved through VRChat when omitted.
            verified_by: Staff member (or the user, for self-verification).

        Returns:
            The stored profile after the write.

        Raises:
            MalformedIdError: ``vrchat_id`` is not a VRChat user id or profile URL.
            AlreadyVerifiedError: The user is already verified.
            BannedError: The user is banned.
            AccountAlreadyLinkedError: The VRChat account is verified for someone else.
            RemoteUnavailableError: The store could not be read or written.
        """
        discord_id = str(discord_id)
        normalized = get_vrchat_id(vrchat_id) if isinstance(vrchat_id, str) else None
        if normalized is None:
            raise MalformedIdError(str(vrchat_id))

        async with self._user_lock(discord_id):
            state = await self.get_state(discord_id)
            if state is VerificationState.BANNED:
                raise BannedError(discord_id)
            if state is VerificationState.VERIFIED:
                raise AlreadyVerifiedError(discord_id)

            await self._check_account_conflict(discord_id, normalized)
            name = vrchat_name or await self._resolve_name(normalized)

            await self._write(
                discord_id,
                {
                    "vrchat_id": normalized,
                    "vrchat_name": name,
                    "is_verified": True,
                    "verified_by": str(verified_by) if verified_by is not None else None,
                },
                create=True,
            )
            logger.info(
                "User verified",
                extra={
                    "operation": "verify",
                    "discord_id": discord_id,
                    "vrchat_id": normalized,
                    "actor": verified_by,
                },
            )
            return await self._reload(discord_id)

    async def unverify(self, discord_id: str | int, *, actor: str | None = None) -> Profile:
        """
        Revoke a verification.

        Clears ``is_verified`` by default. With ``unverify_bans`` enabled the
        user is banned instead, matching the older combined behaviour.

        Raises:
            NotVerifiedError: The user is not currently verified.
        """
        discord_id = str(discord_id)
        async with self._user_lock(discord_id):
            if await self.get_state(discord_id) is not VerificationState.VERIFIED:
                raise NotVerifiedError(discord_id)

            fields: dict[str, Any] = {"is_banned": True} if self.unverify_bans else {"is_verified": False}
            await self._write(discord_id, fields)
            logger.info(
                "User unverified",
                extra={
                    "operation": "unverify",
                    "discord_id": discord_id,
                    "actor": actor,
                    "status": "banned" if self.unverify_bans else "unverified",
                },
            )
            return await self._reload(discord_id)

    async def ban(
        self, discord_id: str | int, reason: str | None = None, *, actor: str | None = None
    ) -> Profile:
        """
        Ban a user. The profile row must exist.

        Raises:
            ProfileNotFoundError: No profile row for this user.
            AlreadyBannedError: The user is already banned.
        """
        discord_id = str(discord_id)
        async with self._user_lock(discord_id):
            profile = await self._cache.get_profile(discord_id)
            if profile is None:
                raise ProfileNotFoundError(discord_id)
            if profile.is_banned:
                raise AlreadyBannedError(discord_id)

            await self._write(discord_id, {"is_banned": True, "banned_reason": reason})
            logger.info(
                "User banned",
                extra={"operation": "ban", "discord_id": discord_id, "actor": actor},
            )
            return await self._reload(discord_id)

    async def unban(self, discord_id: str | int, *, actor: str | None = None) -> Profile:
        """Lift a ban. The user returns to UNVERIFIED and has to verify again."""
        discord_id = str(discord_id)
        async with self._user_lock(discord_id):
            if await self.get_state(discord_id) is not VerificationState.BANNED:
                raise NotBannedError(discord_id)

            await self._write(
                discord_id,
                {"is_banned": False, "is_verified": False, "banned_reason": None},
            )
            logger.info(
                "User unbanned",
                extra={"operation": "unban", "discord_id": discord_id, "actor": actor},
            )
            return await self._reload(discord_id)

    async def delete(self, discord_id: str | int, *, actor: str | None = None) -> None:
        """
        Remove a user's profile row from the store.

        Allowed from any state; a banned user's row (and with it the ban) is
        removed too.

        Raises:
            ProfileNotFoundError: The store had no row for this user.
        """
        discord_id = str(discord_id)
        async with self._user_lock(discord_id):
            try:
                deleted = await self._store.delete_profile(discord_id)
            finally:
                self._cache.invalidate(discord_id)
            if not deleted:
                raise ProfileNotFoundError(discord_id)
            logger.info(
                "Profile deleted",
                extra={"operation": "delete", "discord_id": discord_id, "actor": actor},
            )

    async def refresh_name(self, discord_id: str | int) -> str | None:
        """
        Refresh the stored VRChat display name.

        Returns:
            The current display name, or None when the user has no linked
            account or VRChat could not resolve it.
        """
        discord_id = str(discord_id)
        if self._vrchat is None:
            logger.debug("No VRChat client configured; skipping name refresh")
            return None

        async with self._user_lock(discord_id):
            profile = await self._cache.get_profile(discord_id)
            if profile is None or not profile.vrchat_id:
                return None

            name = await self._vrchat.get_display_name(profile.vrchat_id)
            if name is None:
                return None
            if name != profile.vrchat_name:
                await self._write(discord_id, {"vrchat_name": name})
                logger.info(
                    "Refreshed VRChat display name",
                    extra={
                        "operation": "refresh_name",
                        "discord_id": discord_id,
                        "vrchat_id": profile.vrchat_id,
                    },
                )
            return name

    async def verify_by_challenge(self, discord_id: str | int, vrchat_id: str) -> Profile:
        """
        Self-verification: the user proves ownership by posting their code in their bio.

        Raises:
            ConfigError: No VRChat client is configured.
            MalformedIdError: ``vrchat_id`` is not a VRChat user id or profile URL.
            ChallengeNotFoundError: The code is not in the user's VRChat bio.
        """
        if self._vrchat is None:
            raise ConfigError("Challenge verification requires a VRChat client")

        discord_id = str(discord_id)
        normalized = get_vrchat_id(vrchat_id) if isinstance(vrchat_id, str) else None
        if normalized is None:
            raise MalformedIdError(str(vrchat_id))

        user = await self._vrchat.get_user(normalized)
        if not code_in_bio(normalized, user.bio):
            raise ChallengeNotFoundError(discord_id, generate_code(normalized))

        return await self.verify(
            discord_id,
            normalized,
            user.display_name or None,
            verified_by=discord_id,
        )
