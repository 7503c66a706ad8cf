"""
Services Container

Builds the profile store client, the shared profile cache, the VRChat client and
the verification state machine once at process start, and hands the same
instances to every caller.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from config.config_loader import ConfigLoader, get_nested_value
from utils.logging import get_logger

from .base import BaseService
from .profile_cache import DEFAULT_TTL_SECONDS, ProfileCache
from .profile_client import RemoteProfileClient
from .verification_state import DEFAULT_FALLBACK_NAME, VerificationStateMachine
from .vrchat_client import VRChatClient, VRChatError

logger = get_logger(__name__)


class Services:
    """
    Lightweight services container for the verification core.

    Settings come from the YAML config (``ConfigLoader``); secrets and endpoints
    come from the environment.
    """

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config if config is not None else ConfigLoader.load_config()
        self._env = env if env is not None else os.environ
        self._store: RemoteProfileClient | None = None
        self._cache: ProfileCache | None = None
        self._vrchat: VRChatClient | None = None
        self._verification: VerificationStateMachine | None = None
        self._initialized = False

    def _setting(self, key: str, default: Any) -> Any:
        return get_nested_value(self._config, key, default)

    @property
    def store(self) -> RemoteProfileClient:
        """Get the profile store client."""
        if self._store is None:
            raise RuntimeError("Services not initialized. Call initialize() first.")
        return self._store

    @property
    def cache(self) -> ProfileCache:
        """Get the shared profile cache."""
        if self._cache is None:
            raise RuntimeError("Services not initialized. Call initialize() first.")
        return self._cache

    @property
    def vrchat(self) -> VRChatClient | None:
        """The VRChat client, or None when no VRChat credentials are configured."""
        return self._vrchat

    @property
    def verification(self) -> VerificationStateMachine:
        """Get the verification state machine."""
        if self._verification is None:
            raise RuntimeError("Services not initialized. Call initialize() first.")
        return self._verification

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def _build_vrchat(self) -> VRChatClient | None:
        cookie = self._env.get("VRCHAT_AUTH_COOKIE")
        username = self._env.get("VRCHAT_USERNAME")
        password = self._env.get("VRCHAT_PASSWORD")
        if not cookie and not (username and password):
            logger.info("VRChat credentials not configured; name lookups disabled")
            return None

        user_agent = str(self._setting("vrchat.user_agent", "VRCLinkBot/0.1.0"))
        contact = self._env.get("VRCHAT_CONTACT_EMAIL")
        if contact and contact not in user_agent:
            user_agent = f"{user_agent} {contact}"

        return VRChatClient(
            username=username,
            password=password,
            auth_cookie=cookie,
            user_agent=user_agent,
            timeout=int(self._setting("vrchat.timeout_seconds", 25)),
        )

    async def _initialize_vrchat(self, client: VRChatClient) -> None:
        # VRChat only supplies display names and bios; it never gates verification state
        try:
            await client.initialize()
        except VRChatError as e:
            logger.warning(
                "VRChat sign-in failed; will retry on first lookup: %s",
                e,
                extra={"operation": "vrchat.login", "status": e.status},
            )

    async def initialize(self) -> None:
        """Initialize all services in dependency order."""
        if self._initialized:
            logger.warning("Services already initialized")
            return

        try:
            self._store = RemoteProfileClient(
                self._env.get("PROFILE_STORE_URL"),
                self._env.get("PROFILE_STORE_TOKEN"),
                timeout=int(self._setting("profile_store.timeout_seconds", 15)),
                concurrency=int(self._setting("profile_store.concurrency", 8)),
                max_attempts=int(self._setting("profile_store.max_attempts", 1)),
            )
            await self._store.initialize()

            self._cache = ProfileCache(
                self._store,
                ttl_seconds=float(self._setting("profile_cache.ttl_seconds", DEFAULT_TTL_SECONDS)),
            )

            self._vrchat = self._build_vrchat()
            if self._vrchat is not None:
                await self._initialize_vrchat(self._vrchat)

            self._verification = VerificationStateMachine(
                self._cache,
                self._store,
                vrchat_client=self._vrchat,
                unverify_bans=bool(self._setting("verification.unverify_bans", False)),
                fallback_name=str(
                    self._setting("verification.fallback_name", DEFAULT_FALLBACK_NAME)
                ),
            )

            self._initialized = True
            logger.info("Services container initialized")
        except Exception as e:
            logger.exception("Failed to initialize services", exc_info=e)
            await self.shutdown()
            raise

    def _lifecycle_services(self) -> list[BaseService]:
        return [s for s in (self._store, self._vrchat) if s is not None]

    async def shutdown(self) -> None:
        """Release network sessions in reverse dependency order."""
        for service in reversed(self._lifecycle_services()):
            await service.shutdown()

        self._verification = None
        self._vrchat = None
        self._cache = None
        self._store = None
        self._initialized = False
        logger.info("Services shut down")

    async def health(self) -> dict[str, Any]:
        """Aggregate health report for every service."""
        report: dict[str, Any] = {
            "initialized": self._initialized,
            "config": ConfigLoader.get_config_status(),
            "services": [await s.health_check() for s in self._lifecycle_services()],
        }
        if self._cache is not None:
            report["profile_cache"] = self._cache.stats()
        return report
