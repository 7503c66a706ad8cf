"""
Client for the remote profile store (REST, bearer-token authenticated).

The store is the source of truth for Discord <-> VRChat links. Only a narrow
contract is consumed:

    GET    /{id}            -> profile row (id may be a Discord or VRChat id)
    PUT    /                -> create / verify a link
    PUT    /{discord_id}    -> update individual fields
    DELETE /{discord_id}    -> remove the row

A 404 means "not found"; any other failure surfaces as RemoteUnavailableError
so callers never confuse an outage with a missing profile.
"""

from __future__ import annotations

from typing import Any, Protocol
from urllib.parse import quote

from helpers.http_helper import (
    ForbiddenError,
    HTTPClient,
    HTTPRetryPolicy,
    NotFoundError,
    PermanentError,
    RetryableError,
)
from utils.errors import ConfigError, RemoteUnavailableError
from utils.types import Profile

from .base import BaseService


class ProfileStore(Protocol):
    """The subset of the store client used by the cache and the state machine."""

    async def get_profile(self, profile_id: str) -> Profile | None: ...

    async def put_profile(self, fields: dict[str, Any]) -> None: ...

    async def update_profile(self, discord_id: str, fields: dict[str, Any]) -> None: ...

    async def delete_profile(self, discord_id: str) -> bool: ...


class RemoteProfileClient(BaseService):
    """HTTP client for the profile store."""

    def __init__(
        self,
        base_url: str | None,
        token: str | None,
        *,
        http_client: HTTPClient | None = None,
        timeout: int = 15,
        concurrency: int = 8,
        max_attempts: int = 1,
    ) -> None:
        super().__init__("profile_client")
        if not base_url:
            raise ConfigError("PROFILE_STORE_URL is not configured")
        if not token:
            raise ConfigError("PROFILE_STORE_TOKEN is not configured")

        self._base_url = base_url.rstrip("/")
        self._http = http_client or HTTPClient(
            timeout=timeout,
            concurrency=concurrency,
            retry_policy=HTTPRetryPolicy(max_attempts=max(1, max_attempts)),
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
        )

    async def _initialize_impl(self) -> None:
        self.logger.info("Profile store endpoint: %s", self._base_url)

    async def _shutdown_impl(self) -> None:
        await self._http.close()

    def _health_details(self) -> dict[str, Any]:
        return self._http.get_health_status()

    def _url(self, profile_id: str | None = None) -> str:
        if profile_id is None:
            return f"{self._base_url}/"
        return f"{self._base_url}/{quote(str(profile_id), safe='')}"

    async def _call(self, method: str, url: str, payload: Any = None) -> Any:
        try:
            return await self._http.request_json(method, url, payload=payload)
        except NotFoundError:
            raise
        except (ForbiddenError, PermanentError, RetryableError) as e:
            status = getattr(e, "status", None)
            if isinstance(e, ForbiddenError):
                status = 403
            self.logger.warning(
                "Profile store %s %s failed: %s",
                method,
                url,
                e,
                extra={"operation": f"store.{method.lower()}", "status": status},
            )
            raise RemoteUnavailableError(str(e), status=status) from e

    async def get_profile(self, profile_id: str) -> Profile | None:
        """
        Fetch a profile by Discord id (or VRChat id; the store resolves both).

        Returns:
            The profile, or None when the store has no row for the id.

        Raises:
            RemoteUnavailableError: The store could not answer.
        """
        try:
            body = await self._call("GET", self._url(profile_id))
        except NotFoundError:
            return None
        if not isinstance(body, dict):
            # e.g. an HTML error page from a proxy; not the same as "no row"
            self.logger.warning(
                "Profile store returned a non-JSON body for %s",
                profile_id,
                extra={"operation": "store.get"},
            )
            raise RemoteUnavailableError("Profile store returned an unexpected response body")
        return Profile.from_payload(body)

    async def find_by_vrchat_id(self, vrchat_id: str) -> Profile | None:
        """Look up the profile linked to a VRChat account."""
        return await self.get_profile(vrchat_id)

    async def put_profile(self, fields: dict[str, Any]) -> None:
        """Create or verify a link. ``fields`` must contain ``discord_id``."""
        if not fields.get("discord_id"):
            raise ValueError("discord_id is required to store a profile")
        try:
            await self._call("PUT", self._url(), payload=fields)
        except NotFoundError as e:
            raise RemoteUnavailableError(str(e), status=404) from e
        self.logger.info(
            "Stored profile",
            extra={
                "operation": "store.put",
                "discord_id": fields["discord_id"],
                "vrchat_id": fields.get("vrchat_id"),
            },
        )

    async def update_profile(self, discord_id: str, fields: dict[str, Any]) -> None:
        """Update individual fields of an existing profile."""
        if not fields:
            raise ValueError("No fields provided to update")
        try:
            await self._call("PUT", self._url(discord_id), payload=fields)
        except NotFoundError as e:
            raise RemoteUnavailableError(str(e), status=404) from e
        self.logger.info(
            "Updated profile fields: %s",
            ", ".join(sorted(fields)),
            extra={"operation": "store.update", "discord_id": discord_id},
        )

    async def delete_profile(self, discord_id: str) -> bool:
        """Delete a profile row. Returns False if there was nothing to delete."""
        try:
            await self._call("DELETE", self._url(discord_id))
        except NotFoundError:
            return False
        self.logger.info(
            "Deleted profile", extra={"operation": "store.delete", "discord_id": discord_id}
        )
        return True
