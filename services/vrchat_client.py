"""
VRChat identity provider client.

Resolves VRChat user ids to their current public profile (display name, bio).
Used to fill in and refresh ``vrchat_name`` and to check the verification
challenge code in a user's bio; it never decides verification state on its own.

Authentication uses a saved ``auth`` cookie when one is configured, otherwise
HTTP Basic credentials against ``/auth/user``; the session cookie jar keeps the
resulting cookie for subsequent calls.
"""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from helpers.http_helper import (
    ForbiddenError,
    HTTPClient,
    NotFoundError,
    PermanentError,
    RetryableError,
)
from utils.errors import ServiceError

from .base import BaseService

VRCHAT_API_BASE = "https://api.vrchat.cloud/api/1"


class VRChatError(ServiceError):
    """The VRChat API refused or failed a request."""

    def __init__(self, status: int | None, message: str) -> None:
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class VRChatUser:
    id: str
    display_name: str
    bio: str = ""
    status: str | None = None
    pronouns: str | None = None
    date_joined: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> VRChatUser:
        return cls(
            id=str(data.get("id", "")),
            display_name=str(data.get("displayName") or ""),
            bio=str(data.get("bio") or ""),
            status=data.get("status"),
            pronouns=data.get("pronouns"),
            date_joined=data.get("date_joined"),
        )


class VRChatClient(BaseService):
    """Minimal VRChat API client for user lookups."""

    def __init__(
        self,
        *,
        username: str | None = None,
        password: str | None = None,
        auth_cookie: str | None = None,
        user_agent: str = "VRCLinkBot/0.1.0",
        timeout: int = 25,
        http_client: HTTPClient | None = None,
        api_base: str = VRCHAT_API_BASE,
    ) -> None:
        super().__init__("vrchat")
        self._username = username
        self._password = password
        self._auth_cookie = auth_cookie
        self._api_base = api_base.rstrip("/")
        self._http = http_client or HTTPClient(
            timeout=timeout, concurrency=4, user_agent=user_agent
        )
        self._login_lock = asyncio.Lock()
        self._logged_in = False

    async def _initialize_impl(self) -> None:
        await self.login_if_needed()

    async def _shutdown_impl(self) -> None:
        await self._http.close()
        self._logged_in = False

    def _health_details(self) -> dict[str, Any]:
        return {"logged_in": self._logged_in, **self._http.get_health_status()}

    def _auth_headers(self) -> dict[str, str]:
        if self._auth_cookie:
            return {"Cookie": f"auth={self._auth_cookie}"}
        return {}

    def _basic_auth_header(self) -> dict[str, str]:
        if not self._username or not self._password:
            raise VRChatError(401, "VRChat credentials are not configured")
        user = quote(self._username, safe="")
        password = quote(self._password, safe="")
        token = base64.b64encode(f"{user}:{password}".encode()).decode("utf-8")
        return {"Authorization": f"Basic {token}"}

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._api_base}{path}"
        headers = {**self._auth_headers(), **kwargs.pop("headers", {})}
        try:
            return await self._http.request_json(method, url, headers=headers, **kwargs)
        except NotFoundError as e:
            raise VRChatError(404, f"Not found: {path}") from e
        except ForbiddenError as e:
            raise VRChatError(403, f"Forbidden: {path}") from e
        except (PermanentError, RetryableError) as e:
            raise VRChatError(e.status, str(e)) from e

    async def login_if_needed(self) -> None:
        """Establish an authenticated session (cookie or Basic credentials)."""
        async with self._login_lock:
            if self._logged_in:
                return

            headers = {} if self._auth_cookie else self._basic_auth_header()
            data = await self._request("GET", "/auth/user", headers=headers)

            if isinstance(data, dict) and data.get("requiresTwoFactorAuth"):
                methods = ", ".join(data.get("requiresTwoFactorAuth") or [])
                raise VRChatError(
                    401,
                    f"Two-factor authentication required ({methods or 'unknown'}); "
                    "provide VRCHAT_AUTH_COOKIE from an authenticated session",
                )

            self._logged_in = True
            name = data.get("displayName") if isinstance(data, dict) else None
            self.logger.info("Signed in to VRChat as %s", name or "<unknown>")

    async def get_user(self, vrchat_id: str) -> VRChatUser:
        """Fetch a user's public profile."""
        await self.login_if_needed()
        data = await self._request("GET", f"/users/{quote(vrchat_id, safe='')}")
        if not isinstance(data, dict):
            raise VRChatError(None, f"Unexpected response for user {vrchat_id}")
        return VRChatUser.from_payload(data)

    async def get_display_name(self, vrchat_id: str) -> str | None:
        """Current display name for ``vrchat_id``, or None if it can't be resolved."""
        try:
            user = await self.get_user(vrchat_id)
        except VRChatError as e:
            self.logger.warning(
                "Could not resolve VRChat display name: %s",
                e,
                extra={"vrchat_id": vrchat_id, "status": e.status},
            )
            return None
        return user.display_name or None
