"""
HTTP Factories

A scripted stand-in for ``aiohttp.ClientSession``: each request pops the next
queued response (or raises the next queued exception) and is recorded.
"""

from __future__ import annotations

import json
from typing import Any


class FakeResponse:
    def __init__(
        self,
        status: int = 200,
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status = status
        self._body = body
        self.headers = headers or {}

    async def json(self, content_type: str | None = None) -> Any:
        if isinstance(self._body, str):
            return json.loads(self._body)
        return self._body

    async def text(self) -> str:
        if isinstance(self._body, str):
            return self._body
        return json.dumps(self._body)

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class FakeSession:
    def __init__(self, responses: list[FakeResponse | BaseException]) -> None:
        self._responses = list(responses)
        self.requests: list[dict[str, Any]] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.requests.append({"method": method, "url": url, **kwargs})
        if not self._responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        nxt = self._responses.pop(0)
        if isinstance(nxt, BaseException):
            raise nxt
        return nxt

    async def close(self) -> None:
        self.closed = True


def install_session(http_client: Any, responses: list[FakeResponse | BaseException]) -> FakeSession:
    """Attach a FakeSession to an ``HTTPClient`` so no real session is created."""
    session = FakeSession(responses)
    http_client._session = session
    return session
