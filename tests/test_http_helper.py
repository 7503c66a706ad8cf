"""
Tests for the JSON HTTP client: status taxonomy, retries and backoff.
"""

import asyncio
from unittest.mock import AsyncMock

import aiohttp
import pytest

from helpers.http_helper import (
    ForbiddenError,
    HTTPClient,
    HTTPRetryPolicy,
    NotFoundError,
    PermanentError,
    RetryableError,
)
from tests.factories import FakeResponse, install_session

URL = "https://store.example/abc"


@pytest.fixture
def sleep(monkeypatch):
    mock = AsyncMock()
    monkeypatch.setattr("helpers.http_helper.asyncio.sleep", mock)
    return mock


def make_client(max_attempts=3) -> HTTPClient:
    return HTTPClient(
        retry_policy=HTTPRetryPolicy(max_attempts=max_attempts, base_delay=1.0, jitter=False),
        headers={"Authorization": "Bearer t"},
    )


@pytest.mark.asyncio
async def test_json_body_returned():
    client = make_client()
    session = install_session(client, [FakeResponse(200, {"ok": True})])

    assert await client.request_json("get", URL, params={"a": "1"}) == {"ok": True}
    assert session.requests[0]["method"] == "GET"
    assert session.requests[0]["headers"]["Authorization"] == "Bearer t"
    assert session.requests[0]["params"] == {"a": "1"}


@pytest.mark.asyncio
async def test_payload_sent_as_json_and_headers_merged():
    client = make_client()
    session = install_session(client, [FakeResponse(200, {})])

    await client.request_json("PUT", URL, payload={"x": 1}, headers={"X-Extra": "1"})
    sent = session.requests[0]
    assert sent["json"] == {"x": 1}
    assert sent["headers"] == {"Authorization": "Bearer t", "X-Extra": "1"}


@pytest.mark.asyncio
async def test_no_content_returns_none():
    client = make_client()
    install_session(client, [FakeResponse(204)])
    assert await client.request_json("DELETE", URL) is None


@pytest.mark.asyncio
async def test_non_json_body_returned_as_text():
    client = make_client()
    install_session(client, [FakeResponse(200, "plain text")])
    assert await client.request_json("GET", URL) == "plain text"


@pytest.mark.asyncio
async def test_not_found():
    client = make_client()
    install_session(client, [FakeResponse(404)])
    with pytest.raises(NotFoundError):
        await client.request_json("GET", URL)


@pytest.mark.asyncio
async def test_forbidden_is_not_retried(sleep):
    client = make_client()
    session = install_session(client, [FakeResponse(403)])
    with pytest.raises(ForbiddenError):
        await client.request_json("GET", URL)
    assert len(session.requests) == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_permanent_error_carries_status():
    client = make_client()
    install_session(client, [FakeResponse(400)])
    with pytest.raises(PermanentError) as exc:
        await client.request_json("GET", URL)
    assert exc.value.status == 400


@pytest.mark.asyncio
async def test_retryable_status_then_success(sleep):
    client = make_client()
    session = install_session(client, [FakeResponse(503), FakeResponse(200, {"n": 1})])

    assert await client.request_json("GET", URL) == {"n": 1}
    assert len(session.requests) == 2
    sleep.assert_awaited_once_with(1.0)
    assert client.get_health_status()["total_retries"] == 1


@pytest.mark.asyncio
async def test_retryable_status_exhausted(sleep):
    client = make_client()
    install_session(client, [FakeResponse(502), FakeResponse(502), FakeResponse(502)])

    with pytest.raises(RetryableError) as exc:
        await client.request_json("GET", URL)
    assert exc.value.status == 502
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


@pytest.mark.asyncio
async def test_retry_after_header_honoured(sleep):
    client = make_client()
    install_session(
        client,
        [FakeResponse(429, headers={"Retry-After": "7"}), FakeResponse(200, {})],
    )
    await client.request_json("GET", URL)
    sleep.assert_awaited_once_with(7.0)


@pytest.mark.asyncio
async def test_post_is_not_retried(sleep):
    client = make_client()
    install_session(client, [FakeResponse(503)])
    with pytest.raises(PermanentError):
        await client.request_json("POST", URL)
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_retry_disabled_per_call(sleep):
    client = make_client()
    install_session(client, [FakeResponse(503)])
    with pytest.raises(RetryableError):
        await client.request_json("GET", URL, retry=False)
    sleep.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error", [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()]
)
async def test_transport_errors_retried_then_raised(sleep, error):
    client = make_client(max_attempts=2)
    session = install_session(client, [error, error])

    with pytest.raises(RetryableError):
        await client.request_json("GET", URL)
    assert len(session.requests) == 2
    assert client.get_health_status()["total_errors"] == 2


def test_env_disables_retries(monkeypatch):
    monkeypatch.setenv("HTTP_RETRY_ENABLED", "false")
    assert HTTPClient().get_health_status()["retry_enabled"] is False


def test_delay_is_capped():
    policy = HTTPRetryPolicy(base_delay=10, max_delay=15, jitter=False)
    assert policy.calculate_delay(5) == 15


@pytest.mark.asyncio
async def test_close_closes_session():
    client = make_client()
    session = install_session(client, [])
    await client.close()
    assert session.closed is True
