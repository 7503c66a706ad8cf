"""
Tests for the services container wiring.
"""

from unittest.mock import AsyncMock

import pytest

from services.container import Services
from services.vrchat_client import VRChatClient, VRChatError
from tests.factories import make_config
from utils.errors import ConfigError

ENV = {
    "PROFILE_STORE_URL": "https://store.example/api",
    "PROFILE_STORE_TOKEN": "secret",
}


@pytest.mark.asyncio
async def test_builds_services_from_config():
    services = Services(make_config(ttl_seconds=60, unverify_bans=True), env=ENV)
    await services.initialize()
    try:
        assert services.is_initialized
        assert services.cache.ttl_seconds == 60.0
        assert services.verification.unverify_bans is True
        assert services.vrchat is None
    finally:
        await services.shutdown()


@pytest.mark.asyncio
async def test_defaults_for_missing_settings():
    services = Services({}, env=ENV)
    await services.initialize()
    try:
        assert services.cache.ttl_seconds == 3600.0
        assert services.verification.unverify_bans is False
        assert services.verification.fallback_name == "Unknown User"
    finally:
        await services.shutdown()


@pytest.mark.asyncio
async def test_missing_store_url_is_config_error():
    services = Services(make_config(), env={"PROFILE_STORE_TOKEN": "secret"})
    with pytest.raises(ConfigError):
        await services.initialize()
    assert not services.is_initialized
    with pytest.raises(RuntimeError):
        _ = services.cache


@pytest.mark.asyncio
async def test_vrchat_client_built_from_env(monkeypatch):
    login = AsyncMock()
    monkeypatch.setattr(VRChatClient, "login_if_needed", login)
    env = {**ENV, "VRCHAT_AUTH_COOKIE": "authcookie_x", "VRCHAT_CONTACT_EMAIL": "ops@example.com"}

    services = Services(make_config(), env=env)
    await services.initialize()
    try:
        assert services.vrchat is not None
        assert services.vrchat._http._user_agent == "VRCLinkBot/0.1.0 ops@example.com"
        login.assert_awaited_once()
    finally:
        await services.shutdown()


@pytest.mark.asyncio
async def test_vrchat_login_failure_keeps_store_available(monkeypatch):
    login = AsyncMock(side_effect=VRChatError(401, "2FA required"))
    monkeypatch.setattr(VRChatClient, "login_if_needed", login)
    env = {**ENV, "VRCHAT_USERNAME": "bot", "VRCHAT_PASSWORD": "pw"}

    services = Services({}, env=env)
    await services.initialize()
    try:
        assert services.is_initialized
        assert services.store is not None
        assert services.cache is not None
        assert services.verification is not None
        assert services.vrchat is not None

        report = await services.health()
        statuses = {s["service"]: s["status"] for s in report["services"]}
        assert statuses["profile_client"] == "healthy"
        assert statuses["vrchat"] == "not_initialized"
    finally:
        await services.shutdown()


@pytest.mark.asyncio
async def test_health_report():
    services = Services(make_config(), env=ENV)
    await services.initialize()
    try:
        report = await services.health()
        assert report["initialized"] is True
        assert [s["service"] for s in report["services"]] == ["profile_client"]
        assert report["profile_cache"]["entries"] == 0
    finally:
        await services.shutdown()


@pytest.mark.asyncio
async def test_shutdown_resets_container():
    services = Services(make_config(), env=ENV)
    await services.initialize()
    await services.shutdown()

    assert not services.is_initialized
    with pytest.raises(RuntimeError):
        _ = services.verification


@pytest.mark.asyncio
async def test_initialize_twice_is_noop():
    services = Services(make_config(), env=ENV)
    await services.initialize()
    store = services.store
    await services.initialize()
    assert services.store is store
    await services.shutdown()
