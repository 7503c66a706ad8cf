import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path for CI environments where
# Python might not automatically include it.
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from config.config_loader import ConfigLoader
from services.profile_cache import ProfileCache
from services.verification_state import VerificationStateMachine
from services.vrchat_client import VRChatUser
from tests.factories import (
    VALID_VRCHAT_ID,
    FakeClock,
    FakeProfileStore,
    FakeVRChatClient,
)


@pytest.fixture(autouse=True)
def _reset_config_loader():
    """Keep the ConfigLoader singleton from leaking between tests."""
    ConfigLoader.reset()
    yield
    ConfigLoader.reset()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> FakeProfileStore:
    return FakeProfileStore()


@pytest.fixture
def cache(store, clock) -> ProfileCache:
    return ProfileCache(store, ttl_seconds=3600, clock=clock)


@pytest.fixture
def vrchat() -> FakeVRChatClient:
    return FakeVRChatClient(
        {
            VALID_VRCHAT_ID: VRChatUser(
                id=VALID_VRCHAT_ID,
                display_name="Name",
                bio="hello C16469 world",
            )
        }
    )


@pytest.fixture
def machine(cache, store, vrchat) -> VerificationStateMachine:
    return VerificationStateMachine(cache, store, vrchat_client=vrchat)
