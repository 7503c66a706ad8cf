"""
Test Factories Module

Centralized factory functions and fakes for creating test objects.
Provides DRY utilities for config fixtures, an in-memory profile store, a fake
VRChat client, a controllable clock and a scripted HTTP session.
"""

from .config_factories import (
    make_config,
    make_minimal_config,
    temp_config_file,
)
from .http_factories import FakeResponse, FakeSession, install_session
from .store_factories import (
    OTHER_VRCHAT_ID,
    VALID_VRCHAT_ID,
    FakeClock,
    FakeProfileStore,
    FakeVRChatClient,
    make_profile,
)

__all__ = [
    "OTHER_VRCHAT_ID",
    "VALID_VRCHAT_ID",
    "FakeClock",
    "FakeProfileStore",
    "FakeResponse",
    "FakeSession",
    "FakeVRChatClient",
    "install_session",
    "make_config",
    "make_minimal_config",
    "make_profile",
    "temp_config_file",
]
