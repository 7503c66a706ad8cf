"""
Services package for the verification core.

This package contains service classes that own network resources (the profile
store and VRChat clients) and the business logic layered on them (the profile
cache and the verification state machine).
"""

from .base import BaseService
from .container import Services
from .profile_cache import CacheEntry, ProfileCache
from .profile_client import ProfileStore, RemoteProfileClient
from .verification_state import VerificationStateMachine
from .vrchat_client import VRChatClient, VRChatError, VRChatUser

__all__ = [
    "BaseService",
    "CacheEntry",
    "ProfileCache",
    "ProfileStore",
    "RemoteProfileClient",
    "Services",
    "VRChatClient",
    "VRChatError",
    "VRChatUser",
    "VerificationStateMachine",
]
