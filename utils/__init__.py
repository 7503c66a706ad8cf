"""
Utilities Package

Common utilities, error types and data structures shared by helpers and services.
"""

from .errors import (
    AccountAlreadyLinkedError,
    AlreadyBannedError,
    AlreadyVerifiedError,
    BannedError,
    BotError,
    ChallengeNotFoundError,
    ConfigError,
    MalformedIdError,
    NotBannedError,
    NotVerifiedError,
    ProfileNotFoundError,
    RemoteUnavailableError,
    ServiceError,
    VerificationError,
)
from .logging import get_logger, setup_logging
from .types import InstanceDescriptor, Profile, VerificationState

__all__ = [
    "AccountAlreadyLinkedError",
    "AlreadyBannedError",
    "AlreadyVerifiedError",
    "BannedError",
    "BotError",
    "ChallengeNotFoundError",
    "ConfigError",
    "InstanceDescriptor",
    "MalformedIdError",
    "NotBannedError",
    "NotVerifiedError",
    "Profile",
    "ProfileNotFoundError",
    "RemoteUnavailableError",
    "ServiceError",
    "VerificationError",
    "VerificationState",
    "get_logger",
    "setup_logging",
]
