"""
Custom exception classes for the profile linkage core.

These provide a hierarchy of typed exceptions for better error handling.
State-machine precondition failures derive from ``VerificationError`` so the
calling layer can turn any of them into a user message with one handler.
"""


class BotError(Exception):
    """Base exception for bot-related errors."""

    pass


class ConfigError(BotError):
    """Exception raised for configuration-related errors."""

    pass


class ServiceError(BotError):
    """Exception raised for service-related errors."""

    pass


class RemoteUnavailableError(ServiceError):
    """The profile store could not be reached or answered with an unexpected status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class MalformedIdError(BotError, ValueError):
    """A VRChat user id does not have the ``usr_<uuid>`` shape."""

    def __init__(self, vrchat_id: str) -> None:
        super().__init__(f"Invalid VRChat ID format: {vrchat_id!r}")
        self.vrchat_id = vrchat_id


class VerificationError(BotError):
    """A verification transition was refused by its precondition."""

    code = "UNKNOWN"

    def __init__(self, discord_id: str, message: str | None = None) -> None:
        super().__init__(message or f"{type(self).__name__} for {discord_id}")
        self.discord_id = discord_id


class AlreadyVerifiedError(VerificationError):
    code = "ALREADY_VERIFIED"


class BannedError(VerificationError):
    code = "BANNED"


class NotVerifiedError(VerificationError):
    code = "NOT_VERIFIED"


class AlreadyBannedError(VerificationError):
    code = "ALREADY_BANNED"


class NotBannedError(VerificationError):
    code = "NOT_BANNED"


class ProfileNotFoundError(VerificationError):
    code = "PROFILE_NOT_FOUND"


class AccountAlreadyLinkedError(VerificationError):
    """The VRChat account is already verified for another Discord account."""

    code = "ACCOUNT_LINKED"

    def __init__(self, discord_id: str, vrchat_id: str, linked_to: str) -> None:
        super().__init__(
            discord_id,
            f"VRChat account {vrchat_id} is already linked to Discord user {linked_to}",
        )
        self.vrchat_id = vrchat_id
        self.linked_to = linked_to


class ChallengeNotFoundError(VerificationError):
    """The verification code was not found in the user's VRChat bio."""

    code = "CODE_NOT_FOUND"

    def __init__(self, discord_id: str, challenge_code: str | None = None) -> None:
        super().__init__(discord_id)
        self.challenge_code = challenge_code
