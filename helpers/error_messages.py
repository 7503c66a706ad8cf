"""
Centralized error message formatting for user-facing verification errors.

The command layer catches the typed errors raised by the verification core and
turns them into a short message through ``format_verification_error``. Messages
never expose internal technical details.

Format: emoji + **Bold Title** + newline + actionable body
"""

from utils.errors import (
    AccountAlreadyLinkedError,
    ChallengeNotFoundError,
    ConfigError,
    MalformedIdError,
    RemoteUnavailableError,
    VerificationError,
)
from utils.logging import get_logger

logger = get_logger(__name__)


def format_user_error(error_code: str, **kwargs) -> str:
    """
    Format a user-friendly error message based on an error code.

    Args:
        error_code: Error code identifying the type of error
        **kwargs: Dynamic values to insert into error messages
            - code: The challenge code (for CODE_NOT_FOUND)
            - vrchat_id: The VRChat account (for ACCOUNT_LINKED)

    Returns:
        User-friendly error message string

    Examples:
        >>> format_user_error("ALREADY_VERIFIED")
        "❌ **Already verified**\\nThis account is already verified."
    """
    error_messages = {
        "ALREADY_VERIFIED": "❌ **Already verified**\nThis account is already verified.",
        "BANNED": "⛔ **Banned**\nThis account is banned from verification.",
        "NOT_VERIFIED": "❌ **Not verified**\nThis account isn't verified.",
        "ALREADY_BANNED": "❌ **Already banned**\nThis account is already banned.",
        "NOT_BANNED": "❌ **Not banned**\nThis account isn't banned.",
        "PROFILE_NOT_FOUND": "❌ **No profile**\nThis user has never linked a VRChat account.",
        "ACCOUNT_LINKED": (
            "❌ **Account in use**\n"
            "That VRChat account is already linked to another Discord user."
        ),
        "CODE_NOT_FOUND": (
            "❌ **Code not found**\n"
            "Add `{code}` to your VRChat bio, then try again."
        ),
        "INVALID_ID": (
            "❌ **Invalid VRChat ID**\n"
            "Paste your VRChat profile link or a `usr_...` ID."
        ),
        "STORE_UNAVAILABLE": (
            "⚠️ **Temporary issue**\n"
            "Couldn't reach the profile store. Please try again in a moment."
        ),
        "NOT_CONFIGURED": "❌ **Not available**\nThis feature isn't configured.",
        "UNKNOWN": "❌ **Something went wrong**\nAn unexpected error occurred. The issue was logged.",
    }

    # Log warning if unknown error code is used
    if error_code not in error_messages:
        logger.warning(f"Unknown error code used in format_user_error: {error_code}")

    message = error_messages.get(error_code, error_messages["UNKNOWN"])

    try:
        return message.format(**kwargs)
    except KeyError as e:
        return message.replace("{" + str(e).strip("'") + "}", "???")


def format_verification_error(error: Exception, **kwargs) -> str:
    """
    Map an exception raised by the verification core to a user message.

    Args:
        error: The caught exception.
        **kwargs: Extra values for the message template (e.g. ``code``).

    Returns:
        User-friendly error message string.
    """
    if isinstance(error, AccountAlreadyLinkedError):
        return format_user_error(error.code, vrchat_id=error.vrchat_id, **kwargs)
    if isinstance(error, ChallengeNotFoundError) and error.challenge_code:
        kwargs.setdefault("code", error.challenge_code)
    if isinstance(error, VerificationError):
        return format_user_error(error.code, **kwargs)
    if isinstance(error, MalformedIdError):
        return format_user_error("INVALID_ID")
    if isinstance(error, RemoteUnavailableError):
        return format_user_error("STORE_UNAVAILABLE")
    if isinstance(error, ConfigError):
        return format_user_error("NOT_CONFIGURED")

    logger.warning(
        "Unexpected error reached the user message layer: %r", error, exc_info=error
    )
    return format_user_error("UNKNOWN")
