"""
Test user-facing error messages for verification commands.
"""

import pytest

from helpers.error_messages import format_user_error, format_verification_error
from tests.factories import VALID_VRCHAT_ID
from utils.errors import (
    AccountAlreadyLinkedError,
    AlreadyBannedError,
    AlreadyVerifiedError,
    BannedError,
    ChallengeNotFoundError,
    ConfigError,
    MalformedIdError,
    NotBannedError,
    NotVerifiedError,
    ProfileNotFoundError,
    RemoteUnavailableError,
)


class TestErrorMessages:
    """Test error message formatting."""

    @pytest.mark.parametrize(
        "error,keyword",
        [
            (AlreadyVerifiedError("d1"), "already verified"),
            (BannedError("d1"), "banned"),
            (NotVerifiedError("d1"), "not verified"),
            (AlreadyBannedError("d1"), "already banned"),
            (NotBannedError("d1"), "not banned"),
            (ProfileNotFoundError("d1"), "no profile"),
            (AccountAlreadyLinkedError("d1", VALID_VRCHAT_ID, "d2"), "already linked"),
            (MalformedIdError("usr_x"), "invalid vrchat id"),
            (RemoteUnavailableError("down", status=503), "try again"),
            (ConfigError("missing"), "configured"),
        ],
    )
    def test_known_errors(self, error, keyword):
        result = format_verification_error(error)
        assert keyword in result.lower()
        assert len(result) < 200

    def test_challenge_code_inserted(self):
        result = format_verification_error(ChallengeNotFoundError("d1"), code="C16469")
        assert "C16469" in result

    def test_challenge_code_carried_by_error(self):
        result = format_verification_error(ChallengeNotFoundError("d1", "C16469"))
        assert "`C16469`" in result
        assert "???" not in result

    def test_format_user_error_accepts_code_placeholder(self):
        result = format_user_error("CODE_NOT_FOUND", code="ABC123")
        assert "`ABC123`" in result

    def test_missing_template_value_is_marked(self):
        result = format_user_error("CODE_NOT_FOUND")
        assert "???" in result

    def test_no_internal_details_leak(self):
        result = format_verification_error(RemoteUnavailableError("HTTP 503 for https://x/y"))
        assert "https://" not in result
        assert "503" not in result

    def test_unexpected_exception(self):
        result = format_verification_error(RuntimeError("boom"))
        assert "❌" in result
        assert "wrong" in result.lower()
        assert "boom" not in result

    def test_unknown_error_code_fallback(self):
        """Test that unknown error codes fall back to UNKNOWN message."""
        result = format_user_error("INVALID_CODE_XYZ")
        assert "❌" in result
        assert "wrong" in result.lower() or "error" in result.lower()

    def test_codes_match_error_classes(self):
        assert BannedError.code == "BANNED"
        assert ChallengeNotFoundError.code == "CODE_NOT_FOUND"
        assert AccountAlreadyLinkedError.code == "ACCOUNT_LINKED"
