# Helpers/vrchat_code.py

import re

from utils.errors import MalformedIdError
from utils.logging import get_logger

logger = get_logger(__name__)

VRCHAT_ID_PREFIX = "usr_"
CODE_LENGTH = 6

# Case-insensitive shape check for code derivation; lookups below stay lower-case only
VRCHAT_ID_SHAPE = re.compile(r"usr_[0-9a-f]{8}(?:-[0-9a-f]{4}){3}-[0-9a-f]{12}", re.IGNORECASE)
VRCHAT_ID_REGEX = re.compile(r"^(usr_[a-f0-9]{8}(?:-[a-f0-9]{4}){3}-[a-f0-9]{12})$")
VRCHAT_PROFILE_URL_REGEX = re.compile(
    r"^(?:https?://)?(?:www\.)?vrchat\.com/home/user/"
    r"(usr_[a-f0-9]{8}(?:-[a-f0-9]{4}){3}-[a-f0-9]{12})/?$"
)


def generate_code(vrchat_id: str) -> str:
    """
    Derives the 6-character verification challenge code for a VRChat user.

    The user posts this code on their VRChat profile to prove ownership before
    staff (or automation) links the accounts. The derivation is deterministic:
    first 3 characters of the first id group plus the last 3 characters of the
    last group, upper-cased.

    Args:
        vrchat_id (str): A VRChat user id, ``usr_<8>-<4>-<4>-<4>-<12>``.

    Returns:
        str: The upper-cased 6-character code.

    Raises:
        MalformedIdError: If the id is not ``usr_`` followed by 5 hex groups
            of lengths 8-4-4-4-12 (either case).
    """
    if not isinstance(vrchat_id, str):
        raise MalformedIdError(str(vrchat_id))

    if not VRCHAT_ID_SHAPE.fullmatch(vrchat_id):
        logger.debug("Rejected malformed VRChat id.", extra={"vrchat_id": vrchat_id})
        raise MalformedIdError(vrchat_id)

    parts = vrchat_id[len(VRCHAT_ID_PREFIX):].split("-")

    first, last = parts[0], parts[-1]
    return f"{first[:3]}{last[-3:]}".upper()


def get_vrchat_id(text: str) -> str | None:
    """
    Extracts a VRChat user id from a profile URL or validates a bare id.

    Args:
        text (str): ``https://vrchat.com/home/user/usr_...`` or ``usr_...``.

    Returns:
        Optional[str]: The user id, or None if the text is neither.
    """
    if not text:
        return None
    text = text.strip()
    if match := VRCHAT_PROFILE_URL_REGEX.match(text):
        return match.group(1)
    if VRCHAT_ID_REGEX.match(text):
        return text
    return None


def is_vrchat_id(text: str | None) -> bool:
    """True if ``text`` is a bare, well-formed VRChat user id."""
    return bool(text) and VRCHAT_ID_REGEX.match(text) is not None


def code_in_bio(vrchat_id: str, bio: str | None) -> bool:
    """Checks whether the challenge code for ``vrchat_id`` appears in a profile bio."""
    if not bio:
        return False
    return generate_code(vrchat_id) in bio
