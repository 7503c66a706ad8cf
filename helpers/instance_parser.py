# Helpers/instance_parser.py

"""
Parsing of VRChat world/instance references pasted by users.

Accepts either a vrchat.com URL (``https://vrchat.com/home/launch?worldId=...&instanceId=...``
or ``https://vrchat.com/home/world/wrld_...``) or a compact token
(``wrld_...:12345~friends(usr_...)~region(eu)~nonce(...)`` or just the instance part).

Parse failures are returned as None: unrelated or malformed text is an expected
input from chat, not an error.
"""

import re
from urllib.parse import parse_qs, quote, urlsplit

from utils.logging import get_logger
from utils.types import InstanceDescriptor

logger = get_logger(__name__)

_UUID = r"[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}"

INSTANCE_TYPES = {
    "public": "Public",
    "friends+": "Friends+",
    "friends": "Friends",
    "invite+": "Invite+",
    "invite": "Invite Only",
    "group": "Group",
    "groupPlus": "Group+",
    "groupPublic": "Group Public",
}

REGIONS = {
    "us": "US West",
    "use": "US East",
    "eu": "Europe",
    "jp": "Japan",
}

DEFAULT_INSTANCE_TYPE = "public"
DEFAULT_REGION = "us"

# Segment patterns, tried in order; a segment matching none of them is ignored
TYPE_PATTERN = re.compile(
    rf"^(public|friends\+?|invite\+?|group|groupPlus|groupPublic)(?:\((usr_{_UUID})\))?$"
)
REGION_PATTERN = re.compile(r"^region\((\w+)\)$")
NONCE_PATTERN = re.compile(r"^nonce\(([a-f0-9-]+)\)$")

WORLD_PATH_PATTERN = re.compile(r"world/(wrld_[a-f0-9-]+)")
WORLD_ID_PATTERN = re.compile(rf"^wrld_{_UUID}$")
WORLD_TOKEN_PATTERN = re.compile(r"^wrld_[A-Za-z0-9-]+$")
INSTANCE_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_\-+~().,]+$")
VRCHAT_URL_PATTERN = re.compile(r"vrchat\.com/home/(launch|world)", re.IGNORECASE)

LAUNCH_URL = "https://vrchat.com/home/launch"


def parse_vrchat_instance(text: str | None) -> InstanceDescriptor | None:
    """
    Parses a VRChat instance URL or instance token.

    Args:
        text (str): URL or compact token pasted by a user.

    Returns:
        Optional[InstanceDescriptor]: The decoded descriptor, or None when the
            text is not a recognizable world/instance reference.
    """
    try:
        return _parse(text)
    except Exception:
        logger.debug("Failed to parse VRChat instance reference: %r", text, exc_info=True)
        return None


def _parse(text: str | None) -> InstanceDescriptor | None:
    if not text:
        return None

    world_id, instance_id = _resolve_ids(text.strip())

    if world_id and not WORLD_TOKEN_PATTERN.match(world_id):
        return None
    if instance_id and not INSTANCE_TOKEN_PATTERN.match(instance_id):
        return None
    if not world_id and not instance_id:
        return None

    instance_number = None
    instance_type_key = DEFAULT_INSTANCE_TYPE
    region_key = DEFAULT_REGION
    owner_id = None
    nonce = None

    if instance_id:
        # Format: 12345~friends(usr_xxx)~region(us)~nonce(xxx)
        instance_number, *segments = instance_id.split("~")
        for segment in segments:
            if type_match := TYPE_PATTERN.match(segment):
                instance_type_key = type_match.group(1)
                owner_id = type_match.group(2)
            elif region_match := REGION_PATTERN.match(segment):
                region_key = region_match.group(1)
            elif nonce_match := NONCE_PATTERN.match(segment):
                nonce = nonce_match.group(1)

    return InstanceDescriptor(
        world_id=world_id,
        instance_id=instance_id,
        instance_number=instance_number,
        instance_type=INSTANCE_TYPES.get(instance_type_key, instance_type_key),
        instance_type_key=instance_type_key,
        region=REGIONS.get(region_key, region_key.upper()),
        region_key=region_key,
        owner_id=owner_id,
        nonce=nonce,
        full_instance=f"{world_id}:{instance_id}" if world_id and instance_id else None,
    )


def _resolve_ids(text: str) -> tuple[str | None, str | None]:
    """Split the input into (world_id, instance_id); either may be None."""
    if text.startswith(("http://", "https://")):
        url = urlsplit(text)
        # "+" is literal in instance types (friends+, invite+), not an encoded space
        query = parse_qs(url.query.replace("+", "%2B"))
        world_id = _first(query.get("worldId"))
        instance_id = _first(query.get("instanceId"))
        if not world_id and (path_match := WORLD_PATH_PATTERN.search(url.path)):
            world_id = path_match.group(1)
        return world_id, instance_id

    if text.startswith("wrld_"):
        world_id, _, instance_id = text.partition(":")
        return world_id, instance_id or None

    return None, text


def _first(values: list[str] | None) -> str | None:
    if not values:
        return None
    return values[0] or None


def is_valid_world_id(world_id: str | None) -> bool:
    """True if ``world_id`` is a well-formed ``wrld_<uuid>``."""
    return bool(world_id) and WORLD_ID_PATTERN.match(world_id) is not None


def contains_vrchat_url(text: str | None) -> bool:
    """True if ``text`` contains a vrchat.com launch or world link."""
    return bool(text) and VRCHAT_URL_PATTERN.search(text) is not None


def build_launch_url(descriptor: InstanceDescriptor) -> str | None:
    """Builds the vrchat.com launch link for a descriptor with a world id."""
    if not descriptor.world_id:
        return None
    if not descriptor.instance_id:
        return f"{LAUNCH_URL}?worldId={descriptor.world_id}"
    instance = quote(descriptor.instance_id, safe="~()=%,:_-")
    return f"{LAUNCH_URL}?worldId={descriptor.world_id}&instanceId={instance}"
