"""
Type definitions and common data structures for the profile linkage core.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


def _as_bool(value: Any) -> bool:
    """The store encodes flags as 0/1 integers; accept those and real booleans."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def _as_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


class VerificationState(Enum):
    """Verification state of a Discord user, derived from their stored profile."""

    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    BANNED = "banned"  # Overrides the verification flag

    @classmethod
    def of(cls, profile: Profile | None) -> VerificationState:
        if profile is None:
            return cls.UNVERIFIED
        if profile.is_banned:
            return cls.BANNED
        if profile.is_verified:
            return cls.VERIFIED
        return cls.UNVERIFIED


@dataclass(frozen=True)
class Profile:
    """One stored Discord <-> VRChat link (or pending placeholder row)."""

    discord_id: str
    vrchat_id: str | None = None
    vrchat_name: str | None = None
    is_verified: bool = False
    verified_by: str | None = None
    is_banned: bool = False
    banned_reason: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def state(self) -> VerificationState:
        return VerificationState.of(self)

    @classmethod
    def from_payload(cls, payload: Any) -> Profile | None:
        """
        Decode a profile store response body.

        Accepts either the bare row or the ``{"success": ..., "data": {...}}``
        envelope the store returns. Returns None when the body says "not found".
        """
        if not isinstance(payload, dict):
            return None

        if "data" in payload or "success" in payload:
            if payload.get("success") is False:
                return None
            row = payload.get("data")
        else:
            row = payload

        if not isinstance(row, dict) or not row.get("discord_id"):
            return None

        return cls(
            discord_id=str(row["discord_id"]),
            vrchat_id=_as_optional_str(row.get("vrchat_id")),
            vrchat_name=_as_optional_str(row.get("vrchat_name")),
            is_verified=_as_bool(row.get("is_verified", False)),
            verified_by=_as_optional_str(row.get("verified_by")),
            is_banned=_as_bool(row.get("is_banned", False)),
            banned_reason=_as_optional_str(row.get("banned_reason")),
            created_at=_as_optional_str(row.get("created_at")),
            updated_at=_as_optional_str(row.get("updated_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class InstanceDescriptor:
    """Structured decoding of a VRChat world/instance reference."""

    world_id: str | None
    instance_id: str | None
    instance_number: str | None
    instance_type: str
    instance_type_key: str
    region: str
    region_key: str
    owner_id: str | None = None
    nonce: str | None = None
    full_instance: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
