"""Best-effort session token decoding for display.

Session tokens are ``<base64url JSON payload>.<signature>``. Only the issuer can
check the signature, so nothing decoded here is trusted: the payload is wrapped
in :class:`DisplayClaims`, which carries no authority and is only ever rendered
or used to scope display lookups. Authorization happens server-side.
"""
from __future__ import annotations

import base64
import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .errors import DecodeError

logger = logging.getLogger(__name__)

SEGMENT_SEPARATOR = "."


def _b64url_to_bytes(segment: str) -> bytes:
    normalized = segment.replace("-", "+").replace("_", "/")
    padded = normalized + "=" * ((4 - len(normalized) % 4) % 4)
    try:
        return base64.b64decode(padded, validate=True)
    except ValueError as exc:
        raise DecodeError("Invalid token", log_message=f"bad base64 segment: {exc}") from exc


def _decode_segment(segment: str) -> Dict[str, Any]:
    if not segment:
        raise DecodeError("Invalid token", log_message="empty payload segment")
    raw = _b64url_to_bytes(segment)
    try:
        parsed = json.loads(raw.decode("utf-8"))
    except (ValueError, RecursionError) as exc:
        raise DecodeError("Invalid token", log_message=f"payload is not JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise DecodeError("Invalid token", log_message="payload is not an object")
    return parsed


def decode(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode the payload segment of ``token``; ``None`` on any failure. Never raises."""
    if not isinstance(token, str):
        return None
    segment = token.split(SEGMENT_SEPARATOR, 1)[0]
    try:
        return _decode_segment(segment)
    except DecodeError as exc:
        logger.debug("token_codec.decode: %s", exc)
        return None


def encode_payload(payload: Mapping[str, Any]) -> str:
    """Encode ``payload`` as an unpadded base64url segment."""
    raw = json.dumps(dict(payload), separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _str_or_none(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return None


@dataclass(frozen=True)
class DisplayClaims:
    """Unverified token claims. For display and display-scoped lookups only."""

    org_id: Optional[str] = None
    staff_id: Optional[str] = None
    user_id: Optional[str] = None
    device_id: Optional[str] = None
    issued_at: Optional[int] = None
    expires_at: Optional[int] = None
    version: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "DisplayClaims":
        return cls(
            org_id=_str_or_none(payload.get("orgId")),
            staff_id=_str_or_none(payload.get("staffId")),
            user_id=_str_or_none(payload.get("userId")),
            device_id=_str_or_none(payload.get("deviceId")),
            issued_at=_int_or_none(payload.get("iat")),
            expires_at=_int_or_none(payload.get("exp")),
            version=_int_or_none(payload.get("v")),
            raw=dict(payload),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orgId": self.org_id,
            "staffId": self.staff_id,
            "userId": self.user_id,
            "deviceId": self.device_id,
            "iat": self.issued_at,
            "exp": self.expires_at,
        }


def display_claims(token: Optional[str]) -> Optional[DisplayClaims]:
    payload = decode(token)
    if payload is None:
        return None
    return DisplayClaims.from_payload(payload)


__all__ = ["decode", "display_claims", "encode_payload", "DisplayClaims", "SEGMENT_SEPARATOR"]
