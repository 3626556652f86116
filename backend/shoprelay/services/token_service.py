# Overview: Signed bearer tokens carrying the caller's shop id and role.

"""
Device and owner credentials.

Tokens are issued elsewhere (pairing / owner login); this module only
signs and verifies the {shopId, role, deviceId} payload. The shopId inside
a token may be stale after a shop merge; callers canonicalize it.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..validation import trim

TOKEN_SALT = "shoprelay-sync-token"

ROLE_OWNER = "owner"
ROLE_DEVICE = "device"
VALID_ROLES = {ROLE_OWNER, ROLE_DEVICE}

# Older apps sign tokens with upper-case roles
LEGACY_ROLE_MAP = {"ADMIN": ROLE_OWNER, "OWNER": ROLE_OWNER, "DEVICE": ROLE_DEVICE, "STAFF": ROLE_DEVICE}


class TokenError(Exception):
    """Raised when a bearer token is missing, malformed, expired or tampered with."""


@dataclass(frozen=True)
class AuthContext:
    shop_id: str
    role: str
    device_id: str = ""


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def normalize_role(role: str) -> str:
    r = trim(role)
    if r in LEGACY_ROLE_MAP:
        return LEGACY_ROLE_MAP[r]
    r = r.lower()
    if r not in VALID_ROLES:
        raise TokenError(f"Invalid role: {role!r}")
    return r


def issue_token(shop_id: str, role: str = ROLE_DEVICE, device_id: str = "") -> str:
    sid = trim(shop_id)
    if not sid:
        raise TokenError("shopId required")
    return _serializer().dumps({"shopId": sid, "role": normalize_role(role), "deviceId": trim(device_id)})


def decode_token(token: str) -> AuthContext:
    if not token:
        raise TokenError("Missing token")
    max_age = int(current_app.config.get("SYNC_TOKEN_MAX_AGE_DAYS", 30)) * 24 * 60 * 60
    try:
        data = _serializer().loads(token, max_age=max_age)
    except SignatureExpired as exc:
        raise TokenError("Token expired") from exc
    except BadSignature as exc:
        raise TokenError("Invalid token") from exc

    if not isinstance(data, dict):
        raise TokenError("Invalid token")
    return AuthContext(
        shop_id=trim(data.get("shopId")),
        role=normalize_role(data.get("role") or ROLE_DEVICE),
        device_id=trim(data.get("deviceId")),
    )
