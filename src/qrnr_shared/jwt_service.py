"""
JWT Service - Token issuing and verification for qrnr.

Tokens are stateless HS256 JWTs carrying a ``realm`` claim (``super``,
``admin`` or ``cust``). Super tokens are signed with ``SUPER_JWT_SECRET``;
admin and customer tokens share ``JWT_SECRET``.
"""

from __future__ import annotations

import time
from typing import Any

import jwt
from flask import Request

from qrnr_shared.config import AppConfig
from qrnr_shared.logging_config import get_logger

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"

REALM_SUPER = "super"
REALM_ADMIN = "admin"
REALM_CUST = "cust"
REALMS = (REALM_SUPER, REALM_ADMIN, REALM_CUST)

# Cookie names per realm; the admin console and super console live on the same
# origin so each realm keeps its own cookie.
REALM_COOKIES = {
    REALM_SUPER: "super_token",
    REALM_ADMIN: "admin_token",
    REALM_CUST: "cust_token",
}


def issue(
    claims: dict[str, Any],
    secret: str,
    ttl_seconds: int,
    now: float | None = None,
) -> str:
    """
    Sign ``claims`` with ``secret``.

    The payload always receives ``exp = now + ttl_seconds``; any ``exp`` passed
    in ``claims`` is overwritten.
    """
    issued_at = int(now if now is not None else time.time())
    payload = {**claims, "exp": issued_at + int(ttl_seconds)}
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def verify(token: Any, secret: str) -> dict[str, Any] | None:
    """
    Verify ``token`` against ``secret``.

    Returns the claims or ``None``. Never raises: a malformed token, a wrong
    signature or ``exp <= now`` all yield ``None`` so callers can branch on
    "absent identity".
    """
    if not isinstance(token, str) or token.count(".") != 2:
        return None

    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Token expired")
    except jwt.PyJWTError as exc:
        logger.debug(f"Token rejected: {exc}")
    except (TypeError, ValueError) as exc:
        logger.debug(f"Malformed token: {exc}")
    return None


def issue_realm_token(realm: str, claims: dict[str, Any], config: AppConfig) -> str:
    """Issue a token for ``realm`` using that realm's secret and TTL."""
    if realm not in REALMS:
        raise ValueError(f"Unknown realm: {realm}")

    payload = {**claims, "realm": realm, "iat": int(time.time())}
    return issue(payload, config.secret_for_realm(realm), config.ttl_for_realm(realm))


def decode_realm_token(token: str, config: AppConfig) -> dict[str, Any] | None:
    """
    Decode a token of any realm.

    The super secret is tried first, then the shared secret. The realm claim
    must match the secret that verified the signature, so a token claiming
    ``super`` that was signed with ``JWT_SECRET`` never validates.
    """
    claims = verify(token, config.super_jwt_secret)
    if claims is not None:
        if claims.get("realm") == REALM_SUPER:
            return claims
        logger.warning("Token signed with super secret carries non-super realm")
        return None

    claims = verify(token, config.jwt_secret)
    if claims is None:
        return None

    if claims.get("realm") not in (REALM_ADMIN, REALM_CUST):
        logger.warning(f"Token realm {claims.get('realm')!r} not allowed for shared secret")
        return None
    return claims


def extract_token_from_request(
    request: Request, realms: tuple[str, ...] = REALMS
) -> str | None:
    """
    Extract JWT token from request.

    Checks in order:
    1. Authorization header (Bearer token)
    2. Realm cookies, in the order of ``realms``
    3. ``token`` field of a JSON body (backward compatibility)

    Args:
        request: Flask request object
        realms: Realms whose cookies are consulted, most preferred first

    Returns:
        Token string if found, None otherwise
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token

    for realm in realms:
        token = request.cookies.get(REALM_COOKIES[realm])
        if token:
            return token

    if request.is_json:
        body = request.get_json(silent=True)
        if isinstance(body, dict) and isinstance(body.get("token"), str) and body["token"]:
            return body["token"]

    return None
