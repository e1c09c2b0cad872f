"""
JWT Middleware for Flask.

A single ``before_request`` gate resolves the caller's realm and effective
store from the token and enforces :data:`qrnr_shared.permissions.ROUTE_POLICIES`
before any view runs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flask import current_app, g, request

from qrnr_shared.errors import (
    AuthForbiddenError,
    AuthInvalidError,
    AuthMissingError,
    ValidationError,
)
from qrnr_shared.jwt_service import (
    REALM_ADMIN,
    REALM_CUST,
    REALM_SUPER,
    decode_realm_token,
    extract_token_from_request,
)
from qrnr_shared.logging_config import get_logger
from qrnr_shared.permissions import ACCESS_REALMS, ANONYMOUS, Access, AuthContext, policy_for

if TYPE_CHECKING:
    from flask import Flask

logger = get_logger(__name__)


def init_auth_gate(app: Flask) -> None:
    """
    Initialize the authorization gate for a Flask app.

    Sets up a before_request handler that:
    1. Looks up the route policy
    2. Extracts and validates the token for the allowed realms
    3. Resolves the effective store and stores the AuthContext in ``g.auth``

    Args:
        app: Flask application instance
    """

    @app.before_request
    def enforce_route_policy():
        g.auth = ANONYMOUS
        if request.method == "OPTIONS" or request.endpoint is None:
            return None

        access = policy_for(request.method, request.endpoint)
        if access is Access.PUBLIC:
            return None

        realms = ACCESS_REALMS[access]
        token = extract_token_from_request(request, realms)
        if not token:
            if access is Access.CUSTOMER_OPTIONAL:
                return None
            raise AuthMissingError("로그인이 필요합니다.")

        claims = decode_realm_token(token, current_app.config["QRNR_CONFIG"])
        if claims is None:
            raise AuthInvalidError("유효하지 않거나 만료된 토큰입니다.")

        realm = claims["realm"]
        if realm not in realms:
            raise AuthForbiddenError(f"'{realm}' 권한으로는 사용할 수 없는 기능입니다.")

        if access is Access.STORE_STAFF:
            store_id = _resolve_staff_store(realm, claims)
        else:
            store_id = claims.get("storeId")

        g.auth = AuthContext(
            realm=realm,
            store_id=store_id,
            subject_id=claims.get("sub") or claims.get("uid"),
            claims=claims,
        )
        return None


def _requested_store_id() -> str | None:
    store_id = request.args.get("storeId")
    if not store_id and request.is_json:
        body = request.get_json(silent=True)
        if isinstance(body, dict):
            store_id = body.get("storeId")
    return str(store_id) if store_id else None


def _resolve_staff_store(realm: str, claims: dict[str, Any]) -> str:
    """
    Effective store for a store-scoped request.

    Admins are bound to the store in their token; an explicit different
    ``storeId`` is refused. Super users are not bound and must name the store.
    """
    requested = _requested_store_id()

    if realm == REALM_ADMIN:
        bound = claims.get("storeId")
        if not bound:
            raise AuthForbiddenError("매장이 연결되지 않은 계정입니다.", detail_code="NO_STORE_MAPPING")
        if requested and requested != bound:
            logger.warning(f"Admin {claims.get('sub')} bound to {bound} requested store {requested}")
            raise AuthForbiddenError("다른 매장에 접근할 수 없습니다.", detail_code="STORE_MISMATCH")
        return bound

    if realm == REALM_SUPER:
        if not requested:
            raise ValidationError("storeId 가 필요합니다.", detail_code="STORE_ID_REQUIRED")
        return requested

    raise AuthForbiddenError(f"'{realm}' 권한으로는 사용할 수 없는 기능입니다.")


def get_auth_context() -> AuthContext:
    """AuthContext of the current request (anonymous when no token was required)."""
    return getattr(g, "auth", ANONYMOUS)


def current_store_id() -> str:
    """Effective store of a store-scoped request."""
    store_id = get_auth_context().store_id
    if not store_id:
        raise ValidationError("storeId 가 필요합니다.", detail_code="STORE_ID_REQUIRED")
    return store_id


def customer_store_id() -> str:
    """
    Store for a customer action: the ``storeId`` sent by the page, which must
    match the store of a customer token when one is present.
    """
    auth = get_auth_context()
    requested = _requested_store_id()
    if auth.realm == REALM_CUST and auth.store_id:
        if requested and requested != auth.store_id:
            raise AuthForbiddenError("다른 매장에 주문할 수 없습니다.", detail_code="STORE_MISMATCH")
        return auth.store_id
    if not requested:
        raise ValidationError("storeId 가 필요합니다.", detail_code="STORE_ID_REQUIRED")
    return requested

