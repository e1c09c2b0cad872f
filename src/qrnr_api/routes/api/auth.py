"""
Auth API - login/logout per realm and token introspection.
"""

from flask import Blueprint, jsonify

from qrnr_api.extensions import get_config, json_body
from qrnr_shared.jwt_middleware import get_auth_context
from qrnr_shared.jwt_service import REALM_ADMIN, REALM_COOKIES, REALM_CUST, REALM_SUPER
from qrnr_shared.schemas import LoginRequest
from qrnr_shared.security_middleware import rate_limit
from qrnr_shared.serializers import success_response
from qrnr_shared.services import auth_service

auth_bp = Blueprint("auth", __name__)


def _login_response(realm: str, token: str, claims: dict):
    config = get_config()
    response = jsonify(
        success_response({"ok": True, "storeId": claims.get("storeId"), "token": token, "claims": claims})
    )
    response.set_cookie(
        REALM_COOKIES[realm],
        token,
        max_age=config.ttl_for_realm(realm),
        httponly=True,
        secure=config.cookie_secure,
        samesite="Lax",
        path="/",
    )
    return response


def _logout_response(realm: str):
    config = get_config()
    response = jsonify(success_response({"ok": True}))
    response.delete_cookie(
        REALM_COOKIES[realm], path="/", secure=config.cookie_secure, httponly=True, samesite="Lax"
    )
    return response


@auth_bp.post("/login-admin")
@rate_limit("login-admin")
def login_admin():
    """Admin login; the token is bound to one mapped store."""
    body = LoginRequest.model_validate(json_body())
    token, claims = auth_service.login_admin(body.uid, body.pwd, get_config(), body.store_id)
    return _login_response(REALM_ADMIN, token, claims)


@auth_bp.post("/logout-admin")
def logout_admin():
    return _logout_response(REALM_ADMIN)


@auth_bp.post("/super-login")
@rate_limit("super-login")
def super_login():
    body = LoginRequest.model_validate(json_body())
    token, claims = auth_service.login_super(body.uid, body.pwd, get_config())
    return _login_response(REALM_SUPER, token, claims)


@auth_bp.post("/super-logout")
def super_logout():
    return _logout_response(REALM_SUPER)


@auth_bp.post("/login-cust")
@rate_limit("login-cust")
def login_customer():
    body = LoginRequest.model_validate(json_body())
    token, claims = auth_service.login_customer(body.uid, body.pwd, get_config(), body.store_id)
    return _login_response(REALM_CUST, token, claims)


@auth_bp.route("/verify", methods=["GET", "POST"])
def verify():
    """Decoded claims of the presented token (401 when absent or invalid)."""
    return jsonify(success_response(get_auth_context().claims))


@auth_bp.route("/me", methods=["GET", "POST"])
def me():
    return jsonify(success_response(get_auth_context().to_dict()))
