"""
Login flows for the three realms.

Admins are stored in the database and bound to stores through mappings.
Super and customer accounts come from ``SUPER_USERS_JSON`` / ``CUST_USERS_JSON``.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select

from qrnr_shared.config import AppConfig
from qrnr_shared.db import get_session
from qrnr_shared.errors import AuthForbiddenError, AuthInvalidError, NotFoundError
from qrnr_shared.jwt_service import REALM_ADMIN, REALM_CUST, REALM_SUPER, issue_realm_token
from qrnr_shared.logging_config import get_logger
from qrnr_shared.models import Admin, AdminStoreMapping, Store
from qrnr_shared.security import constant_time_equals, verify_credentials

logger = get_logger(__name__)

INVALID_CREDENTIALS = "아이디 또는 비밀번호가 올바르지 않습니다."


def _resolve_admin_store(mappings: list[AdminStoreMapping], requested: str | None) -> str:
    """Requested store if mapped; else the default mapping; else the oldest."""
    if requested:
        for mapping in mappings:
            if mapping.store_id == requested:
                return mapping.store_id
        raise AuthForbiddenError("해당 매장에 대한 권한이 없습니다.", detail_code="STORE_NOT_MAPPED")

    for mapping in mappings:
        if mapping.is_default:
            return mapping.store_id
    return mappings[0].store_id


def login_admin(
    uid: str, pwd: str, config: AppConfig, store_id: str | None = None
) -> tuple[str, dict[str, Any]]:
    """
    Verify an admin and issue a store-bound admin token.

    Returns:
        ``(token, claims)``

    Raises:
        AuthInvalidError: unknown id or wrong password
        AuthForbiddenError: ``NO_STORE_MAPPING`` when the admin has no store
    """
    with get_session() as session:
        admin = session.get(Admin, uid)
        if admin is None or not verify_credentials(uid, pwd, admin.password_hash):
            logger.warning(f"Admin login failed for {uid}")
            raise AuthInvalidError(INVALID_CREDENTIALS, detail_code="INVALID_CREDENTIALS")

        mappings = list(
            session.execute(
                select(AdminStoreMapping)
                .where(AdminStoreMapping.admin_id == admin.id)
                .order_by(AdminStoreMapping.created_at, AdminStoreMapping.id)
            )
            .scalars()
            .all()
        )
        if not mappings:
            logger.warning(f"Admin {uid} has no store mapping")
            raise AuthForbiddenError("매장이 연결되지 않은 계정입니다.", detail_code="NO_STORE_MAPPING")

        claims = {
            "sub": admin.id,
            "uid": admin.id,
            "storeId": _resolve_admin_store(mappings, store_id),
            "name": admin.name,
            "role": admin.role,
            "provider": "local",
        }

    token = issue_realm_token(REALM_ADMIN, claims, config)
    logger.info(f"Admin {uid} logged in to store {claims['storeId']}")
    return token, {**claims, "realm": REALM_ADMIN}


def _find_account(accounts: list[dict[str, Any]], uid: str, pwd: str) -> dict[str, Any] | None:
    for account in accounts:
        if account["id"] == uid and constant_time_equals(account["pw"], pwd):
            return account
    return None


def login_super(uid: str, pwd: str, config: AppConfig) -> tuple[str, dict[str, Any]]:
    account = _find_account(config.super_users, uid, pwd)
    if account is None:
        logger.warning(f"Super login failed for {uid}")
        raise AuthInvalidError(INVALID_CREDENTIALS, detail_code="INVALID_CREDENTIALS")

    claims = {
        "sub": account["id"],
        "uid": account["id"],
        "storeId": None,
        "name": account["name"],
        "provider": account["provider"],
    }
    token = issue_realm_token(REALM_SUPER, claims, config)
    logger.info(f"Super user {uid} logged in")
    return token, {**claims, "realm": REALM_SUPER}


def login_customer(
    uid: str, pwd: str, config: AppConfig, store_id: str | None = None
) -> tuple[str, dict[str, Any]]:
    account = _find_account(config.cust_users, uid, pwd)
    if account is None:
        logger.warning(f"Customer login failed for {uid}")
        raise AuthInvalidError(INVALID_CREDENTIALS, detail_code="INVALID_CREDENTIALS")

    if store_id:
        with get_session() as session:
            if session.get(Store, store_id) is None:
                raise NotFoundError("존재하지 않는 매장입니다.", detail_code="STORE_NOT_FOUND")

    claims = {
        "sub": account["id"],
        "uid": account["id"],
        "storeId": store_id,
        "name": account["name"],
        "provider": account["provider"],
    }
    token = issue_realm_token(REALM_CUST, claims, config)
    return token, {**claims, "realm": REALM_CUST}
