"""
Store administration: stores, admin accounts and admin-store mappings.

Only the super console reaches these operations.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from qrnr_shared.constants import DEFAULT_QR_LIMIT
from qrnr_shared.db import get_session
from qrnr_shared.errors import ConflictError, NotFoundError
from qrnr_shared.logging_config import get_logger
from qrnr_shared.models import (
    Admin,
    AdminStoreMapping,
    CallLog,
    Order,
    PaymentCode,
    Store,
    StoreSettings,
)
from qrnr_shared.schemas import (
    AdminRegisterRequest,
    MappingUpsertRequest,
    StoreCreateRequest,
    StoreUpdateRequest,
)
from qrnr_shared.security import hash_credentials
from qrnr_shared.serializers import serialize_admin, serialize_mapping, serialize_store

logger = get_logger(__name__)


def _require_store(session: Session, store_id: str) -> Store:
    store = session.get(Store, store_id)
    if store is None:
        raise NotFoundError("존재하지 않는 매장입니다.", detail_code="STORE_NOT_FOUND")
    return store


def _require_admin(session: Session, admin_id: str) -> Admin:
    admin = session.get(Admin, admin_id)
    if admin is None:
        raise NotFoundError("존재하지 않는 관리자입니다.", detail_code="ADMIN_NOT_FOUND")
    return admin


def _count(session: Session, column, *criteria) -> int:
    return session.execute(select(func.count(column)).where(*criteria)).scalar_one()


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


def list_stores(store_id: str | None = None) -> list[dict[str, Any]]:
    """All stores, or only ``store_id`` for a store-bound caller."""
    stmt = select(Store).order_by(Store.created_at, Store.store_id)
    if store_id is not None:
        stmt = stmt.where(Store.store_id == store_id)
    with get_session() as session:
        return [serialize_store(store) for store in session.execute(stmt).scalars().all()]


def create_store(payload: dict[str, Any]) -> dict[str, Any]:
    request = StoreCreateRequest.model_validate(payload)
    try:
        with get_session() as session:
            if session.get(Store, request.storeId) is not None:
                raise ConflictError("이미 존재하는 매장 ID 입니다.", detail_code="STORE_ALREADY_EXISTS")
            store = Store(
                store_id=request.storeId,
                name=request.name,
                code=request.code.upper(),
                qr_limit=request.qrLimit if request.qrLimit is not None else DEFAULT_QR_LIMIT,
            )
            session.add(store)
            session.flush()
            data = serialize_store(store)
    except IntegrityError as exc:
        raise ConflictError(
            "이미 존재하는 매장 ID 입니다.", detail_code="STORE_ALREADY_EXISTS"
        ) from exc

    logger.info(f"Store {request.storeId} created")
    return data


def update_store(payload: dict[str, Any]) -> dict[str, Any]:
    request = StoreUpdateRequest.model_validate(payload)
    with get_session() as session:
        store = _require_store(session, request.storeId)
        if request.code is not None:
            store.code = request.code.upper()
        if request.name is not None:
            store.name = request.name
        if request.qrLimit is not None:
            store.qr_limit = request.qrLimit
        session.flush()
        return serialize_store(store)


def delete_store(store_id: str) -> None:
    """
    Delete a store without admins or orders.

    Mapped stores are refused with ``MAPPING_EXISTS``; stores with orders are
    refused with ``ORDERS_EXIST`` since orders are never deleted.
    """
    with get_session() as session:
        _require_store(session, store_id)
        if _count(session, AdminStoreMapping.id, AdminStoreMapping.store_id == store_id):
            raise ConflictError(
                "관리자가 연결된 매장은 삭제할 수 없습니다.", detail_code="MAPPING_EXISTS"
            )
        if _count(session, Order.id, Order.store_id == store_id):
            raise ConflictError("주문 내역이 있는 매장은 삭제할 수 없습니다.", detail_code="ORDERS_EXIST")

        session.execute(delete(CallLog).where(CallLog.store_id == store_id))
        session.execute(delete(PaymentCode).where(PaymentCode.store_id == store_id))
        session.execute(delete(StoreSettings).where(StoreSettings.store_id == store_id))
        session.execute(delete(Store).where(Store.store_id == store_id))

    logger.info(f"Store {store_id} deleted")


# ---------------------------------------------------------------------------
# Admin accounts
# ---------------------------------------------------------------------------


def register_admin(payload: dict[str, Any]) -> dict[str, Any]:
    """Create an admin account, optionally mapped to ``storeId`` as its default store."""
    request = AdminRegisterRequest.model_validate(payload)
    admin_id = request.id.strip()

    try:
        with get_session() as session:
            if session.get(Admin, admin_id) is not None:
                raise ConflictError("이미 존재하는 관리자 ID 입니다.", detail_code="ADMIN_ALREADY_EXISTS")
            if request.storeId:
                _require_store(session, request.storeId)

            admin = Admin(
                id=admin_id,
                password_hash=hash_credentials(admin_id, request.password),
                name=request.name or admin_id,
                role=request.role,
            )
            admin.email = request.email
            admin.phone = request.phone
            session.add(admin)
            if request.storeId:
                session.add(
                    AdminStoreMapping(admin_id=admin_id, store_id=request.storeId, is_default=True)
                )
            session.flush()
            data = serialize_admin(admin, include_contact=True)
            data["storeId"] = request.storeId
    except IntegrityError as exc:
        raise ConflictError(
            "이미 존재하는 관리자 ID 입니다.", detail_code="ADMIN_ALREADY_EXISTS"
        ) from exc

    logger.info(f"Admin {admin_id} registered")
    return data


def list_admins() -> list[dict[str, Any]]:
    with get_session() as session:
        admins = session.execute(select(Admin).order_by(Admin.created_at, Admin.id)).scalars().all()
        result = []
        for admin in admins:
            data = serialize_admin(admin, include_contact=True)
            data["stores"] = sorted(mapping.store_id for mapping in admin.mappings)
            result.append(data)
        return result


def delete_admin(admin_id: str) -> None:
    """Delete an admin without store mappings (``MAPPING_EXISTS`` otherwise)."""
    with get_session() as session:
        _require_admin(session, admin_id)
        if _count(session, AdminStoreMapping.id, AdminStoreMapping.admin_id == admin_id):
            raise ConflictError(
                "매장이 연결된 관리자는 삭제할 수 없습니다. 먼저 매장 연결을 해제하세요.",
                detail_code="MAPPING_EXISTS",
            )
        session.execute(delete(Admin).where(Admin.id == admin_id))

    logger.info(f"Admin {admin_id} deleted")


# ---------------------------------------------------------------------------
# Admin-store mappings
# ---------------------------------------------------------------------------


def list_mappings(admin_id: str | None = None, store_id: str | None = None) -> list[dict[str, Any]]:
    stmt = select(AdminStoreMapping).order_by(AdminStoreMapping.created_at, AdminStoreMapping.id)
    if admin_id:
        stmt = stmt.where(AdminStoreMapping.admin_id == admin_id)
    if store_id:
        stmt = stmt.where(AdminStoreMapping.store_id == store_id)
    with get_session() as session:
        return [serialize_mapping(m) for m in session.execute(stmt).scalars().all()]


def upsert_mapping(payload: dict[str, Any]) -> dict[str, Any]:
    """
    Insert or update the ``(adminId, storeId)`` mapping.

    Setting ``isDefault`` clears the admin's other defaults.
    """
    request = MappingUpsertRequest.model_validate(payload)
    try:
        with get_session() as session:
            _require_admin(session, request.adminId)
            _require_store(session, request.storeId)

            mapping = session.execute(
                select(AdminStoreMapping).where(
                    AdminStoreMapping.admin_id == request.adminId,
                    AdminStoreMapping.store_id == request.storeId,
                )
            ).scalar_one_or_none()
            if mapping is None:
                mapping = AdminStoreMapping(admin_id=request.adminId, store_id=request.storeId)
                session.add(mapping)
            mapping.note = request.note
            mapping.is_default = request.isDefault
            session.flush()

            if request.isDefault:
                session.execute(
                    update(AdminStoreMapping)
                    .where(
                        AdminStoreMapping.admin_id == request.adminId,
                        AdminStoreMapping.id != mapping.id,
                    )
                    .values(is_default=False)
                    .execution_options(synchronize_session=False)
                )
            data = serialize_mapping(mapping)
    except IntegrityError as exc:
        raise ConflictError(
            "동시에 같은 매장 연결이 생성되었습니다. 다시 시도하세요.", retryable=True
        ) from exc

    logger.info(f"Mapping {request.adminId} -> {request.storeId} saved")
    return data


def delete_mapping(admin_id: str, store_id: str) -> None:
    with get_session() as session:
        result = session.execute(
            delete(AdminStoreMapping).where(
                AdminStoreMapping.admin_id == admin_id,
                AdminStoreMapping.store_id == store_id,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError("매장 연결을 찾을 수 없습니다.", detail_code="MAPPING_NOT_FOUND")

    logger.info(f"Mapping {admin_id} -> {store_id} deleted")
