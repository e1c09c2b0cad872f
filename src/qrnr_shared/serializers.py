"""
Serializers for consistent API responses.
"""

from datetime import date, datetime, timezone
from typing import Any

from qrnr_shared.models import (
    Admin,
    AdminStoreMapping,
    CallLog,
    Order,
    PaymentCode,
    Store,
    StoreSettings,
)


def isoformat(value: datetime | date | None) -> str | None:
    """ISO-8601 text for a stored timestamp; naive values are read as UTC."""
    if value is None:
        return None
    if isinstance(value, datetime) and value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def serialize_order(order: Order) -> dict[str, Any]:
    meta = {key: value for key, value in (order.meta or {}).items() if key != "type"}
    meta["history"] = [{"status": entry.status, "at": isoformat(entry.at)} for entry in order.history]
    return {
        "id": order.id,
        "storeId": order.store_id,
        "orderNo": order.order_no,
        "type": order.type,
        "status": order.status,
        "tableNo": order.table_no,
        "amount": order.amount,
        "meta": meta,
        "createdAt": isoformat(order.created_at),
        "updatedAt": isoformat(order.updated_at),
    }


def serialize_call(call: CallLog) -> dict[str, Any]:
    return {
        "id": call.id,
        "storeId": call.store_id,
        "tableNo": call.table_no,
        "message": call.message,
        "status": call.status,
        "createdAt": isoformat(call.created_at),
        "acknowledgedAt": isoformat(call.acknowledged_at),
    }


def serialize_store(store: Store) -> dict[str, Any]:
    return {
        "storeId": store.store_id,
        "name": store.name,
        "code": store.code,
        "qrLimit": store.qr_limit,
        "createdAt": isoformat(store.created_at),
        "updatedAt": isoformat(store.updated_at),
    }


def serialize_admin(admin: Admin, include_contact: bool = False) -> dict[str, Any]:
    data = {
        "id": admin.id,
        "name": admin.name,
        "role": admin.role,
        "createdAt": isoformat(admin.created_at),
    }
    if include_contact:
        data["email"] = admin.email
        data["phone"] = admin.phone
    return data


def serialize_mapping(mapping: AdminStoreMapping) -> dict[str, Any]:
    return {
        "adminId": mapping.admin_id,
        "storeId": mapping.store_id,
        "isDefault": mapping.is_default,
        "note": mapping.note,
        "createdAt": isoformat(mapping.created_at),
    }


def serialize_settings(store_id: str, settings: StoreSettings | None) -> dict[str, Any]:
    return {
        "storeId": store_id,
        "ownerBank": settings.owner_bank if settings else None,
        "updatedAt": isoformat(settings.updated_at) if settings else None,
    }


def serialize_payment_code(payment_code: PaymentCode) -> dict[str, Any]:
    return {
        "storeId": payment_code.store_id,
        "date": payment_code.code_date.isoformat(),
        "code": payment_code.code,
    }


def success_response(data: Any, message: str | None = None) -> dict[str, Any]:
    """Create a standardized success response."""
    response = {"status": "success", "data": data, "error": None}
    if message:
        response["message"] = message
    return response


def error_response(error: str, code: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Create a standardized error response."""
    response = {"status": "error", "data": None, "error": error, "code": code}
    if details:
        response["details"] = details
    return response
