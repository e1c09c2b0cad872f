"""
Stores API - tenant CRUD for the super console.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify

from qrnr_api.extensions import json_body
from qrnr_shared.jwt_middleware import get_auth_context
from qrnr_shared.schemas import StoreKeyRequest
from qrnr_shared.security_middleware import rate_limit
from qrnr_shared.serializers import success_response
from qrnr_shared.services import store_service

stores_bp = Blueprint("stores", __name__)


@stores_bp.get("/stores")
def list_stores():
    """Super users see every store; admins only their own."""
    auth = get_auth_context()
    stores = store_service.list_stores(None if auth.is_super else auth.store_id)
    return jsonify(success_response({"stores": stores}))


@stores_bp.post("/stores")
@rate_limit("stores")
def create_store():
    store = store_service.create_store(json_body())
    return jsonify(success_response({"store": store})), HTTPStatus.CREATED


@stores_bp.put("/stores")
@rate_limit("stores")
def update_store():
    store = store_service.update_store(json_body())
    return jsonify(success_response({"store": store}))


@stores_bp.delete("/stores")
@rate_limit("stores")
def delete_store():
    body = StoreKeyRequest.model_validate(json_body())
    store_service.delete_store(body.storeId)
    return jsonify(success_response({"ok": True, "storeId": body.storeId}))
