"""
Store settings API - owner bank info and the daily payment code.
"""

from flask import Blueprint, jsonify

from qrnr_api.extensions import json_body
from qrnr_shared.jwt_middleware import current_store_id
from qrnr_shared.schemas import StoreSettingsRequest
from qrnr_shared.security_middleware import rate_limit
from qrnr_shared.serializers import success_response
from qrnr_shared.services import settings_service

settings_bp = Blueprint("settings", __name__)


@settings_bp.get("/store-settings")
def get_store_settings():
    return jsonify(success_response({"settings": settings_service.get_settings(current_store_id())}))


@settings_bp.put("/store-settings")
@rate_limit("store-settings")
def put_store_settings():
    body = StoreSettingsRequest.model_validate(json_body())
    settings = settings_service.put_settings(current_store_id(), body.ownerBank)
    return jsonify(success_response({"ok": True, "settings": settings}))


@settings_bp.get("/payment-code")
def get_payment_code():
    return jsonify(success_response(settings_service.get_or_create_payment_code(current_store_id())))


@settings_bp.post("/payment-code")
@rate_limit("payment-code")
def rotate_payment_code():
    return jsonify(success_response(settings_service.rotate_payment_code(current_store_id())))
