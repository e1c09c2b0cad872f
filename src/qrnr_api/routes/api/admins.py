"""
Admins API - admin account management for the super console.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from qrnr_api.extensions import json_body
from qrnr_shared.schemas import AdminDeleteRequest
from qrnr_shared.security_middleware import rate_limit
from qrnr_shared.serializers import success_response
from qrnr_shared.services import store_service

admins_bp = Blueprint("admins", __name__)


@admins_bp.get("/admins")
def list_admins():
    return jsonify(success_response({"admins": store_service.list_admins()}))


@admins_bp.post("/admins")
@rate_limit("admins")
def register_admin():
    admin = store_service.register_admin(json_body())
    return jsonify(success_response({"admin": admin})), HTTPStatus.CREATED


@admins_bp.delete("/admins")
@rate_limit("admins")
def delete_admin():
    """Delete an admin account; refused while the admin still has store mappings."""
    payload = {**request.args.to_dict(), **json_body()}
    body = AdminDeleteRequest.model_validate(payload)
    store_service.delete_admin(body.adminId)
    return jsonify(success_response({"ok": True, "adminId": body.adminId}))
