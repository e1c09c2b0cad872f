"""
Admin-store mappings API.
"""

from flask import Blueprint, jsonify, request

from qrnr_api.extensions import json_body
from qrnr_shared.schemas import MappingDeleteRequest
from qrnr_shared.security_middleware import rate_limit
from qrnr_shared.serializers import success_response
from qrnr_shared.services import store_service

mappings_bp = Blueprint("mappings", __name__)


@mappings_bp.get("/admin-mappings")
def list_mappings():
    mappings = store_service.list_mappings(
        admin_id=request.args.get("adminId") or request.args.get("adminKey"),
        store_id=request.args.get("storeId"),
    )
    return jsonify(success_response({"mappings": mappings}))


@mappings_bp.post("/admin-mappings")
@rate_limit("admin-mappings")
def upsert_mapping():
    mapping = store_service.upsert_mapping(json_body())
    return jsonify(success_response({"mapping": mapping}))


@mappings_bp.delete("/admin-mappings")
@rate_limit("admin-mappings")
def delete_mapping():
    body = MappingDeleteRequest.model_validate(json_body())
    store_service.delete_mapping(body.adminId, body.storeId)
    return jsonify(success_response({"ok": True}))
