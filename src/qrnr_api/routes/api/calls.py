"""
Calls API - "call staff" from a table and the admin call log.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from qrnr_api.extensions import get_publisher, json_body
from qrnr_shared.jwt_middleware import current_store_id
from qrnr_shared.schemas import CallRequest
from qrnr_shared.security_middleware import rate_limit
from qrnr_shared.serializers import success_response
from qrnr_shared.services import call_service

calls_bp = Blueprint("calls", __name__)


@calls_bp.post("/call")
@rate_limit("call")
def create_call():
    body = CallRequest.model_validate(json_body())
    call = call_service.create_call(body.storeId, body.table, body.note, publisher=get_publisher())
    return jsonify(success_response({"ok": True, "call": call})), HTTPStatus.CREATED


@calls_bp.get("/calls")
def list_calls():
    limit = request.args.get("limit", type=int) or 50
    calls = call_service.list_calls(current_store_id(), status=request.args.get("status"), limit=limit)
    return jsonify(success_response({"calls": calls}))


@calls_bp.post("/calls/<int:call_id>/ack")
@rate_limit("calls-ack")
def acknowledge_call(call_id: int):
    call = call_service.acknowledge_call(current_store_id(), call_id)
    return jsonify(success_response({"ok": True, "call": call}))
