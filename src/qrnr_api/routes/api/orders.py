"""
Orders API - store-scoped order list and status/meta patches, and customer
order placement.
"""

from flask import Blueprint, jsonify, request

from qrnr_api.extensions import get_publisher, json_body
from qrnr_shared.jwt_middleware import current_store_id, customer_store_id
from qrnr_shared.schemas import UpdateOrderRequest
from qrnr_shared.security_middleware import rate_limit
from qrnr_shared.serializers import success_response
from qrnr_shared.services import order_service

orders_bp = Blueprint("orders", __name__)


@orders_bp.get("/orders")
def list_orders():
    """
    List the orders of the caller's store, newest first.

    Query params: ``type`` (store|delivery|reserve), ``from``/``to`` (ISO
    date or datetime), ``status``.
    """
    orders = order_service.list_orders(
        current_store_id(),
        order_type=request.args.get("type"),
        date_from=request.args.get("from"),
        date_to=request.args.get("to"),
        status=request.args.get("status"),
    )
    return jsonify(success_response({"orders": orders}))


@orders_bp.get("/orders/<order_id>")
def get_order(order_id: str):
    return jsonify(success_response({"order": order_service.get_order(current_store_id(), order_id)}))


@orders_bp.post("/orders")
@rate_limit("orders")
def create_order():
    payload = json_body()
    order = order_service.create_order(customer_store_id(), payload, publisher=get_publisher())
    return jsonify(success_response({"ok": True, "order": order})), 201


@orders_bp.put("/orders")
@rate_limit("orders-update")
def update_order():
    body = UpdateOrderRequest.model_validate(json_body())
    order = order_service.update_order(
        current_store_id(), body.id, status=body.status, meta=body.meta
    )
    return jsonify(success_response({"ok": True, "order": order}))
