"""
Payments API - provider confirmation and cancellation of order payments.
"""

from flask import Blueprint, jsonify

from qrnr_api.extensions import get_payment_provider, json_body
from qrnr_shared.jwt_middleware import current_store_id, customer_store_id
from qrnr_shared.schemas import PaymentConfirmRequest
from qrnr_shared.security_middleware import rate_limit
from qrnr_shared.serializers import success_response
from qrnr_shared.services import order_service

payments_bp = Blueprint("payments", __name__)


@payments_bp.post("/orders/<order_id>/payment/confirm")
@rate_limit("payment-confirm")
def confirm_payment(order_id: str):
    """
    Confirm the payment the customer authorised in the provider widget.

    Provider errors are returned with the provider's status and body.
    """
    payload = json_body()
    body = PaymentConfirmRequest.model_validate(payload)
    order = order_service.confirm_payment(
        customer_store_id(),
        order_id,
        body.paymentKey,
        body.amount,
        get_payment_provider(),
        method=body.method,
    )
    return jsonify(success_response({"ok": True, "order": order}))


@payments_bp.post("/orders/<order_id>/payment/cancel")
@rate_limit("payment-cancel")
def cancel_payment(order_id: str):
    reason = json_body().get("reason") or "관리자 취소"
    order = order_service.cancel_payment(
        current_store_id(), order_id, get_payment_provider(), reason=str(reason)
    )
    return jsonify(success_response({"ok": True, "order": order}))
