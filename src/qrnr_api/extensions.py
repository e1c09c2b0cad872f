"""
Accessors for the collaborators attached to the Flask app by ``create_app``.
"""

from __future__ import annotations

from typing import Any

from flask import current_app, request

from qrnr_shared.config import AppConfig
from qrnr_shared.errors import ValidationError
from qrnr_shared.realtime.publisher import EventPublisher
from qrnr_shared.realtime.transport import RealtimeTransport
from qrnr_shared.services.payment_providers import PaymentProvider

TRANSPORT_EXTENSION = "qrnr_transport"
PUBLISHER_EXTENSION = "qrnr_publisher"
PAYMENT_PROVIDER_EXTENSION = "qrnr_payment_provider"


def get_config() -> AppConfig:
    return current_app.config["QRNR_CONFIG"]


def get_transport() -> RealtimeTransport:
    return current_app.extensions[TRANSPORT_EXTENSION]


def get_publisher() -> EventPublisher:
    return current_app.extensions[PUBLISHER_EXTENSION]


def get_payment_provider() -> PaymentProvider:
    return current_app.extensions[PAYMENT_PROVIDER_EXTENSION]


def json_body() -> dict[str, Any]:
    """JSON object body of the request; an empty body reads as ``{}``."""
    if not request.get_data(cache=True):
        return {}
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON 객체 형식의 요청 본문이 필요합니다.", detail_code="BAD_JSON")
    return data
