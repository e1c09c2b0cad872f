"""Toss Payments provider implementation."""

from __future__ import annotations

from typing import Any

import requests

from qrnr_shared.logging_config import get_logger

from .base_provider import PaymentError, PaymentProvider, PaymentResult

logger = get_logger(__name__)


class TossProvider(PaymentProvider):
    """Toss Payments gateway (Korea). Authenticates with HTTP Basic ``<secret>:``."""

    name = "toss"

    def __init__(self, secret_key: str, api_url: str = "https://api.tosspayments.com/v1", timeout: int = 10):
        self.secret_key = secret_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def validate_configuration(self) -> bool:
        if not self.secret_key:
            raise PaymentError("PAYMENT_SECRET_KEY 가 설정되지 않았습니다.", status_code=500)
        return True

    def confirm(self, payment_key: str, order_id: str, amount: int) -> PaymentResult:
        data = self._post(
            "/payments/confirm",
            {"paymentKey": payment_key, "orderId": order_id, "amount": amount},
        )
        return self._to_result(data, payment_key, order_id, amount)

    def cancel(self, payment_key: str, reason: str) -> PaymentResult:
        data = self._post(f"/payments/{payment_key}/cancel", {"cancelReason": reason})
        return self._to_result(
            data, payment_key, str(data.get("orderId", "")), int(data.get("totalAmount") or 0)
        )

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.validate_configuration()

        try:
            response = requests.post(
                f"{self.api_url}{path}",
                json=payload,
                auth=(self.secret_key, ""),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise PaymentError("결제 서버 응답 시간이 초과되었습니다.", status_code=504) from None
        except requests.exceptions.RequestException as e:
            logger.error(f"Payment provider request {path} failed: {e}")
            raise PaymentError("결제 서버에 연결할 수 없습니다.", status_code=502) from e

        try:
            body: Any = response.json()
        except ValueError:
            body = response.text

        if not response.ok:
            message = body.get("message") if isinstance(body, dict) else None
            logger.warning(f"Payment provider rejected {path}: status={response.status_code}")
            raise PaymentError(
                message or f"HTTP {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        if not isinstance(body, dict):
            raise PaymentError("결제 서버 응답을 해석할 수 없습니다.", status_code=502, body=body)
        return body

    def _to_result(
        self, data: dict[str, Any], payment_key: str, order_id: str, amount: int
    ) -> PaymentResult:
        return PaymentResult(
            payment_key=data.get("paymentKey") or payment_key,
            order_id=data.get("orderId") or order_id,
            amount=int(data.get("totalAmount") or amount),
            status=data.get("status") or "DONE",
            method=data.get("method"),
            approved_at=data.get("approvedAt"),
            provider=self.name,
            raw=data,
        )
