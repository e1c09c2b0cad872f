"""Base payment provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class PaymentError(Exception):
    """
    Raised when a payment provider call fails.

    ``status_code`` and ``body`` carry the provider's own response so it can be
    surfaced to the caller unchanged.
    """

    def __init__(self, message: str, status_code: int = 502, body: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    @property
    def provider_code(self) -> str | None:
        if isinstance(self.body, dict):
            return self.body.get("code")
        return None


@dataclass
class PaymentResult:
    """Result of a payment transaction."""

    payment_key: str
    order_id: str
    amount: int
    status: str
    method: str | None = None
    approved_at: str | None = None
    provider: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class PaymentProvider(ABC):
    """Abstract base class for payment providers."""

    name = "base"

    @abstractmethod
    def confirm(self, payment_key: str, order_id: str, amount: int) -> PaymentResult:
        """
        Confirm an authorised payment.

        Args:
            payment_key: Key returned to the browser by the provider widget
            order_id: Merchant order number the payment was opened for
            amount: Amount in the smallest currency unit

        Returns:
            PaymentResult with the provider's status

        Raises:
            PaymentError: If the provider rejects the payment or is unreachable
        """

    @abstractmethod
    def cancel(self, payment_key: str, reason: str) -> PaymentResult:
        """
        Cancel a confirmed payment.

        Raises:
            PaymentError: If the provider rejects the cancellation
        """

    @abstractmethod
    def validate_configuration(self) -> bool:
        """
        Validate that the provider is properly configured.

        Returns:
            True if configured, raises PaymentError otherwise
        """
