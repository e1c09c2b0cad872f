"""Payment providers module."""

from .base_provider import PaymentError, PaymentProvider, PaymentResult
from .toss_provider import TossProvider

__all__ = ["PaymentError", "PaymentProvider", "PaymentResult", "TossProvider"]
