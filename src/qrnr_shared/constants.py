"""
Application constants and enums.
"""

from datetime import timedelta, timezone
from enum import Enum


class OrderType(str, Enum):
    STORE = "store"
    DELIVERY = "delivery"
    RESERVE = "reserve"


class OrderStatus(str, Enum):
    PAYMENT_UNCONFIRMED = "입금 미확인"
    RECEIVED = "주문접수"
    PREPARING = "준비중"
    COMPLETED = "주문완료"
    CANCELLED = "주문취소"
    PAYMENT_CANCELLED = "결제취소"


class PaymentStatus(str, Enum):
    UNPAID = "미결제"
    PAID = "결제완료"
    CANCELLED = "결제취소"


class CallStatus(str, Enum):
    PENDING = "pending"
    ACKNOWLEDGED = "acknowledged"


class EventKind(str, Enum):
    NEW_ORDER = "NEW_ORDER"
    NEW_CALL = "NEW_CALL"


class AdminRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    STAFF = "staff"

    @classmethod
    def all_values(cls) -> set:
        return {member.value for member in cls}


TERMINAL_ORDER_STATUSES = {
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
    OrderStatus.PAYMENT_CANCELLED,
}

DEFAULT_QR_LIMIT = 10

# Payment codes roll over at midnight Korea time
KST = timezone(timedelta(hours=9))

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200
