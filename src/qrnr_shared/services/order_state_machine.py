"""
Order State Machine - status transitions per order type.

Each order type has a main line of statuses that may only move forward
(skipping ahead is allowed, going back is not) plus side exits into
cancellation. Terminal statuses accept no further change.
"""

from __future__ import annotations

from dataclasses import dataclass

from qrnr_shared.constants import TERMINAL_ORDER_STATUSES, OrderStatus, OrderType
from qrnr_shared.errors import ConflictError, ValidationError


class OrderStateError(ConflictError):
    """Error raised when a state transition is invalid."""

    def __init__(self, message: str, current_status: OrderStatus, target_status: OrderStatus):
        super().__init__(
            message,
            detail_code="INVALID_TRANSITION",
            details={"from": current_status.value, "to": target_status.value},
        )
        self.current_status = current_status
        self.target_status = target_status


@dataclass(frozen=True)
class Lifecycle:
    """Main line and side exits of one order type."""

    initial: OrderStatus
    main_line: tuple[OrderStatus, ...]
    exits: frozenset[OrderStatus]

    def statuses(self) -> set[OrderStatus]:
        return set(self.main_line) | set(self.exits)


_STORE_LIFECYCLE = Lifecycle(
    initial=OrderStatus.RECEIVED,
    main_line=(OrderStatus.RECEIVED, OrderStatus.PREPARING, OrderStatus.COMPLETED),
    exits=frozenset({OrderStatus.CANCELLED, OrderStatus.PAYMENT_CANCELLED}),
)

LIFECYCLES: dict[OrderType, Lifecycle] = {
    OrderType.STORE: _STORE_LIFECYCLE,
    # Delivery orders are managed with the same select box as table orders
    OrderType.DELIVERY: _STORE_LIFECYCLE,
    OrderType.RESERVE: Lifecycle(
        initial=OrderStatus.PAYMENT_UNCONFIRMED,
        main_line=(
            OrderStatus.PAYMENT_UNCONFIRMED,
            OrderStatus.RECEIVED,
            OrderStatus.PREPARING,
            OrderStatus.COMPLETED,
        ),
        exits=frozenset({OrderStatus.CANCELLED}),
    ),
}


class OrderStateMachine:
    """
    Validates order status transitions.

    Responsibilities:
    - Resolve the default status of a new order
    - Validate that a status belongs to the order type
    - Reject backward moves and moves out of terminal statuses
    """

    def __init__(self, lifecycles: dict[OrderType, Lifecycle] | None = None):
        self._lifecycles = lifecycles or LIFECYCLES

    def lifecycle(self, order_type: OrderType | str) -> Lifecycle:
        try:
            return self._lifecycles[OrderType(order_type)]
        except ValueError:
            raise ValidationError(f"알 수 없는 주문 유형: {order_type}") from None

    def initial_status(self, order_type: OrderType | str) -> OrderStatus:
        return self.lifecycle(order_type).initial

    def parse_status(self, order_type: OrderType | str, status: str) -> OrderStatus:
        """Validate ``status`` for the order type (raises ValidationError)."""
        try:
            parsed = OrderStatus(status)
        except ValueError:
            raise ValidationError(f"알 수 없는 주문 상태: {status}") from None
        if parsed not in self.lifecycle(order_type).statuses():
            raise ValidationError(f"'{order_type}' 주문에 허용되지 않는 상태: {status}")
        return parsed

    def is_terminal(self, status: OrderStatus | str) -> bool:
        return OrderStatus(status) in TERMINAL_ORDER_STATUSES

    def can_transition(
        self, order_type: OrderType | str, current: OrderStatus | str, target: OrderStatus | str
    ) -> bool:
        try:
            self.validate_transition(order_type, current, target)
        except (OrderStateError, ValidationError):
            return False
        return True

    def validate_transition(
        self, order_type: OrderType | str, current: OrderStatus | str, target: OrderStatus | str
    ) -> bool:
        """
        Validate ``current -> target``.

        Returns False when the transition is a no-op (same status), True when
        it must be applied. Raises OrderStateError when it is not allowed.
        """
        lifecycle = self.lifecycle(order_type)
        current_status = OrderStatus(current)
        target_status = self.parse_status(order_type, str(getattr(target, "value", target)))

        if current_status == target_status:
            return False

        if current_status in TERMINAL_ORDER_STATUSES:
            raise OrderStateError(
                f"종료된 주문은 변경할 수 없습니다: {current_status.value}",
                current_status,
                target_status,
            )

        if target_status in lifecycle.exits:
            return True

        if current_status not in lifecycle.main_line:
            raise OrderStateError(
                f"잘못된 현재 상태: {current_status.value}", current_status, target_status
            )

        if lifecycle.main_line.index(target_status) < lifecycle.main_line.index(current_status):
            raise OrderStateError(
                f"이전 상태로 되돌릴 수 없습니다: {current_status.value} → {target_status.value}",
                current_status,
                target_status,
            )
        return True


# Shared instance
order_state_machine = OrderStateMachine()
