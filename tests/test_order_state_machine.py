import pytest

from qrnr_shared.constants import OrderStatus, OrderType
from qrnr_shared.errors import ValidationError
from qrnr_shared.services.order_state_machine import OrderStateError, order_state_machine


def test_initial_status_per_type():
    assert order_state_machine.initial_status(OrderType.STORE) is OrderStatus.RECEIVED
    assert order_state_machine.initial_status("delivery") is OrderStatus.RECEIVED
    assert order_state_machine.initial_status("reserve") is OrderStatus.PAYMENT_UNCONFIRMED


@pytest.mark.parametrize(
    "order_type, current, target",
    [
        ("store", "주문접수", "준비중"),
        ("store", "주문접수", "주문완료"),
        ("store", "준비중", "주문취소"),
        ("store", "주문접수", "결제취소"),
        ("reserve", "입금 미확인", "주문접수"),
        ("reserve", "준비중", "주문취소"),
    ],
)
def test_forward_and_exit_moves_are_applied(order_type, current, target):
    assert order_state_machine.validate_transition(order_type, current, target) is True


def test_same_status_is_a_no_op():
    assert order_state_machine.validate_transition("store", "준비중", "준비중") is False


def test_backward_move_is_rejected():
    with pytest.raises(OrderStateError) as exc_info:
        order_state_machine.validate_transition("store", "준비중", "주문접수")
    assert exc_info.value.status == 409
    assert exc_info.value.to_dict()["code"] == "INVALID_TRANSITION"


@pytest.mark.parametrize("terminal", ["주문완료", "주문취소", "결제취소"])
def test_terminal_statuses_accept_no_change(terminal):
    assert order_state_machine.is_terminal(terminal)
    with pytest.raises(OrderStateError):
        order_state_machine.validate_transition("store", terminal, "준비중")


def test_status_foreign_to_order_type_is_a_validation_error():
    with pytest.raises(ValidationError):
        order_state_machine.parse_status("store", "입금 미확인")
    with pytest.raises(ValidationError):
        order_state_machine.parse_status("reserve", "결제취소")
    with pytest.raises(ValidationError):
        order_state_machine.parse_status("store", "배달중")


def test_can_transition_does_not_raise():
    assert order_state_machine.can_transition("reserve", "입금 미확인", "준비중")
    assert not order_state_machine.can_transition("reserve", "주문취소", "준비중")
    assert not order_state_machine.can_transition("store", "주문접수", "unknown")
