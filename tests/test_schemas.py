import pytest
from pydantic import ValidationError

from qrnr_shared.schemas import (
    CreateOrderRequest,
    UpdateOrderRequest,
    build_order_meta,
    coerce_amount,
)


@pytest.mark.parametrize("value, expected", [(1500, 1500), ("1500", 1500), ("1,500", 1500), (0, 0), (1500.0, 1500)])
def test_coerce_amount_accepts_integral_values(value, expected):
    assert coerce_amount(value) == expected


@pytest.mark.parametrize("value", ["abc", "15.5", 15.5, -1, "-1", True, None, ""])
def test_coerce_amount_rejects_everything_else(value):
    with pytest.raises(ValueError):
        coerce_amount(value)


def test_create_order_request_reads_legacy_aliases():
    request = CreateOrderRequest.model_validate(
        {"storeId": "narae", "orderId": "A-1", "tableNo": 7, "amount": "12000", "time": "18:30"}
    )
    assert request.order_no == "A-1"
    assert request.table_no == "7"
    assert request.amount == 12000
    assert request.reserve_time == "18:30"


def test_create_order_request_rejects_non_numeric_amount():
    with pytest.raises(ValidationError):
        CreateOrderRequest.model_validate({"storeId": "narae", "amount": "abc"})


def test_meta_payload_defaults_order_name_and_uses_customer_memo():
    request = CreateOrderRequest.model_validate(
        {
            "type": "delivery",
            "amount": 3000,
            "customer": {"name": "김철수", "phone": "010-0000-0000", "req": "문 앞에 두세요"},
        }
    )
    meta = build_order_meta(request.type, request.meta_payload())
    assert meta["type"] == "delivery"
    assert meta["orderName"] == "주문"
    assert meta["memo"] == "문 앞에 두세요"
    assert meta["payment"]["status"] == "미결제"


def test_reserve_meta_requires_date_and_time():
    with pytest.raises(ValidationError):
        build_order_meta("reserve", {"cart": []})
    meta = build_order_meta("reserve", {"reserveDate": "2024-05-01", "reserveTime": "19:00"})
    assert meta["reserveDate"] == "2024-05-01"


def test_store_meta_rejects_unknown_keys():
    with pytest.raises(ValidationError):
        build_order_meta("store", {"reserveDate": "2024-05-01"})


def test_cart_item_price_is_coerced():
    meta = build_order_meta("store", {"cart": [{"id": 1, "name": "김밥", "price": "3500", "qty": 2}]})
    assert meta["cart"][0] == {"id": "1", "name": "김밥", "price": 3500, "qty": 2, "options": []}


def test_update_request_requires_status_or_meta():
    with pytest.raises(ValidationError):
        UpdateOrderRequest.model_validate({"id": "abc"})
    assert UpdateOrderRequest.model_validate({"id": "abc", "status": "준비중"}).status == "준비중"
