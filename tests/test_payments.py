from qrnr_shared.services.payment_providers import PaymentError


def _place(place_order, **fields):
    response = place_order(**fields)
    assert response.status_code == 201
    return response.get_json()["data"]["order"]


def _confirm(client, order, **fields):
    payload = {"storeId": order["storeId"], "paymentKey": "pk_1", "amount": order["amount"], **fields}
    return client.post(f"/api/orders/{order['id']}/payment/confirm", json=payload)


def test_confirm_records_payment(client, place_order, payment_provider):
    order = _place(place_order, amount=12000)

    response = _confirm(client, order, amount="12000")
    assert response.status_code == 200
    paid = response.get_json()["data"]["order"]
    assert paid["meta"]["payment"]["status"] == "결제완료"
    assert paid["meta"]["payment"]["paymentKey"] == "pk_1"
    assert paid["status"] == "주문접수"
    assert payment_provider.confirmed == [("pk_1", order["orderNo"], 12000)]


def test_amount_mismatch_is_rejected_before_provider(client, place_order, payment_provider):
    order = _place(place_order, amount=12000)

    response = _confirm(client, order, amount=1000)
    assert response.status_code == 400
    assert response.get_json()["code"] == "AMOUNT_MISMATCH"
    assert payment_provider.confirmed == []


def test_confirm_advances_reserve_order(client, place_order):
    order = _place(
        place_order, type="reserve", reserveDate="2024-05-01", reserveTime="19:00", amount=30000
    )
    assert order["status"] == "입금 미확인"

    paid = _confirm(client, order).get_json()["data"]["order"]
    assert paid["status"] == "주문접수"
    assert [h["status"] for h in paid["meta"]["history"]] == ["입금 미확인", "주문접수"]


def test_second_confirm_conflicts(client, place_order):
    order = _place(place_order)
    assert _confirm(client, order).status_code == 200

    response = _confirm(client, order)
    assert response.status_code == 409
    assert response.get_json()["code"] == "ALREADY_PAID"


def test_provider_failure_is_surfaced_verbatim(client, place_order, payment_provider, admin_headers):
    order = _place(place_order)
    payment_provider.fail_with = PaymentError(
        "카드 한도 초과",
        status_code=400,
        body={"code": "REJECT_CARD_PAYMENT", "message": "카드 한도 초과"},
    )

    response = _confirm(client, order)
    assert response.status_code == 400
    body = response.get_json()
    assert body["status"] == "error"
    assert body["code"] == "REJECT_CARD_PAYMENT"
    assert body["category"] == "UPSTREAM_FAILURE"
    assert body["provider"] == {"code": "REJECT_CARD_PAYMENT", "message": "카드 한도 초과"}

    # The order is left unpaid
    fetched = client.get(f"/api/orders/{order['id']}", headers=admin_headers()).get_json()["data"]["order"]
    assert fetched["meta"]["payment"]["status"] == "미결제"


def test_cancel_paid_order_refunds_and_cancels(client, place_order, payment_provider, admin_headers):
    order = _place(place_order)
    _confirm(client, order)

    response = client.post(
        f"/api/orders/{order['id']}/payment/cancel", json={"reason": "고객 요청"}, headers=admin_headers()
    )
    assert response.status_code == 200
    cancelled = response.get_json()["data"]["order"]
    assert cancelled["status"] == "결제취소"
    assert cancelled["meta"]["payment"]["status"] == "결제취소"
    assert payment_provider.cancelled == [("pk_1", "고객 요청")]

    response = client.post(f"/api/orders/{order['id']}/payment/cancel", headers=admin_headers())
    assert response.status_code == 409
    assert response.get_json()["code"] == "ALREADY_CANCELLED"


def test_cancel_unpaid_reserve_order_skips_provider(client, place_order, payment_provider, admin_headers):
    order = _place(place_order, type="reserve", reserveDate="2024-05-01", reserveTime="19:00")

    response = client.post(f"/api/orders/{order['id']}/payment/cancel", headers=admin_headers())
    assert response.status_code == 200
    assert response.get_json()["data"]["order"]["status"] == "주문취소"
    assert payment_provider.cancelled == []
