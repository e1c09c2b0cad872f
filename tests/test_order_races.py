from sqlalchemy import insert, select, update

from qrnr_shared.db import get_engine
from qrnr_shared.models import Order, OrderStatusHistory
from qrnr_shared.services import order_service


def _order(response):
    assert response.status_code in (200, 201), response.get_json()
    return response.get_json()["data"]["order"]


def _after_read(monkeypatch, change):
    """Run ``change`` in its own committed transaction right after the service reads the order."""
    original = order_service._get_store_order

    def read_then_change(session, store_id, order_id):
        order = original(session, store_id, order_id)
        with get_engine().begin() as conn:
            change(conn, order_id)
        return order

    monkeypatch.setattr(order_service, "_get_store_order", read_then_change)


def _rename(conn, order_id):
    meta = conn.execute(select(Order.meta).where(Order.id == order_id)).scalar_one()
    conn.execute(
        update(Order).where(Order.id == order_id).values(meta={**meta, "orderName": "포장 주문"})
    )


def _advance_to_preparing(conn, order_id):
    conn.execute(update(Order).where(Order.id == order_id).values(status="준비중"))
    conn.execute(insert(OrderStatusHistory).values(order_id=order_id, status="준비중"))


def test_meta_patch_keeps_concurrent_meta_change(place_order, monkeypatch):
    order = _order(place_order())
    _after_read(monkeypatch, _rename)

    patched = order_service.update_order("narae", order["id"], meta={"memo": "덜 맵게"})

    assert patched["meta"]["memo"] == "덜 맵게"
    assert patched["meta"]["orderName"] == "포장 주문"

    monkeypatch.undo()
    stored = order_service.get_order("narae", order["id"])
    assert stored["meta"]["orderName"] == "포장 주문"
    assert stored["meta"]["memo"] == "덜 맵게"


def test_payment_record_keeps_concurrent_meta_change(place_order, payment_provider, monkeypatch):
    order = _order(place_order())
    _after_read(monkeypatch, _rename)

    paid = order_service.confirm_payment("narae", order["id"], "pk_1", 1500, payment_provider)

    assert paid["meta"]["payment"]["status"] == "결제완료"
    assert paid["meta"]["orderName"] == "포장 주문"


def test_status_race_loser_gets_retryable_conflict(client, place_order, admin_headers, monkeypatch):
    order = _order(place_order())
    headers = admin_headers()
    _after_read(monkeypatch, _advance_to_preparing)

    response = client.put("/api/orders", json={"id": order["id"], "status": "준비중"}, headers=headers)

    assert response.status_code == 409
    body = response.get_json()
    assert body["code"] == "STATUS_CHANGED"
    assert body["retryable"] is True
    assert body["details"]["expected"] == "주문접수"

    monkeypatch.undo()
    stored = _order(client.get(f"/api/orders/{order['id']}", headers=headers))
    assert stored["status"] == "준비중"
    assert [h["status"] for h in stored["meta"]["history"]] == ["주문접수", "준비중"]
