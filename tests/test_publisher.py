import threading
import time

from qrnr_shared.constants import EventKind
from qrnr_shared.realtime import EventPublisher, NotificationEvent, RealtimeTransport, make_event_id


class BrokenTransport(RealtimeTransport):
    def publish(self, channel, message):
        raise ConnectionError("redis down")

    def subscribe(self, channel, callback, on_disconnect=None):
        raise ConnectionError("redis down")


ORDER = {
    "id": "abc123",
    "storeId": "narae",
    "orderNo": "T-1",
    "type": "store",
    "status": "주문접수",
    "tableNo": "3",
    "amount": 1500,
}


def test_event_id_is_derived_from_source():
    assert make_event_id(EventKind.NEW_ORDER, "abc123") == "NEW_ORDER:abc123"
    event = NotificationEvent.for_source(EventKind.NEW_CALL, "narae", 7, {})
    assert event.to_message()["eventId"] == "NEW_CALL:7"


def test_order_created_reaches_store_channel_only(transport):
    narae, haru = [], []
    transport.subscribe("qrnr:store:narae", narae.append)
    transport.subscribe("qrnr:store:haru", haru.append)

    assert EventPublisher(transport).order_created(ORDER) is True
    assert transport.flush()

    assert len(narae) == 1
    assert haru == []
    assert narae[0]["payload"]["amount"] == 1500
    assert narae[0]["storeId"] == "narae"


def test_custom_channel_prefix(transport):
    received = []
    transport.subscribe("tenant-a:narae", received.append)
    EventPublisher(transport, channel_prefix="tenant-a").order_created(ORDER)
    assert transport.flush()
    assert len(received) == 1


def test_transport_failure_is_not_raised():
    assert EventPublisher(BrokenTransport()).order_created(ORDER) is False


def test_no_transport_drops_events():
    assert EventPublisher(None).order_created(ORDER) is False


def test_failed_publish_does_not_fail_order_creation(app, client, stores):
    app.extensions["qrnr_publisher"] = EventPublisher(BrokenTransport())
    response = client.post("/api/orders", json={"storeId": "narae", "amount": 1000})
    assert response.status_code == 201


def test_blocked_subscriber_does_not_hold_up_order_creation(client, transport, stores):
    release = threading.Event()
    delivered = threading.Event()
    received = []

    def stuck(message):
        release.wait(timeout=10)

    def fast(message):
        received.append(message)
        delivered.set()

    transport.subscribe("qrnr:store:narae", stuck)
    transport.subscribe("qrnr:store:narae", fast)
    try:
        started = time.monotonic()
        first = client.post("/api/orders", json={"storeId": "narae", "amount": 1000})
        second = client.post("/api/orders", json={"storeId": "narae", "amount": 2000})
        elapsed = time.monotonic() - started

        assert first.status_code == 201
        assert second.status_code == 201
        assert elapsed < 2
        assert delivered.wait(timeout=2)
        assert received[0]["payload"]["amount"] == 1000
    finally:
        release.set()
    assert transport.flush()
    assert [m["payload"]["amount"] for m in received] == [1000, 2000]
