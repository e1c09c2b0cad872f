import time
import uuid

import pytest

from qrnr_shared.realtime import (
    AdminNotificationClient,
    DeviceBroadcastChannel,
    InMemoryTransport,
    store_channel,
)
from qrnr_shared.realtime.client import EVENT_PROCESSED, backoff_delays


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


def _message(event_id, kind="NEW_ORDER"):
    return {"eventId": event_id, "storeId": "narae", "kind": kind, "payload": {}}


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def device_name():
    return f"qrnr-admin-test:{uuid.uuid4().hex}"


@pytest.fixture
def clients():
    created = []
    yield created
    for client in created:
        client.stop()


def _make_client(clients, transport, device_name, clock=None, **kwargs):
    alerts, refreshes = [], []
    client = AdminNotificationClient(
        "narae",
        transport,
        device_channel=DeviceBroadcastChannel(device_name),
        on_alert=alerts.append,
        on_refresh=refreshes.append,
        clock=clock or FakeClock(),
        **kwargs,
    )
    clients.append(client)
    return client, alerts, refreshes


def test_duplicate_event_is_discarded(transport, device_name, clients):
    client, alerts, refreshes = _make_client(clients, transport, device_name)

    assert client.handle_message(_message("NEW_ORDER:1")) is True
    assert client.handle_message(_message("NEW_ORDER:1")) is False

    assert len(alerts) == 1
    assert refreshes == ["orders"]
    assert client.last_event_id == "NEW_ORDER:1"


def test_alerts_are_throttled_but_lists_always_refresh(transport, device_name, clients):
    clock = FakeClock()
    client, alerts, refreshes = _make_client(clients, transport, device_name, clock=clock)

    client.handle_message(_message("NEW_ORDER:1"))
    clock.now += 1.0
    client.handle_message(_message("NEW_CALL:7", kind="NEW_CALL"))
    clock.now += 1.5
    client.handle_message(_message("NEW_ORDER:2"))

    assert len(alerts) == 2
    assert refreshes == ["orders", "calls", "orders"]


def test_two_tabs_alert_once_per_event(transport, device_name, clients):
    tab_a, alerts_a, _ = _make_client(clients, transport, device_name)
    tab_b, alerts_b, _ = _make_client(clients, transport, device_name)
    tab_a.start()
    tab_b.start()

    channel = store_channel("narae")
    assert transport.publish(channel, _message("NEW_ORDER:42")) == 2
    assert transport.flush()

    assert len(alerts_a) + len(alerts_b) == 1
    assert tab_a.has_processed("NEW_ORDER:42")
    assert tab_b.has_processed("NEW_ORDER:42")


def test_sibling_alert_counts_towards_throttle(transport, device_name, clients):
    clock = FakeClock()
    tab_a, alerts_a, _ = _make_client(clients, transport, device_name, clock=clock)
    tab_b, alerts_b, refreshes_b = _make_client(clients, transport, device_name, clock=clock)

    tab_a.handle_message(_message("NEW_ORDER:1"))
    clock.now += 1.0
    tab_b.handle_message(_message("NEW_ORDER:2"))

    assert len(alerts_a) == 1
    assert alerts_b == []
    assert refreshes_b == ["orders"]


def test_processed_broadcast_shape(transport, device_name, clients):
    client, _, _ = _make_client(clients, transport, device_name)
    seen = []
    observer = DeviceBroadcastChannel(device_name, on_message=seen.append)
    try:
        client.handle_message(_message("NEW_ORDER:5"))
    finally:
        observer.close()

    assert seen == [{"type": EVENT_PROCESSED, "eventId": "NEW_ORDER:5", "alertedAt": 100.0}]


def test_recent_ids_are_bounded(transport, device_name, clients):
    client, _, _ = _make_client(clients, transport, device_name, recent_limit=2)
    for i in range(3):
        client.handle_message(_message(f"NEW_ORDER:{i}"))

    assert not client.has_processed("NEW_ORDER:0")
    assert client.has_processed("NEW_ORDER:2")


def test_resubscribes_after_disconnect(device_name, clients):
    transport = InMemoryTransport()
    client, alerts, _ = _make_client(
        clients, transport, device_name, clock=time.monotonic, initial_backoff=0.01
    )
    client.start()
    channel = store_channel("narae")
    assert transport.subscriber_count(channel) == 1

    assert transport.disconnect(channel) == 1
    assert _wait_for(lambda: client.supervisor.reconnects == 1)
    assert client.supervisor.connected

    transport.publish(channel, _message("NEW_ORDER:after-reconnect"))
    assert transport.flush()
    assert client.has_processed("NEW_ORDER:after-reconnect")
    transport.close()


def test_stop_unsubscribes(transport, device_name, clients):
    client, _, _ = _make_client(clients, transport, device_name)
    client.start()
    channel = store_channel("narae")
    assert transport.subscriber_count(channel) == 1

    client.stop()
    assert transport.subscriber_count(channel) == 0


def test_backoff_doubles_up_to_cap():
    delays = backoff_delays(0.5, 4.0)
    assert [next(delays) for _ in range(6)] == [0.5, 1.0, 2.0, 4.0, 4.0, 4.0]
