import json
import threading
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from qrnr_shared.realtime import RedisTransport


def _client(*messages):
    client = MagicMock()
    client.pubsub.return_value.get_message.side_effect = list(messages)
    return client


def test_publish_sends_json_and_returns_receivers():
    client = MagicMock()
    client.publish.return_value = 2

    assert RedisTransport(client=client).publish("qrnr:store:narae", {"kind": "NEW_CALL"}) == 2
    channel, payload = client.publish.call_args.args
    assert channel == "qrnr:store:narae"
    assert json.loads(payload) == {"kind": "NEW_CALL"}


@pytest.mark.parametrize("error", [RedisConnectionError("reset"), RedisTimeoutError("timed out")])
def test_listener_reports_lost_connection(error):
    received = []
    lost = threading.Event()
    client = _client(
        {"type": "subscribe", "data": 1},
        {"type": "message", "data": '{"eventId": "NEW_ORDER:1"}'},
        {"type": "message", "data": "not json"},
        error,
    )

    subscription = RedisTransport(client=client, poll_timeout=0.01).subscribe(
        "qrnr:store:narae", received.append, on_disconnect=lost.set
    )

    assert lost.wait(timeout=2)
    assert subscription.closed
    assert received == [{"eventId": "NEW_ORDER:1"}]
    client.pubsub.return_value.subscribe.assert_called_once_with("qrnr:store:narae")
