"""
Realtime transports: a channel-keyed publish/subscribe contract.

The core only relies on at-least-once delivery to currently connected
subscribers. Nothing published before a subscription, or while it is down,
is replayed.
"""

from __future__ import annotations

import json
import queue
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from redis import Redis
from redis.exceptions import RedisError

from qrnr_shared.logging_config import get_logger

logger = get_logger(__name__)

MessageCallback = Callable[[dict[str, Any]], None]
DisconnectCallback = Callable[[], None]


class Subscription:
    """Handle returned by :meth:`RealtimeTransport.subscribe`."""

    def __init__(self, channel: str):
        self.channel = channel
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        self._closed.set()


class RealtimeTransport(ABC):
    @abstractmethod
    def publish(self, channel: str, message: dict[str, Any]) -> int:
        """Publish ``message`` without waiting for subscribers. Returns receiver count."""

    @abstractmethod
    def subscribe(
        self,
        channel: str,
        callback: MessageCallback,
        on_disconnect: DisconnectCallback | None = None,
    ) -> Subscription:
        """Deliver every later message on ``channel`` to ``callback``."""

    def close(self) -> None:
        """Release transport resources."""


def _safe_call(callback: Callable, *args) -> None:
    try:
        callback(*args)
    except Exception:
        logger.exception("Realtime subscriber callback failed")


# ---------------------------------------------------------------------------
# In-process transport
# ---------------------------------------------------------------------------

_DISCONNECT = object()
_STOP = object()


class _QueueSubscription(Subscription):
    """Subscriber with its own queue and worker thread."""

    def __init__(
        self,
        transport: InMemoryTransport,
        channel: str,
        callback: MessageCallback,
        on_disconnect: DisconnectCallback | None,
    ):
        super().__init__(channel)
        self._transport = transport
        self._callback = callback
        self._on_disconnect = on_disconnect
        self.queue: queue.Queue = queue.Queue()
        self._thread = threading.Thread(
            target=self._run, name=f"qrnr-sub-{channel}", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        while True:
            item = self.queue.get()
            try:
                if item is _STOP:
                    return
                if item is _DISCONNECT:
                    super().close()
                    if self._on_disconnect is not None:
                        _safe_call(self._on_disconnect)
                    return
                if not self.closed:
                    _safe_call(self._callback, item)
            finally:
                self.queue.task_done()

    def close(self) -> None:
        if self.closed:
            return
        super().close()
        self._transport._remove(self)
        self.queue.put(_STOP)


class InMemoryTransport(RealtimeTransport):
    """
    Process-local transport.

    Every subscriber drains its own queue on its own thread, so a slow
    subscriber never blocks :meth:`publish`. Messages are copied through JSON
    to keep subscribers from sharing mutable state with the publisher.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[_QueueSubscription]] = {}

    def publish(self, channel: str, message: dict[str, Any]) -> int:
        encoded = json.dumps(message, ensure_ascii=False)
        with self._lock:
            targets = list(self._subscribers.get(channel, ()))
        for subscription in targets:
            subscription.queue.put(json.loads(encoded))
        return len(targets)

    def subscribe(
        self,
        channel: str,
        callback: MessageCallback,
        on_disconnect: DisconnectCallback | None = None,
    ) -> Subscription:
        subscription = _QueueSubscription(self, channel, callback, on_disconnect)
        with self._lock:
            self._subscribers.setdefault(channel, []).append(subscription)
        return subscription

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subscribers.get(channel, ()))

    def disconnect(self, channel: str) -> int:
        """Drop every subscription on ``channel`` as a lost connection would."""
        with self._lock:
            dropped = self._subscribers.pop(channel, [])
        for subscription in dropped:
            subscription.queue.put(_DISCONNECT)
        return len(dropped)

    def flush(self, timeout: float = 2.0) -> bool:
        """Wait until every queued message has been handled. Returns False on timeout."""
        finished = threading.Event()

        def wait_all():
            with self._lock:
                subscriptions = [s for subs in self._subscribers.values() for s in subs]
            for subscription in subscriptions:
                subscription.queue.join()
            finished.set()

        threading.Thread(target=wait_all, daemon=True).start()
        return finished.wait(timeout)

    def close(self) -> None:
        with self._lock:
            subscriptions = [s for subs in self._subscribers.values() for s in subs]
            self._subscribers.clear()
        for subscription in subscriptions:
            subscription.close()

    def _remove(self, subscription: _QueueSubscription) -> None:
        with self._lock:
            subs = self._subscribers.get(subscription.channel)
            if subs and subscription in subs:
                subs.remove(subscription)
                if not subs:
                    del self._subscribers[subscription.channel]


# ---------------------------------------------------------------------------
# Redis transport
# ---------------------------------------------------------------------------


class _RedisSubscription(Subscription):
    def __init__(
        self,
        client: Redis,
        channel: str,
        callback: MessageCallback,
        on_disconnect: DisconnectCallback | None,
        poll_timeout: float,
    ):
        super().__init__(channel)
        self._callback = callback
        self._on_disconnect = on_disconnect
        self._poll_timeout = poll_timeout
        self._pubsub = client.pubsub(ignore_subscribe_messages=True)
        self._pubsub.subscribe(channel)
        self._thread = threading.Thread(
            target=self._run, name=f"qrnr-redis-{channel}", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        try:
            while not self.closed:
                message = self._pubsub.get_message(timeout=self._poll_timeout)
                if message is None or message.get("type") != "message":
                    continue
                try:
                    data = json.loads(message["data"])
                except (TypeError, ValueError):
                    logger.warning(f"Dropping non-JSON message on {self.channel}")
                    continue
                _safe_call(self._callback, data)
        except RedisError as exc:
            if self.closed:
                return
            logger.warning(f"Redis subscription on {self.channel} lost: {exc}")
            super().close()
            if self._on_disconnect is not None:
                _safe_call(self._on_disconnect)
        finally:
            try:
                self._pubsub.close()
            except RedisError:
                pass

    def close(self) -> None:
        super().close()


class RedisTransport(RealtimeTransport):
    """redis-py pub/sub. Each subscription owns a listener thread."""

    def __init__(self, url: str | None = None, client: Redis | None = None, poll_timeout: float = 1.0):
        if client is None:
            if not url:
                raise ValueError("RedisTransport requires a url or a client")
            client = Redis.from_url(url, decode_responses=True)
        self._client = client
        self._poll_timeout = poll_timeout

    def publish(self, channel: str, message: dict[str, Any]) -> int:
        return int(self._client.publish(channel, json.dumps(message, ensure_ascii=False)))

    def subscribe(
        self,
        channel: str,
        callback: MessageCallback,
        on_disconnect: DisconnectCallback | None = None,
    ) -> Subscription:
        return _RedisSubscription(self._client, channel, callback, on_disconnect, self._poll_timeout)

    def close(self) -> None:
        self._client.close()
