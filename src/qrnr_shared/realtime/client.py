"""
Admin-side consumption of store notifications.

Each open admin tab runs one :class:`AdminNotificationClient`. Tabs of the
same device share a :class:`DeviceBroadcastChannel`; the tab that handles an
event first tells its siblings with ``EVENT_PROCESSED`` so one event rings
once per device, however many tabs are open. Different devices each alert
their own user.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Iterator
from typing import Any

from qrnr_shared.constants import EventKind
from qrnr_shared.logging_config import get_logger

from .events import DEFAULT_CHANNEL_PREFIX, store_channel
from .transport import RealtimeTransport, Subscription

logger = get_logger(__name__)

EVENT_PROCESSED = "EVENT_PROCESSED"
ALERT_INTERVAL_SECONDS = 2.0
RECENT_EVENT_LIMIT = 256
INITIAL_BACKOFF_SECONDS = 0.5
MAX_BACKOFF_SECONDS = 30.0

REFRESH_TARGETS = {
    EventKind.NEW_ORDER.value: "orders",
    EventKind.NEW_CALL.value: "calls",
}


def event_id_for(message: dict[str, Any]) -> str:
    """Stable id of an incoming message: explicit id, else ``<kind>:<emittedAt>``."""
    explicit = message.get("eventId") or message.get("id")
    if explicit:
        return str(explicit)
    kind = message.get("kind") or message.get("type") or "EVENT"
    at = message.get("emittedAt") or message.get("at") or ""
    return f"{kind}:{at}"


class DeviceBroadcastChannel:
    """
    Same-device broadcast between tabs.

    Channels opened with the same ``name`` form one group. :meth:`post`
    delivers synchronously to every other open member, never to the sender.
    Members share :attr:`lock`, which serialises event handling across tabs.
    """

    _registry: dict[str, list[DeviceBroadcastChannel]] = {}
    _locks: dict[str, threading.RLock] = {}
    _registry_lock = threading.Lock()

    def __init__(self, name: str, on_message: Callable[[dict[str, Any]], None] | None = None):
        self.name = name
        self.on_message = on_message
        with self._registry_lock:
            self._registry.setdefault(name, []).append(self)
            self.lock = self._locks.setdefault(name, threading.RLock())

    def post(self, message: dict[str, Any]) -> int:
        with self._registry_lock:
            peers = [peer for peer in self._registry.get(self.name, ()) if peer is not self]
        delivered = 0
        for peer in peers:
            if peer.on_message is None:
                continue
            try:
                peer.on_message(dict(message))
                delivered += 1
            except Exception:
                logger.exception(f"Broadcast handler failed on {self.name}")
        return delivered

    def close(self) -> None:
        with self._registry_lock:
            members = self._registry.get(self.name, [])
            if self in members:
                members.remove(self)
            if not members:
                self._registry.pop(self.name, None)
                self._locks.pop(self.name, None)


def backoff_delays(
    initial: float = INITIAL_BACKOFF_SECONDS, maximum: float = MAX_BACKOFF_SECONDS
) -> Iterator[float]:
    """0.5, 1, 2, 4, ... capped at ``maximum``, forever."""
    delay = initial
    while True:
        yield delay
        delay = min(delay * 2, maximum)


class ChannelSupervisor:
    """
    Keep one subscription alive.

    When the transport reports a disconnect, resubscribe after an
    exponentially growing delay until it succeeds or :meth:`stop` is called.
    Messages published while disconnected are lost.
    """

    def __init__(
        self,
        transport: RealtimeTransport,
        channel: str,
        callback: Callable[[dict[str, Any]], None],
        initial_backoff: float = INITIAL_BACKOFF_SECONDS,
        max_backoff: float = MAX_BACKOFF_SECONDS,
    ):
        self.transport = transport
        self.channel = channel
        self.callback = callback
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.reconnects = 0
        self._subscription: Subscription | None = None
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._reconnect_thread: threading.Thread | None = None

    @property
    def connected(self) -> bool:
        subscription = self._subscription
        return subscription is not None and not subscription.closed

    def start(self) -> None:
        self._stopped.clear()
        try:
            self._subscribe()
        except Exception as exc:
            logger.warning(f"Initial subscribe to {self.channel} failed: {exc}")
            self._schedule_reconnect()

    def stop(self) -> None:
        self._stopped.set()
        with self._lock:
            subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.close()

    def _subscribe(self) -> None:
        subscription = self.transport.subscribe(
            self.channel, self.callback, on_disconnect=self._on_disconnect
        )
        with self._lock:
            self._subscription = subscription
        if self._stopped.is_set():
            subscription.close()

    def _on_disconnect(self) -> None:
        if self._stopped.is_set():
            return
        logger.warning(f"Realtime channel {self.channel} disconnected")
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        with self._lock:
            if self._reconnect_thread is not None and self._reconnect_thread.is_alive():
                return
            self._reconnect_thread = threading.Thread(
                target=self._reconnect_loop, name=f"qrnr-reconnect-{self.channel}", daemon=True
            )
            self._reconnect_thread.start()

    def _reconnect_loop(self) -> None:
        for delay in backoff_delays(self.initial_backoff, self.max_backoff):
            if self._stopped.wait(delay):
                return
            try:
                self._subscribe()
            except Exception as exc:
                logger.warning(f"Resubscribe to {self.channel} failed, retrying in {delay}s: {exc}")
                continue
            self.reconnects += 1
            logger.info(f"Realtime channel {self.channel} resubscribed")
            return


class AdminNotificationClient:
    """
    One admin tab listening to its store channel.

    For each message: discard it if its id was already processed on this
    device; otherwise record it, broadcast ``EVENT_PROCESSED`` to sibling tabs,
    alert when at least ``alert_interval`` seconds passed since the device's
    last alert, and refresh the order or call list.
    """

    def __init__(
        self,
        store_id: str,
        transport: RealtimeTransport,
        device_channel: DeviceBroadcastChannel | None = None,
        on_alert: Callable[[dict[str, Any]], None] | None = None,
        on_refresh: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        channel_prefix: str = DEFAULT_CHANNEL_PREFIX,
        alert_interval: float = ALERT_INTERVAL_SECONDS,
        recent_limit: int = RECENT_EVENT_LIMIT,
        initial_backoff: float = INITIAL_BACKOFF_SECONDS,
    ):
        self.store_id = store_id
        self.on_alert = on_alert
        self.on_refresh = on_refresh
        self.alert_interval = alert_interval
        self._clock = clock
        self._recent_limit = recent_limit
        self._recent: OrderedDict[str, None] = OrderedDict()
        self.last_event_id: str | None = None
        self.last_alert_at: float | None = None
        self.alerts = 0

        self.device = device_channel or DeviceBroadcastChannel(f"qrnr-admin:{id(self)}")
        self.device.on_message = self._on_device_message
        self.supervisor = ChannelSupervisor(
            transport,
            store_channel(store_id, channel_prefix),
            self.handle_message,
            initial_backoff=initial_backoff,
        )

    def start(self) -> None:
        self.supervisor.start()

    def stop(self) -> None:
        self.supervisor.stop()
        self.device.close()

    def has_processed(self, event_id: str) -> bool:
        return event_id in self._recent

    def handle_message(self, message: dict[str, Any]) -> bool:
        """Process one channel message. Returns False when it was a duplicate."""
        event_id = event_id_for(message)

        with self.device.lock:
            if self.has_processed(event_id):
                logger.debug(f"Duplicate event discarded: {event_id}")
                return False

            self._remember(event_id)
            now = self._clock()
            should_alert = (
                self.last_alert_at is None or now - self.last_alert_at >= self.alert_interval
            )
            if should_alert:
                self.last_alert_at = now
            self.device.post(
                {
                    "type": EVENT_PROCESSED,
                    "eventId": event_id,
                    "alertedAt": now if should_alert else None,
                }
            )

        if should_alert:
            self.alerts += 1
            if self.on_alert is not None:
                self.on_alert(message)

        target = REFRESH_TARGETS.get(message.get("kind") or message.get("type") or "")
        if target and self.on_refresh is not None:
            self.on_refresh(target)
        return True

    def _on_device_message(self, message: dict[str, Any]) -> None:
        if message.get("type") != EVENT_PROCESSED or not message.get("eventId"):
            return
        with self.device.lock:
            self._remember(str(message["eventId"]))
            alerted_at = message.get("alertedAt")
            if alerted_at is not None and (
                self.last_alert_at is None or alerted_at > self.last_alert_at
            ):
                self.last_alert_at = alerted_at

    def _remember(self, event_id: str) -> None:
        self._recent[event_id] = None
        self._recent.move_to_end(event_id)
        while len(self._recent) > self._recent_limit:
            self._recent.popitem(last=False)
        self.last_event_id = event_id
