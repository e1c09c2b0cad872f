"""
Server-side publisher for store notifications.
"""

from __future__ import annotations

from typing import Any

from qrnr_shared.constants import EventKind
from qrnr_shared.logging_config import get_logger

from .events import DEFAULT_CHANNEL_PREFIX, NotificationEvent, store_channel
from .transport import RealtimeTransport

logger = get_logger(__name__)


class EventPublisher:
    """
    Publish one :class:`NotificationEvent` per created order or call.

    Publishing is fire-and-forget: transport failures are logged and never
    propagate into the write that triggered them.
    """

    def __init__(self, transport: RealtimeTransport | None, channel_prefix: str = DEFAULT_CHANNEL_PREFIX):
        self.transport = transport
        self.channel_prefix = channel_prefix

    def channel_for(self, store_id: str) -> str:
        return store_channel(store_id, self.channel_prefix)

    def publish(self, event: NotificationEvent) -> bool:
        if self.transport is None:
            logger.debug(f"No realtime transport configured; dropping {event.event_id}")
            return False
        try:
            receivers = self.transport.publish(self.channel_for(event.store_id), event.to_message())
        except Exception as exc:
            logger.warning(f"Failed to publish {event.event_id}: {exc}")
            return False
        logger.debug(f"Published {event.event_id} to {receivers} subscriber(s)")
        return True

    def order_created(self, order: dict[str, Any]) -> bool:
        return self.publish(
            NotificationEvent.for_source(
                EventKind.NEW_ORDER,
                order["storeId"],
                order["id"],
                {
                    "orderId": order["id"],
                    "orderNo": order["orderNo"],
                    "type": order["type"],
                    "status": order["status"],
                    "tableNo": order["tableNo"],
                    "amount": order["amount"],
                },
            )
        )

    def call_created(self, call: dict[str, Any]) -> bool:
        return self.publish(
            NotificationEvent.for_source(
                EventKind.NEW_CALL,
                call["storeId"],
                call["id"],
                {"callId": call["id"], "tableNo": call["tableNo"], "message": call["message"]},
            )
        )
