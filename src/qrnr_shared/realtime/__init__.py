"""
Real-time notification fan-out.

Server side code publishes :class:`NotificationEvent` objects on the store
channel through a :class:`RealtimeTransport`; admin clients consume them with
:class:`AdminNotificationClient`.
"""

from .client import AdminNotificationClient, ChannelSupervisor, DeviceBroadcastChannel, event_id_for
from .events import NotificationEvent, make_event_id, store_channel
from .publisher import EventPublisher
from .transport import InMemoryTransport, RealtimeTransport, RedisTransport, Subscription

__all__ = [
    "AdminNotificationClient",
    "ChannelSupervisor",
    "DeviceBroadcastChannel",
    "EventPublisher",
    "InMemoryTransport",
    "NotificationEvent",
    "RealtimeTransport",
    "RedisTransport",
    "Subscription",
    "event_id_for",
    "make_event_id",
    "store_channel",
]
