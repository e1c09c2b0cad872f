"""
Notification events published on a store channel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from qrnr_shared.constants import EventKind

DEFAULT_CHANNEL_PREFIX = "qrnr:store"


def store_channel(store_id: str, prefix: str = DEFAULT_CHANNEL_PREFIX) -> str:
    """Channel name for ``store_id``, e.g. ``qrnr:store:narae``."""
    return f"{prefix}:{store_id}"


def make_event_id(kind: EventKind | str, source_id: Any) -> str:
    """
    Event id derived from the source row id.

    Publishing the same order twice yields the same id, so clients can detect
    redelivery.
    """
    return f"{EventKind(kind).value}:{source_id}"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class NotificationEvent:
    event_id: str
    store_id: str
    kind: EventKind
    payload: dict[str, Any] = field(default_factory=dict)
    emitted_at: str = field(default_factory=_timestamp)

    @classmethod
    def for_source(
        cls, kind: EventKind, store_id: str, source_id: Any, payload: dict[str, Any]
    ) -> NotificationEvent:
        return cls(
            event_id=make_event_id(kind, source_id),
            store_id=store_id,
            kind=kind,
            payload=payload,
        )

    def to_message(self) -> dict[str, Any]:
        return {
            "eventId": self.event_id,
            "storeId": self.store_id,
            "kind": self.kind.value,
            "payload": self.payload,
            "emittedAt": self.emitted_at,
        }
