"""
Admin event stream - Server-Sent Events bridge onto the store channel.
"""

import json
import queue

from flask import Blueprint, Response, stream_with_context

from qrnr_api.extensions import get_config, get_transport
from qrnr_shared.jwt_middleware import current_store_id
from qrnr_shared.logging_config import get_logger
from qrnr_shared.realtime.events import store_channel

events_bp = Blueprint("events", __name__)
logger = get_logger(__name__)

HEARTBEAT_SECONDS = 15.0
_DISCONNECTED = object()


@events_bp.get("/admin/events")
def stream_events():
    """
    Stream NEW_ORDER / NEW_CALL events of the caller's store.

    Only events published while the stream is open are delivered. A dropped
    transport ends the stream so the browser's EventSource reconnects.
    """
    store_id = current_store_id()
    channel = store_channel(store_id, get_config().redis_channel_prefix)
    inbox: queue.Queue = queue.Queue()
    subscription = get_transport().subscribe(
        channel, inbox.put, on_disconnect=lambda: inbox.put(_DISCONNECTED)
    )
    logger.info(f"Event stream opened for store {store_id}")

    def generate():
        try:
            yield "retry: 3000\n\n"
            while True:
                try:
                    message = inbox.get(timeout=HEARTBEAT_SECONDS)
                except queue.Empty:
                    yield ": ping\n\n"
                    continue
                if message is _DISCONNECTED:
                    break
                event_id = message.get("eventId", "")
                data = json.dumps(message, ensure_ascii=False)
                yield f"id: {event_id}\nevent: {message.get('kind', 'message')}\ndata: {data}\n\n"
        finally:
            subscription.close()
            logger.info(f"Event stream closed for store {store_id}")

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )
