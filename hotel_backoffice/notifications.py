"""
Notification relay for hotel dashboards.

Every hotel has its own channel-layer group; connected dashboards join it
(see ``consumers.HotelEventsConsumer``). Events are sent once the database
transaction that produced them commits. Delivery is best-effort and
at-most-once: observers that are not connected miss the event and are
expected to refetch.
"""
import logging
from functools import partial

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

logger = logging.getLogger(__name__)

ROOM_UPDATE = "ROOM_UPDATE"
ROOM_DELETED = "ROOM_DELETED"
BOOKING_CREATED = "BOOKING_CREATED"
BOOKING_UPDATE = "BOOKING_UPDATE"
WALLET_UPDATE = "WALLET_UPDATE"

# consumer handler name: "hotel.event" -> HotelEventsConsumer.hotel_event
EVENT_MESSAGE_TYPE = "hotel.event"


def hotel_group_name(hotel_id):
    return f"hotel_{hotel_id}"


def publish(hotel_id, event_type, payload):
    """Push an event to every observer of ``hotel_id`` right now."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.debug("No channel layer configured, dropping %s for hotel %s", event_type, hotel_id)
        return
    message = {
        "type": EVENT_MESSAGE_TYPE,
        "event": {"type": event_type, "payload": payload},
    }
    try:
        async_to_sync(channel_layer.group_send)(hotel_group_name(hotel_id), message)
    except Exception:
        logger.exception("Failed to publish %s for hotel %s", event_type, hotel_id)


def broadcast(hotel_id, event_type, payload):
    """Schedule ``publish`` for when the current transaction commits."""
    transaction.on_commit(partial(publish, hotel_id, event_type, payload))
