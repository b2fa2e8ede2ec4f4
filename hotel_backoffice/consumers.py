import logging

from asgiref.sync import async_to_sync
from channels.generic.websocket import JsonWebsocketConsumer

from .notifications import hotel_group_name

logger = logging.getLogger(__name__)


class HotelEventsConsumer(JsonWebsocketConsumer):
    """Streams ROOM_* / BOOKING_* / WALLET_* events to a hotel's dashboards."""

    group_name = None

    def connect(self):
        user = self.scope.get("user")
        hotel = getattr(user, "hotel", None) if user is not None and user.is_authenticated else None
        if hotel is None:
            self.close()
            return

        self.group_name = hotel_group_name(hotel.id)
        async_to_sync(self.channel_layer.group_add)(self.group_name, self.channel_name)
        self.accept()
        logger.info("Dashboard connected to %s", self.group_name)

    def disconnect(self, code):
        if self.group_name:
            async_to_sync(self.channel_layer.group_discard)(self.group_name, self.channel_name)
            logger.info("Dashboard disconnected from %s", self.group_name)

    def receive_json(self, content, **kwargs):
        # Dashboards have nothing to send; messages are logged and dropped
        logger.debug("Received from %s: %s", self.group_name, content)

    def hotel_event(self, message):
        self.send_json(message["event"])
