from django.urls import path

from .consumers import HotelEventsConsumer

websocket_urlpatterns = [
    path("ws/hotel/", HotelEventsConsumer.as_asgi()),
]
