from django.urls import path

from portal.realtime.consumers import SlotAvailabilityConsumer

websocket_urlpatterns = [
    path("ws/slots/", SlotAvailabilityConsumer.as_asgi()),
]
