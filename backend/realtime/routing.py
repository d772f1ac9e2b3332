"""WebSocket URL routing for the realtime app."""

from django.urls import re_path

from .consumers.driver_consumer import DriverConsumer
from .consumers.passenger_consumer import PassengerConsumer
from .consumers.booking_consumer import BookingConsumer

websocket_urlpatterns = [
    # URL: ws://localhost:8000/ws/driver/?token=<jwt>
    re_path(r"ws/driver/$", DriverConsumer.as_asgi(), name="driver-ws"),

    # URL: ws://localhost:8000/ws/passenger/?token=<jwt>
    re_path(r"ws/passenger/$", PassengerConsumer.as_asgi(), name="passenger-ws"),

    # Trip tracking, shared by both parties and staff
    # URL: ws://localhost:8000/ws/booking/?token=<jwt>
    re_path(r"ws/booking/$", BookingConsumer.as_asgi(), name="booking-ws"),
]
