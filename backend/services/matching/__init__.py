"""
Driver matching service.

This module handles:
    - Passenger-initiated nearest-driver search
    - Driver-initiated nearby pending bookings
    - Nearest-claim routing of new booking notifications
"""

from .nearby import NearbyBooking, NearbyDriver, available_nearby, nearby_pending
from .routing import ConnectedDriver, RoutingDecision, route_booking_notification, select_nearest_driver

__all__ = [
    "NearbyBooking",
    "NearbyDriver",
    "available_nearby",
    "nearby_pending",
    "ConnectedDriver",
    "RoutingDecision",
    "route_booking_notification",
    "select_nearest_driver",
]
