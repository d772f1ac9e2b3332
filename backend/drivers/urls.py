from django.urls import path
from .views import (
    AvailableDriversView,
    DriverProfileView,
    DriverAvailabilityView,
    DriverLocationView,
    DriverEarningsView,
)

app_name = 'drivers'

urlpatterns = [
    path("available/", AvailableDriversView.as_view(), name="available"),
    path("profile/", DriverProfileView.as_view(), name="driver-profile"),
    path("availability/", DriverAvailabilityView.as_view(), name="driver-availability"),
    path("location/", DriverLocationView.as_view(), name="driver-location"),
    path("earnings/", DriverEarningsView.as_view(), name="driver-earnings"),
]
