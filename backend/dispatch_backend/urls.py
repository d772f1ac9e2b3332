from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Authentication endpoints (register, login, refresh)
    path('api/auth/', include('accounts.urls')),

    # Booking lifecycle, estimates, ratings, nearby pending
    path('api/bookings/', include('bookings.urls')),

    # Driver availability, location, nearest search, earnings
    path('api/drivers/', include('drivers.urls')),

    # Pricing tiers and commission configuration
    path('api/pricing/', include('pricing.urls')),
    path('api/earnings/', include('earnings.urls')),
]
