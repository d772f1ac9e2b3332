from bookings.models import TripHistory


def record_history(booking) -> TripHistory:
    """Append the booking's current status to its audit trail."""
    return TripHistory.objects.create(
        booking_id=booking.pk,
        driver_id=booking.driver_id,
        passenger_id=booking.passenger_id,
        status=booking.status,
    )
