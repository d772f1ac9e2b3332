from rest_framework import serializers

from bookings.models import Booking, BookingAssignment, TripHistory
from common.choices import VehicleType
from common.utils import GeoPoint


def _compact_user(user_id, name, phone):
    return {"id": str(user_id), "name": name, "phone": phone}


class BookingSerializer(serializers.ModelSerializer):
    """
    Normalized booking projection used by REST responses and realtime events.
    Ids are strings; passenger and driver are compact profiles.
    """
    id = serializers.SerializerMethodField()
    passengerId = serializers.SerializerMethodField()
    passenger = serializers.SerializerMethodField()
    driverId = serializers.SerializerMethodField()
    driver = serializers.SerializerMethodField()
    vehicleType = serializers.CharField(source="vehicle_type")
    pickup = serializers.SerializerMethodField()
    dropoff = serializers.SerializerMethodField()
    distanceKm = serializers.FloatField(source="distance_km")
    fareEstimated = serializers.FloatField(source="fare_estimated")
    fareFinal = serializers.FloatField(source="fare_final", allow_null=True)
    fareBreakdown = serializers.JSONField(source="fare_breakdown")
    acceptedAt = serializers.DateTimeField(source="accepted_at")
    startedAt = serializers.DateTimeField(source="started_at")
    completedAt = serializers.DateTimeField(source="completed_at")
    passengerRating = serializers.IntegerField(source="passenger_rating", allow_null=True)
    passengerComment = serializers.CharField(source="passenger_comment")
    driverRating = serializers.IntegerField(source="driver_rating", allow_null=True)
    driverComment = serializers.CharField(source="driver_comment")
    createdAt = serializers.DateTimeField(source="created_at")
    updatedAt = serializers.DateTimeField(source="updated_at")

    class Meta:
        model = Booking
        fields = [
            "id",
            "passengerId",
            "passenger",
            "driverId",
            "driver",
            "vehicleType",
            "pickup",
            "dropoff",
            "status",
            "distanceKm",
            "fareEstimated",
            "fareFinal",
            "fareBreakdown",
            "acceptedAt",
            "startedAt",
            "completedAt",
            "passengerRating",
            "passengerComment",
            "driverRating",
            "driverComment",
            "createdAt",
            "updatedAt",
        ]
        read_only_fields = fields

    def get_id(self, obj):
        return str(obj.id)

    def get_passengerId(self, obj):
        return str(obj.passenger_id)

    def get_passenger(self, obj):
        # Stored snapshot first, then the live profile
        user = obj.passenger
        name = obj.passenger_name or (user.display_name if user else "")
        phone = obj.passenger_phone or (user.phone_number if user else "")
        return _compact_user(obj.passenger_id, name, phone)

    def get_driverId(self, obj):
        return str(obj.driver_id) if obj.driver_id else None

    def get_driver(self, obj):
        if not obj.driver_id:
            return None
        return _compact_user(obj.driver_id, obj.driver.display_name, obj.driver.phone_number)

    def get_pickup(self, obj):
        return obj.pickup.as_dict()

    def get_dropoff(self, obj):
        return obj.dropoff.as_dict()


def serialize_booking(booking):
    """Plain-dict projection safe to put on the channel layer."""
    return dict(BookingSerializer(booking).data)


class LocationSerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    address = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class BookingCreateSerializer(serializers.Serializer):
    """
    Input for POST /bookings/ and POST /bookings/estimate/
    {"vehicleType": "mini", "pickup": {...}, "dropoff": {...}}
    """
    vehicleType = serializers.ChoiceField(choices=VehicleType.choices, required=False, default=VehicleType.MINI)
    pickup = LocationSerializer()
    dropoff = LocationSerializer()

    def points(self):
        data = self.validated_data
        return GeoPoint.from_mapping(data["pickup"]), GeoPoint.from_mapping(data["dropoff"])


class LifecycleSerializer(serializers.Serializer):
    status = serializers.CharField()


class AssignSerializer(serializers.Serializer):
    driverId = serializers.CharField(required=False, allow_blank=True)
    dispatcherId = serializers.CharField(required=False, allow_blank=True)
    passengerId = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class RatingSerializer(serializers.Serializer):
    rating = serializers.JSONField(required=False, allow_null=True)
    comment = serializers.CharField(required=False, allow_blank=True, default="")


class BookingAssignmentSerializer(serializers.ModelSerializer):
    id = serializers.CharField(read_only=True)
    bookingId = serializers.CharField(source="booking_id")
    driverId = serializers.CharField(source="driver_id")
    dispatcherId = serializers.CharField(source="dispatcher_id")
    passengerId = serializers.CharField(source="passenger_id")
    createdAt = serializers.DateTimeField(source="created_at")

    class Meta:
        model = BookingAssignment
        fields = ["id", "bookingId", "driverId", "dispatcherId", "passengerId", "createdAt"]


class TripHistorySerializer(serializers.ModelSerializer):
    bookingId = serializers.CharField(source="booking_id")
    driverId = serializers.SerializerMethodField()
    passengerId = serializers.SerializerMethodField()
    dateOfTravel = serializers.DateTimeField(source="date_of_travel")

    class Meta:
        model = TripHistory
        fields = ["id", "bookingId", "driverId", "passengerId", "status", "dateOfTravel"]

    def get_driverId(self, obj):
        return str(obj.driver_id) if obj.driver_id else None

    def get_passengerId(self, obj):
        return str(obj.passenger_id) if obj.passenger_id else None
