from rest_framework import serializers
from drivers.models import DriverProfile
from accounts.serializers import UserBasicSerializer
from common.choices import VehicleType


class DriverProfileSerializer(serializers.ModelSerializer):
    """
    Full driver profile as seen by the driver
    """
    user = UserBasicSerializer(read_only=True)
    vehicleNumber = serializers.CharField(source="vehicle_number", required=False, allow_blank=True)
    vehicleType = serializers.ChoiceField(source="vehicle_type", choices=VehicleType.choices, required=False)
    latitude = serializers.FloatField(source="current_latitude", read_only=True, allow_null=True)
    longitude = serializers.FloatField(source="current_longitude", read_only=True, allow_null=True)
    lastLocationUpdate = serializers.DateTimeField(source="last_location_update", read_only=True)

    class Meta:
        model = DriverProfile
        fields = [
            "user",
            "vehicleNumber",
            "vehicleType",
            "available",
            "latitude",
            "longitude",
            "bearing",
            "lastLocationUpdate",
        ]
        read_only_fields = ["available", "bearing"]


class DriverBasicSerializer(serializers.ModelSerializer):
    """
    Lite driver info for proximity searches, with distance to the search point.
    """
    id = serializers.SerializerMethodField()
    name = serializers.CharField(source="user.display_name", read_only=True)
    phone = serializers.CharField(source="user.phone_number", read_only=True)
    vehicleNumber = serializers.CharField(source="vehicle_number", read_only=True)
    vehicleType = serializers.CharField(source="vehicle_type", read_only=True)
    latitude = serializers.FloatField(source="current_latitude", read_only=True)
    longitude = serializers.FloatField(source="current_longitude", read_only=True)
    distanceKm = serializers.SerializerMethodField()

    class Meta:
        model = DriverProfile
        fields = [
            "id",
            "name",
            "phone",
            "vehicleNumber",
            "vehicleType",
            "latitude",
            "longitude",
            "distanceKm",
        ]

    def get_id(self, obj):
        return str(obj.user_id)

    def get_distanceKm(self, obj):
        distances = self.context.get("distances", {})
        distance = distances.get(obj.pk)
        return round(distance, 3) if distance is not None else None


class AvailabilitySerializer(serializers.Serializer):
    """
    Driver online/offline toggle.
    """
    available = serializers.BooleanField()


class LocationUpdateSerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    bearing = serializers.FloatField(required=False, allow_null=True)


class NearbyQuerySerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    radiusKm = serializers.FloatField(required=False, min_value=0.001)
    vehicleType = serializers.ChoiceField(choices=VehicleType.choices, required=False)
