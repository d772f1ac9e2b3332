from rest_framework import serializers

from common.choices import VehicleType
from pricing.models import PricingTier


class PricingTierSerializer(serializers.ModelSerializer):
    id = serializers.CharField(read_only=True)
    vehicleType = serializers.ChoiceField(source='vehicle_type', choices=VehicleType.choices, required=False)
    baseFare = serializers.FloatField(source='base_fare', min_value=0, required=False)
    perKm = serializers.FloatField(source='per_km', min_value=0, required=False)
    perMinute = serializers.FloatField(source='per_minute', min_value=0, required=False)
    waitingPerMinute = serializers.FloatField(source='waiting_per_minute', min_value=0, required=False)
    surgeMultiplier = serializers.FloatField(source='surge_multiplier', min_value=0, required=False)
    isActive = serializers.BooleanField(source='is_active', required=False)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = PricingTier
        fields = [
            'id',
            'vehicleType',
            'baseFare',
            'perKm',
            'perMinute',
            'waitingPerMinute',
            'surgeMultiplier',
            'isActive',
            'updatedAt',
        ]
        # Duplicate tuples are reported as 409 by the service layer
        validators = []
