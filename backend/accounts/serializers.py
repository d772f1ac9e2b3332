from rest_framework import serializers
from django.contrib.auth import authenticate

from .models import User
from drivers.models import DriverProfile
from common.choices import VehicleType


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "role",
            "phone_number",
        ]
        read_only_fields = ["id", "role"]


class UserBasicSerializer(serializers.ModelSerializer):
    """Compact profile embedded in booking payloads."""
    id = serializers.SerializerMethodField()
    name = serializers.CharField(source="display_name", read_only=True)
    phone = serializers.CharField(source="phone_number", read_only=True)

    class Meta:
        model = User
        fields = ["id", "name", "phone"]

    def get_id(self, obj):
        return str(obj.id)


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        user = authenticate(username=data["username"], password=data["password"])
        if not user:
            raise serializers.ValidationError("Invalid username or password")
        return user


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True)
    vehicle_number = serializers.CharField(required=False, allow_blank=True)
    vehicle_type = serializers.ChoiceField(choices=VehicleType.choices, required=False)

    class Meta:
        model = User
        fields = ['username', 'password', 'email', 'first_name', 'last_name',
                  'role', 'phone_number', 'vehicle_number', 'vehicle_type']

    def validate_email(self, value):
        if value and User.objects.filter(email=value).exists():
            raise serializers.ValidationError("Email already exists")
        return value

    def validate_role(self, value):
        # Staff roles are provisioned by administrators, never self-registered
        if value not in (User.ROLE_PASSENGER, User.ROLE_DRIVER):
            raise serializers.ValidationError("Only passengers and drivers can self-register")
        return value

    def create(self, validated_data):
        vehicle_number = validated_data.pop('vehicle_number', '')
        vehicle_type = validated_data.pop('vehicle_type', VehicleType.MINI)
        password = validated_data.pop('password')

        user = User(**validated_data)
        user.set_password(password)
        user.save()

        if user.role == User.ROLE_DRIVER:
            DriverProfile.objects.create(
                user=user,
                vehicle_number=vehicle_number or '',
                vehicle_type=vehicle_type,
            )

        return user
