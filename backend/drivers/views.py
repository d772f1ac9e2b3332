from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import IsDriver
from drivers.serializers import (
    AvailabilitySerializer,
    DriverBasicSerializer,
    DriverProfileSerializer,
    LocationUpdateSerializer,
    NearbyQuerySerializer,
)
from drivers import services
from earnings.services import driver_earnings_summary
from services.matching import available_nearby


class AvailableDriversView(APIView):
    """
    GET ?latitude=&longitude=&radiusKm=&vehicleType=
    Available drivers around a point, closest first. Nothing is reserved.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        query = NearbyQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data

        nearby = available_nearby(
            data["latitude"],
            data["longitude"],
            radius_km=data.get("radiusKm"),
            vehicle_type=data.get("vehicleType"),
        )
        profiles = [item.profile for item in nearby]
        distances = {item.profile.pk: item.distance_km for item in nearby}
        serializer = DriverBasicSerializer(profiles, many=True, context={"distances": distances})

        return Response({"count": len(profiles), "drivers": serializer.data})


class DriverProfileView(APIView):
    permission_classes = [IsDriver]

    def get(self, request):
        profile = services.get_profile(request.user.id)
        return Response(DriverProfileSerializer(profile).data)

    def post(self, request):
        profile = services.get_profile(request.user.id)
        serializer = DriverProfileSerializer(profile, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


#    HTTP fallback for the ws/driver/ "driver_availability" message.
class DriverAvailabilityView(APIView):
    permission_classes = [IsDriver]

    def post(self, request):
        serializer = AvailabilitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        profile = services.set_availability(request.user.id, serializer.validated_data["available"])
        return Response({
            "message": "You are now available" if profile.available else "You are now offline",
            "available": profile.available,
        })


#    HTTP fallback for the ws/driver/ "driver_location_update" message.
class DriverLocationView(APIView):
    permission_classes = [IsDriver]

    def get(self, request):
        profile = services.get_profile(request.user.id)
        return Response({
            "latitude": float(profile.current_latitude) if profile.current_latitude is not None else None,
            "longitude": float(profile.current_longitude) if profile.current_longitude is not None else None,
            "bearing": profile.bearing,
            "lastUpdated": profile.last_location_update,
            "available": profile.available,
        })

    def post(self, request):
        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        profile = services.update_location(
            request.user.id,
            data["latitude"],
            data["longitude"],
            bearing=data.get("bearing"),
        )
        return Response({
            "message": "Location updated",
            "latitude": float(profile.current_latitude),
            "longitude": float(profile.current_longitude),
            "available": profile.available,
        })


class DriverEarningsView(APIView):
    permission_classes = [IsDriver]

    def get(self, request):
        return Response(driver_earnings_summary(request.user.id))
