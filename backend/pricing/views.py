from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdmin
from pricing import services
from pricing.models import PricingTier
from pricing.serializers import PricingTierSerializer


class PricingListView(APIView):
    """
    GET: list pricing tiers (optionally ?vehicleType=)
    POST: create a tier (admin); identical parameter tuples are rejected with 409
    """

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAdmin()]
        return [IsAuthenticated()]

    def get(self, request):
        tiers = PricingTier.objects.all()
        vehicle_type = request.query_params.get('vehicleType')
        if vehicle_type:
            tiers = tiers.filter(vehicle_type=vehicle_type)
        return Response(PricingTierSerializer(tiers, many=True).data)

    def post(self, request):
        serializer = PricingTierSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        tier = services.create_tier(**serializer.validated_data)
        return Response(PricingTierSerializer(tier).data, status=status.HTTP_201_CREATED)


class PricingDetailView(APIView):
    """PUT/PATCH: update a tier (admin) and broadcast pricing:update"""
    permission_classes = [IsAdmin]

    def put(self, request, tier_id):
        serializer = PricingTierSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        tier = services.update_tier(tier_id, **serializer.validated_data)
        return Response(PricingTierSerializer(tier).data)

    patch = put
