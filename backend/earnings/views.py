from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdmin
from earnings import services
from earnings.serializers import CommissionSerializer, SetCommissionSerializer


class CommissionView(APIView):
    """
    GET: current commission percentage
    POST: set a new commission (deactivates the previous one)
    """
    permission_classes = [IsAdmin]

    def get(self, request):
        commission = services.active_commission()
        return Response({
            "percentage": str(services.current_percentage()),
            "commission": CommissionSerializer(commission).data if commission else None,
        })

    def post(self, request):
        serializer = SetCommissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        commission = services.set_commission(
            serializer.validated_data["percentage"],
            description=serializer.validated_data.get("description", ""),
            created_by=request.user,
        )
        return Response(CommissionSerializer(commission).data, status=status.HTTP_201_CREATED)
