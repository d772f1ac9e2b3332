from rest_framework import serializers

from earnings.models import Commission


class CommissionSerializer(serializers.ModelSerializer):
    id = serializers.CharField(read_only=True)
    isActive = serializers.BooleanField(source='is_active', read_only=True)
    createdBy = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Commission
        fields = ['id', 'percentage', 'description', 'isActive', 'createdBy', 'createdAt']

    def get_createdBy(self, obj):
        return str(obj.created_by_id) if obj.created_by_id else None


class SetCommissionSerializer(serializers.Serializer):
    percentage = serializers.DecimalField(max_digits=6, decimal_places=2)
    description = serializers.CharField(required=False, allow_blank=True, default='')
