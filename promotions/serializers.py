"""
Serializers for promotion endpoints.
"""
from rest_framework import serializers
from .models import Promotion


class PromotionSerializer(serializers.ModelSerializer):
    """Public view of a running promotion. Usage counters stay private."""

    class Meta:
        model = Promotion
        fields = [
            'id', 'code', 'name', 'description', 'discount_type',
            'value', 'max_discount', 'min_order', 'start_date', 'end_date'
        ]


class PromotionValidateSerializer(serializers.Serializer):
    """
    Request body for POST /promotions/validate/

    {"code": "SAVE10", "subtotal": 100000}
    """
    code = serializers.CharField(max_length=50)
    subtotal = serializers.IntegerField(min_value=0)


class PromotionEvaluationSerializer(serializers.Serializer):
    code = serializers.CharField()
    usable = serializers.BooleanField()
    discount = serializers.IntegerField()
    free_shipping = serializers.BooleanField()
    reason = serializers.CharField(allow_null=True)
