"""
Serializers for cart endpoints.
"""
from rest_framework import serializers

from catalog.models import Product
from .models import CartItem


class CartProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ['id', 'title', 'price', 'stock', 'is_active']


class CartItemSerializer(serializers.ModelSerializer):
    product = CartProductSerializer(read_only=True)
    line_total = serializers.SerializerMethodField()

    class Meta:
        model = CartItem
        fields = ['id', 'product', 'quantity', 'line_total', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_line_total(self, obj):
        return obj.product.price * obj.quantity


class CartItemCreateSerializer(serializers.Serializer):
    """
    Request body for POST /cart/items/

    {"product_id": 1, "quantity": 2}
    """
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class CartItemUpdateSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
