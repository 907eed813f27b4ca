"""
Serializers for order models.
"""
from rest_framework import serializers
from .models import Order, OrderItem
from catalog.serializers import ProductMinimalSerializer


class OrderItemSerializer(serializers.ModelSerializer):
    """Serializer for OrderItem with product details."""
    product = ProductMinimalSerializer(read_only=True)
    line_total = serializers.IntegerField(read_only=True)

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'quantity', 'unit_price', 'line_total']


class OrderItemCreateSerializer(serializers.Serializer):
    """Serializer for creating order items in order creation request."""
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class ShippingAddressSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=200)
    phone = serializers.RegexField(
        r'^[0-9]{10,11}$',
        error_messages={'invalid': 'Phone number must be 10 or 11 digits'}
    )
    address = serializers.CharField(max_length=300)
    city = serializers.CharField(max_length=100)
    district = serializers.CharField(max_length=100)
    ward = serializers.CharField(max_length=100)


class OrderSerializer(serializers.ModelSerializer):
    """
    Serializer for Order model with nested items.
    """
    items = OrderItemSerializer(many=True, read_only=True)
    promotion_code = serializers.CharField(source='promotion.code', read_only=True, default=None)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'user', 'status',
            'payment_method', 'payment_status',
            'subtotal', 'discount', 'shipping_fee', 'total',
            'shipping_address', 'notes', 'promotion_code',
            'tracking_number', 'items',
            'created_at', 'updated_at', 'delivered_at'
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """
    Compact serializer for listing orders.
    """
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'status', 'payment_status',
            'total', 'item_count', 'created_at'
        ]

    def get_item_count(self, obj):
        # Use prefetched items count if available
        if hasattr(obj, '_prefetched_objects_cache') and 'items' in obj._prefetched_objects_cache:
            return len(obj.items.all())
        return obj.items.count()


class OrderCreateSerializer(serializers.Serializer):
    """
    Serializer for creating orders via POST /orders/

    Request format:
    {
        "items": [
            {"product_id": 1, "quantity": 2},
            {"product_id": 3, "quantity": 1}
        ],
        "payment_method": "cod",
        "shipping_address": {
            "full_name": "...", "phone": "0901234567", "address": "...",
            "city": "...", "district": "...", "ward": "..."
        },
        "notes": "optional",
        "promotion_code": "optional"
    }
    """
    items = OrderItemCreateSerializer(many=True)
    payment_method = serializers.ChoiceField(choices=Order.PaymentMethod.choices)
    shipping_address = ShippingAddressSerializer()
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    promotion_code = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("At least one item is required")

        product_ids = [item['product_id'] for item in value]
        if len(product_ids) != len(set(product_ids)):
            raise serializers.ValidationError("Duplicate products in order items")

        return value


class OrderStatusUpdateSerializer(serializers.Serializer):
    """
    Body of PUT /orders/{id}/status/

    status is checked against the enum by the service so an unknown value
    is reported as InvalidOrderStatus before anything is touched.
    """
    status = serializers.CharField(max_length=20)
    tracking_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
