"""
Serializers for catalog models.
"""
from rest_framework import serializers
from .models import Category, Product


class CategoryMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested category representation."""
    class Meta:
        model = Category
        fields = ['id', 'name']


class ProductSerializer(serializers.ModelSerializer):
    """Read-only product representation with nested category."""
    category = CategoryMinimalSerializer(read_only=True)
    is_out_of_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'title', 'description', 'price', 'stock',
            'is_out_of_stock', 'category', 'is_active',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class ProductMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested representations in orders and carts."""
    class Meta:
        model = Product
        fields = ['id', 'title', 'price']
