"""
Catalog API Views.

Read-only: products are managed through the Django admin.
"""
from django.db.models import Q
from rest_framework import generics

from .models import Product
from .serializers import ProductSerializer


class ProductListView(generics.ListAPIView):
    """
    GET: List active products.

    Query Parameters:
        - q: Keyword to search in title, description, and category name
        - category_id: Filter by category ID
        - in_stock: Only products with stock left (true/false)
    """
    serializer_class = ProductSerializer

    def get_queryset(self):
        queryset = Product.objects.select_related('category').filter(is_active=True)

        keyword = self.request.query_params.get('q', '').strip()
        if keyword:
            queryset = queryset.filter(
                Q(title__icontains=keyword) |
                Q(description__icontains=keyword) |
                Q(category__name__icontains=keyword)
            )

        category_id = self.request.query_params.get('category_id')
        if category_id and category_id.isdigit():
            queryset = queryset.filter(category_id=category_id)

        if self.request.query_params.get('in_stock', '').lower() == 'true':
            queryset = queryset.filter(stock__gt=0)

        return queryset.order_by('title')


class ProductDetailView(generics.RetrieveAPIView):
    """GET: Retrieve an active product."""
    serializer_class = ProductSerializer

    def get_queryset(self):
        return Product.objects.select_related('category').filter(is_active=True)
