"""
Cart API Views.

Implements:
- GET /cart/ - Caller's cart lines with a summary
- DELETE /cart/ - Empty the caller's cart
- POST /cart/items/ - Add a product (merges with an existing line)
- PUT /cart/items/{id}/ - Set a line's quantity
- DELETE /cart/items/{id}/ - Remove a line
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import CheckoutError
from .serializers import CartItemSerializer, CartItemCreateSerializer, CartItemUpdateSerializer
from .services import (
    add_to_cart,
    clear_cart,
    get_cart,
    remove_cart_item,
    summarize_cart,
    update_cart_item,
)

logger = logging.getLogger(__name__)


def validation_error_response(serializer) -> Response:
    return Response(
        {'error': 'ValidationError', 'detail': serializer.errors},
        status=status.HTTP_400_BAD_REQUEST
    )


class CartView(APIView):

    def get(self, request):
        items = list(get_cart(request.user))
        return Response({
            'items': CartItemSerializer(items, many=True).data,
            'summary': summarize_cart(items),
        })

    def delete(self, request):
        removed = clear_cart(request.user)
        return Response({'removed': removed})


class CartItemCreateView(APIView):

    def post(self, request):
        serializer = CartItemCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer)

        try:
            item = add_to_cart(
                request.user,
                serializer.validated_data['product_id'],
                serializer.validated_data['quantity']
            )
        except CheckoutError as e:
            logger.info(f"Add to cart rejected for user {request.user.pk}: {e}")
            return Response(e.to_response_data(), status=e.status_code)

        return Response(CartItemSerializer(item).data, status=status.HTTP_201_CREATED)


class CartItemDetailView(APIView):

    def put(self, request, pk):
        serializer = CartItemUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer)

        try:
            item = update_cart_item(request.user, pk, serializer.validated_data['quantity'])
        except CheckoutError as e:
            return Response(e.to_response_data(), status=e.status_code)
        return Response(CartItemSerializer(item).data)

    def delete(self, request, pk):
        try:
            remove_cart_item(request.user, pk)
        except CheckoutError as e:
            return Response(e.to_response_data(), status=e.status_code)
        return Response(status=status.HTTP_204_NO_CONTENT)
