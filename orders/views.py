"""
Order API Views.

Implements:
- GET /orders/ - Caller's orders, newest first
- POST /orders/ - Create order with atomic transaction
- GET /orders/{id}/ - Order detail with items
- PUT /orders/{id}/cancel/ - Cancel a pending or confirmed order
- PUT /orders/{id}/status/ - Move an order along its status flow (staff)
"""
import logging
from rest_framework import generics, status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import CheckoutError
from core.rate_limiting import rate_limit
from .serializers import (
    OrderSerializer,
    OrderListSerializer,
    OrderCreateSerializer,
    OrderStatusUpdateSerializer,
)
from .services import (
    create_order,
    cancel_order,
    get_order_for_user,
    list_orders_for_user,
    update_order_status,
)

logger = logging.getLogger(__name__)


def checkout_error_response(error: CheckoutError) -> Response:
    return Response(error.to_response_data(), status=error.status_code)


def server_error_response() -> Response:
    return Response(
        {'error': 'Server Error', 'detail': 'An unexpected error occurred'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


class OrderListCreateView(generics.ListCreateAPIView):
    """
    GET: List the caller's orders
    POST: Create a new order with atomic transaction handling

    Query Parameters (GET):
        - status: Filter by status (pending, confirmed, processing,
          shipping, delivered, cancelled)
    """

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return OrderCreateSerializer
        return OrderListSerializer

    def get_queryset(self):
        status_filter = self.request.query_params.get('status', '').strip().lower()
        return list_orders_for_user(self.request.user, status_filter or None)

    def list(self, request, *args, **kwargs):
        try:
            return super().list(request, *args, **kwargs)
        except CheckoutError as e:
            return checkout_error_response(e)

    @rate_limit(max_requests=20, window_seconds=60)
    def create(self, request, *args, **kwargs):
        """
        Create order with atomic transaction handling.

        Returns:
            - 201: Order created, with any post-commit warnings
            - 400: Validation, stock or promotion error
        """
        serializer = OrderCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'error': 'ValidationError', 'detail': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        data = serializer.validated_data
        try:
            order, warnings = create_order(
                user=request.user,
                items=[dict(item) for item in data['items']],
                shipping_address=dict(data['shipping_address']),
                payment_method=data['payment_method'],
                notes=data.get('notes', ''),
                promotion_code=data.get('promotion_code') or None,
            )
        except CheckoutError as e:
            logger.warning(f"Order creation rejected for user {request.user.pk}: {e}")
            return checkout_error_response(e)
        except Exception as e:
            logger.exception(f"Unexpected error creating order: {e}")
            return server_error_response()

        order = get_order_for_user(request.user, order.pk)
        return Response(
            {'order': OrderSerializer(order).data, 'warnings': warnings},
            status=status.HTTP_201_CREATED
        )


class OrderDetailView(APIView):
    """
    GET: Retrieve an order with all items. Staff can read any order.
    """

    def get(self, request, pk):
        try:
            order = get_order_for_user(request.user, pk)
        except CheckoutError as e:
            return checkout_error_response(e)
        return Response(OrderSerializer(order).data)


class OrderCancelView(APIView):
    """
    PUT: Cancel an order while it is pending or confirmed.
    """

    def put(self, request, pk):
        try:
            order, warnings = cancel_order(request.user, pk)
        except CheckoutError as e:
            logger.warning(f"Cancel of order {pk} by user {request.user.pk} rejected: {e}")
            return checkout_error_response(e)
        except Exception as e:
            logger.exception(f"Unexpected error cancelling order {pk}: {e}")
            return server_error_response()

        return Response({'order': OrderSerializer(order).data, 'warnings': warnings})


class OrderStatusUpdateView(APIView):
    """
    PUT: Update order status and tracking number (staff only).

    Request Body:
    {
        "status": "shipping",
        "tracking_number": "VN123456789"
    }
    """
    permission_classes = [IsAdminUser]

    def put(self, request, pk):
        serializer = OrderStatusUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'error': 'InvalidOrderStatus', 'detail': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            order, warnings = update_order_status(
                pk,
                serializer.validated_data['status'].strip().lower(),
                tracking_number=serializer.validated_data.get('tracking_number') or None,
                actor=request.user,
            )
        except CheckoutError as e:
            logger.warning(f"Status update of order {pk} rejected: {e}")
            return checkout_error_response(e)
        except Exception as e:
            logger.exception(f"Unexpected error updating order {pk}: {e}")
            return server_error_response()

        return Response({'order': OrderSerializer(order).data, 'warnings': warnings})
