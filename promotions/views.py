"""
Promotion API Views.

Implements:
- GET /promotions/active/ - Promotions customers can currently use
- POST /promotions/validate/ - Preview a code against a subtotal
"""
import logging

from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.rate_limiting import rate_limit
from .serializers import (
    PromotionSerializer,
    PromotionValidateSerializer,
    PromotionEvaluationSerializer,
)
from .services import evaluate_promotion, get_running_promotions

logger = logging.getLogger(__name__)


class ActivePromotionListView(generics.ListAPIView):
    serializer_class = PromotionSerializer

    def get_queryset(self):
        return get_running_promotions()


class PromotionValidateView(APIView):
    """
    POST: Evaluate a promotion code without consuming a use.

    Always answers 200; `usable` and `reason` describe the outcome.
    """

    @rate_limit(max_requests=30, window_seconds=60)
    def post(self, request):
        serializer = PromotionValidateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'error': 'ValidationError', 'detail': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        code = serializer.validated_data['code']
        evaluation = evaluate_promotion(code, serializer.validated_data['subtotal'])
        if not evaluation.usable:
            logger.info(f"Promotion {code!r} not usable: {evaluation.reason}")

        data = PromotionEvaluationSerializer({
            'code': code.strip().upper(),
            'usable': evaluation.usable,
            'discount': evaluation.discount,
            'free_shipping': evaluation.free_shipping,
            'reason': evaluation.reason,
        }).data
        return Response(data)
