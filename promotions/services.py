"""
Promotion Service Layer - Code evaluation and redemption.

Evaluation is read-only and answers whether a code can be used right now
for a given subtotal. Redemption is the write half: it bumps usage_count
with a guarded UPDATE so the usage limit holds under concurrent checkouts.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.db.models import F, Q
from django.utils import timezone

from core.exceptions import InvalidPromotion
from .models import Promotion, PromotionUsage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromotionEvaluation:
    usable: bool
    discount: int = 0
    free_shipping: bool = False
    reason: Optional[str] = None
    promotion: Optional[Promotion] = None


def calculate_discount(promotion: Promotion, subtotal: int) -> int:
    """
    Discount granted by a promotion on a subtotal.

    Percentage discounts round down to the minor unit. No discount ever
    exceeds the subtotal.
    """
    if promotion.discount_type == Promotion.DiscountType.PERCENTAGE:
        discount = subtotal * promotion.value // 100
        if promotion.max_discount is not None:
            discount = min(discount, promotion.max_discount)
    elif promotion.discount_type == Promotion.DiscountType.FIXED_AMOUNT:
        discount = promotion.value
    else:
        discount = 0
    return max(0, min(discount, subtotal))


def evaluate_promotion(code: str, subtotal: int, now=None, for_update: bool = False) -> PromotionEvaluation:
    """
    Check whether a promotion code is usable for this subtotal at `now`.

    Args:
        code: Promotion code, matched case-insensitively
        subtotal: Order subtotal in minor currency units
        now: Evaluation time (defaults to the current time)
        for_update: Lock the promotion row for the rest of the transaction

    Returns:
        PromotionEvaluation; when usable is False, reason is one of
        not_found, inactive, not_started, expired, usage_limit_reached,
        below_minimum_order.
    """
    now = now or timezone.now()
    code = (code or '').strip()

    queryset = Promotion.objects.all()
    if for_update:
        queryset = queryset.select_for_update()
    promotion = queryset.filter(code__iexact=code).first() if code else None

    if promotion is None:
        return PromotionEvaluation(usable=False, reason='not_found')
    if not promotion.is_active:
        return PromotionEvaluation(usable=False, reason='inactive', promotion=promotion)
    if now < promotion.start_date:
        return PromotionEvaluation(usable=False, reason='not_started', promotion=promotion)
    if now > promotion.end_date:
        return PromotionEvaluation(usable=False, reason='expired', promotion=promotion)
    if promotion.is_exhausted:
        return PromotionEvaluation(usable=False, reason='usage_limit_reached', promotion=promotion)
    if subtotal < promotion.min_order:
        return PromotionEvaluation(usable=False, reason='below_minimum_order', promotion=promotion)

    return PromotionEvaluation(
        usable=True,
        discount=calculate_discount(promotion, subtotal),
        free_shipping=promotion.discount_type == Promotion.DiscountType.FREE_SHIPPING,
        promotion=promotion
    )


def redeem_promotion(promotion: Promotion, order, user, discount: int) -> PromotionUsage:
    """
    Consume one use of a promotion for an order.

    Must run inside the transaction that creates the order. The increment
    only happens while usage_count is below usage_limit; if a concurrent
    checkout took the last use first, InvalidPromotion is raised and the
    caller's transaction rolls back.
    """
    updated = Promotion.objects.filter(
        Q(usage_limit__isnull=True) | Q(usage_count__lt=F('usage_limit')),
        pk=promotion.pk
    ).update(usage_count=F('usage_count') + 1, updated_at=timezone.now())

    if updated == 0:
        logger.warning(f"Promotion {promotion.code} hit its usage limit during redemption")
        raise InvalidPromotion(promotion.code, 'usage_limit_reached')

    return PromotionUsage.objects.create(
        promotion=promotion,
        user=user,
        order=order,
        discount=discount
    )


def get_running_promotions(now=None):
    """Promotions that are active, inside their window and not exhausted."""
    now = now or timezone.now()
    return Promotion.objects.filter(
        Q(usage_limit__isnull=True) | Q(usage_count__lt=F('usage_limit')),
        is_active=True,
        start_date__lte=now,
        end_date__gte=now
    ).order_by('end_date')
