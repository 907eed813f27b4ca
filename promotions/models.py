"""
Promotion Models - Discount codes and their redemption history.

A promotion is exactly one of:
    - PERCENTAGE: value% of the subtotal, optionally capped by max_discount
    - FIXED_AMOUNT: value off the subtotal
    - FREE_SHIPPING: shipping fee waived, no price discount
"""
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class Promotion(models.Model):
    """
    Promotion code usable at checkout.

    usage_count only ever goes up, including when the order that
    consumed a use is later cancelled.
    """

    class DiscountType(models.TextChoices):
        PERCENTAGE = 'percentage', 'Percentage'
        FIXED_AMOUNT = 'fixed_amount', 'Fixed amount'
        FREE_SHIPPING = 'free_shipping', 'Free shipping'

    code = models.CharField(
        max_length=50,
        unique=True,
        help_text="Code customers enter at checkout (stored upper-case)"
    )
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')
    discount_type = models.CharField(
        max_length=20,
        choices=DiscountType.choices
    )
    value = models.PositiveBigIntegerField(
        default=0,
        help_text="Percent (0-100) or fixed amount in minor currency units"
    )
    max_discount = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Upper bound on a percentage discount"
    )
    min_order = models.PositiveBigIntegerField(
        default=0,
        help_text="Minimum order subtotal for the code to apply"
    )
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    usage_limit = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1)],
        help_text="Maximum number of redemptions (empty means unlimited)"
    )
    usage_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Promotion'
        verbose_name_plural = 'Promotions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['is_active', 'start_date', 'end_date'], name='promotion_active_window'),
        ]

    def __str__(self):
        return f"{self.code} ({self.discount_type})"

    def save(self, *args, **kwargs):
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def clean(self):
        if self.discount_type == self.DiscountType.PERCENTAGE and self.value > 100:
            raise ValidationError({'value': "Percentage discount cannot exceed 100"})
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError({'end_date': "End date must be after start date"})

    def is_running(self, now=None) -> bool:
        now = now or timezone.now()
        return self.is_active and self.start_date <= now <= self.end_date

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.usage_count >= self.usage_limit


class PromotionUsage(models.Model):
    """One redemption of a promotion by an order."""
    promotion = models.ForeignKey(
        Promotion,
        on_delete=models.CASCADE,
        related_name='usages'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='promotion_usages'
    )
    order = models.OneToOneField(
        'orders.Order',
        on_delete=models.CASCADE,
        related_name='promotion_usage'
    )
    discount = models.PositiveBigIntegerField(default=0)
    used_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Promotion Usage'
        verbose_name_plural = 'Promotion Usages'
        ordering = ['-used_at']

    def __str__(self):
        return f"{self.promotion.code} on order {self.order_id}"
