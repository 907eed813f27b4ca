"""
Order Models - Order and OrderItem entities with status tracking.

Order Status Flow:
    PENDING -> CONFIRMED -> PROCESSING -> SHIPPING -> DELIVERED
    CONFIRMED -> SHIPPING (processing step skipped)
    PENDING | CONFIRMED -> CANCELLED (stock restored)

DELIVERED and CANCELLED are terminal.
"""
import uuid

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from catalog.models import Product


def generate_order_number() -> str:
    return f"GH{uuid.uuid4().hex[:20].upper()}"


class Order(models.Model):
    """
    Customer order.

    Amounts are integer minor currency units and satisfy
    total == max(0, subtotal - discount) + shipping_fee.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        CONFIRMED = 'confirmed', 'Confirmed'
        PROCESSING = 'processing', 'Processing'
        SHIPPING = 'shipping', 'Shipping'
        DELIVERED = 'delivered', 'Delivered'
        CANCELLED = 'cancelled', 'Cancelled'

    class PaymentMethod(models.TextChoices):
        COD = 'cod', 'Cash on delivery'
        BANK_TRANSFER = 'bank_transfer', 'Bank transfer'
        MOMO = 'momo', 'MoMo'
        VNPAY = 'vnpay', 'VNPay'

    class PaymentStatus(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PAID = 'paid', 'Paid'
        FAILED = 'failed', 'Failed'
        REFUNDED = 'refunded', 'Refunded'

    TRANSITIONS = {
        Status.PENDING: frozenset({Status.CONFIRMED, Status.CANCELLED}),
        Status.CONFIRMED: frozenset({Status.PROCESSING, Status.SHIPPING, Status.CANCELLED}),
        Status.PROCESSING: frozenset({Status.SHIPPING}),
        Status.SHIPPING: frozenset({Status.DELIVERED}),
        Status.DELIVERED: frozenset(),
        Status.CANCELLED: frozenset(),
    }
    CANCELLABLE_STATUSES = frozenset({Status.PENDING, Status.CONFIRMED})

    order_number = models.CharField(
        max_length=32,
        unique=True,
        default=generate_order_number,
        editable=False,
        help_text="Customer-facing order reference"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='orders'
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING
    )
    subtotal = models.PositiveBigIntegerField(default=0)
    discount = models.PositiveBigIntegerField(default=0)
    shipping_fee = models.PositiveBigIntegerField(default=0)
    total = models.PositiveBigIntegerField(default=0)
    shipping_address = models.JSONField(
        help_text="full_name, phone, address, city, district, ward"
    )
    notes = models.TextField(blank=True, default='')
    promotion = models.ForeignKey(
        'promotions.Promotion',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )
    tracking_number = models.CharField(max_length=100, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = 'Order'
        verbose_name_plural = 'Orders'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'status'], name='order_user_status'),
            models.Index(fields=['status', 'created_at'], name='order_status_created'),
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.status})"

    @classmethod
    def can_transition(cls, current: str, target: str) -> bool:
        return target in cls.TRANSITIONS.get(current, frozenset())

    @property
    def is_cancellable(self) -> bool:
        return self.status in self.CANCELLABLE_STATUSES

    @property
    def item_count(self) -> int:
        return self.items.count()


class OrderItem(models.Model):
    """
    OrderItem entity representing a product in an order.

    Stores the unit price at time of order to preserve historical pricing.
    """
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Parent order"
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,  # Prevent deletion of products with orders
        related_name='order_items',
        help_text="Ordered product"
    )
    quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Quantity ordered"
    )
    unit_price = models.PositiveBigIntegerField(
        help_text="Price per unit at time of order"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Order Item'
        verbose_name_plural = 'Order Items'
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity}x {self.product.title} @ {self.unit_price}"

    @property
    def line_total(self) -> int:
        return self.quantity * self.unit_price
