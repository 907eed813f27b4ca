"""
Cart Models - Products a user has set aside before checkout.
"""
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from catalog.models import Product


class CartItem(models.Model):
    """One product line in a user's cart. Checkout empties the cart."""
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='cart_items'
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name='cart_items'
    )
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Cart Item'
        verbose_name_plural = 'Cart Items'
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'product'],
                name='unique_user_product_cart_item'
            )
        ]

    def __str__(self):
        return f"{self.quantity}x {self.product.title} for {self.user}"
