"""
Cart Service Layer - Lines a user sets aside before checkout.

Adding or updating a line checks the requested quantity against current
stock. Nothing is reserved: stock only moves at checkout.
"""
import logging
from typing import Dict

from django.db import transaction

from catalog.services import get_purchasable_product
from core.exceptions import CartItemNotFound, OutOfStock
from .models import CartItem

logger = logging.getLogger(__name__)


def get_cart(user):
    return CartItem.objects.filter(user=user).select_related('product').order_by('-created_at', '-id')


def summarize_cart(items) -> Dict[str, int]:
    """Totals over lines whose product is still active."""
    active = [item for item in items if item.product.is_active]
    return {
        'total_items': sum(item.quantity for item in active),
        'subtotal': sum(item.product.price * item.quantity for item in active),
        'active_items': len(active),
        'inactive_items': len(items) - len(active),
    }


def add_to_cart(user, product_id: int, quantity: int) -> CartItem:
    """
    Add quantity of a product to the user's cart, merging with an existing line.

    Raises:
        ProductNotFound: Product missing or inactive
        OutOfStock: The line would exceed current stock
    """
    with transaction.atomic():
        product = get_purchasable_product(product_id)
        item = CartItem.objects.select_for_update().filter(user=user, product=product).first()

        new_quantity = quantity + (item.quantity if item else 0)
        if new_quantity > product.stock:
            raise OutOfStock(product.pk, new_quantity, product.stock)

        if item is None:
            item = CartItem.objects.create(user=user, product=product, quantity=new_quantity)
        else:
            item.quantity = new_quantity
            item.save(update_fields=['quantity', 'updated_at'])

    logger.debug(f"User {user.pk} cart: product {product.pk} x{new_quantity}")
    return item


def update_cart_item(user, item_id: int, quantity: int) -> CartItem:
    """
    Set the quantity of one of the user's cart lines.

    Raises:
        CartItemNotFound: No such line in the user's cart
        ProductNotFound: The line's product is no longer active
        OutOfStock: quantity exceeds current stock
    """
    with transaction.atomic():
        item = _get_own_item(user, item_id, for_update=True)
        product = get_purchasable_product(item.product_id)
        if quantity > product.stock:
            raise OutOfStock(product.pk, quantity, product.stock)

        item.quantity = quantity
        item.save(update_fields=['quantity', 'updated_at'])
    return item


def remove_cart_item(user, item_id: int) -> None:
    _get_own_item(user, item_id).delete()


def clear_cart(user) -> int:
    """Remove every line from the user's cart; returns the number removed."""
    deleted, _ = CartItem.objects.filter(user=user).delete()
    logger.debug(f"Cleared {deleted} cart items for user {user.pk}")
    return deleted


def _get_own_item(user, item_id: int, for_update: bool = False) -> CartItem:
    queryset = CartItem.objects.select_related('product')
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(pk=item_id, user=user)
    except CartItem.DoesNotExist:
        raise CartItemNotFound(item_id)
