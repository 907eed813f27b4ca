"""
Catalog lookup and stock mutation used by the order workflow.

Stock changes are single UPDATE statements guarded in the WHERE clause,
so a decrement can never take stock below zero even when two
transactions read the same stale value.
"""
import logging

from django.db.models import F
from django.utils import timezone

from core.exceptions import ProductNotFound, OutOfStock
from .models import Product

logger = logging.getLogger(__name__)


def get_purchasable_product(product_id: int, for_update: bool = False) -> Product:
    """
    Return an active product or raise ProductNotFound.

    With for_update=True the row is locked until the surrounding
    transaction ends (no-op on backends without SELECT ... FOR UPDATE).
    """
    queryset = Product.objects.filter(is_active=True)
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(pk=product_id)
    except Product.DoesNotExist:
        raise ProductNotFound(product_id)


def reserve_stock(product_id: int, quantity: int) -> None:
    """Take quantity units off the shelf, or raise OutOfStock."""
    updated = Product.objects.filter(
        pk=product_id,
        stock__gte=quantity
    ).update(stock=F('stock') - quantity, updated_at=timezone.now())

    if updated == 0:
        available = Product.objects.filter(pk=product_id).values_list('stock', flat=True).first()
        logger.warning(
            f"Stock reservation failed for product {product_id}: "
            f"requested {quantity}, available {available}"
        )
        raise OutOfStock(product_id, quantity, available)


def restore_stock(product_id: int, quantity: int) -> None:
    """Put quantity units back on the shelf."""
    Product.objects.filter(pk=product_id).update(
        stock=F('stock') + quantity,
        updated_at=timezone.now()
    )
