"""
Order Service Layer - Atomic order lifecycle.

create_order runs steps 1-8 in one transaction:
1. Lock and validate every product (active, enough stock)
2. Compute the subtotal from current prices
3. Evaluate the promotion code, if any
4. Work out the shipping fee
5. Compute the total
6. Persist the order and its items (prices copied)
7. Deduct stock with guarded UPDATEs
8. Consume one promotion use
If ANY step fails, nothing is persisted and no stock moves.
Clearing the cart and queuing the notification happen after commit and
never undo the order; their failures come back as warnings.

cancel_order flips the status and restores stock in one transaction.
Promotion usage is kept on cancellation.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from cart.services import clear_cart
from catalog.services import get_purchasable_product, reserve_stock, restore_stock
from core.exceptions import (
    InvalidOrderStatus,
    InvalidPromotion,
    InvalidStatusTransition,
    NotCancellable,
    OrderAccessDenied,
    OrderNotFound,
    OrderValidationError,
    OutOfStock,
)
from promotions.services import evaluate_promotion, redeem_promotion
from .models import Order, OrderItem

logger = logging.getLogger(__name__)

SHIPPING_ADDRESS_FIELDS = ('full_name', 'phone', 'address', 'city', 'district', 'ward')


def validate_order_items(items: List[Dict]) -> None:
    """
    Validate order items structure.

    Args:
        items: List of dicts with 'product_id' and 'quantity'

    Raises:
        OrderValidationError: If validation fails
    """
    if not items:
        raise OrderValidationError("Order must contain at least one item")

    seen_products = set()
    for idx, item in enumerate(items):
        if 'product_id' not in item:
            raise OrderValidationError(f"Item {idx}: missing 'product_id'")
        if 'quantity' not in item:
            raise OrderValidationError(f"Item {idx}: missing 'quantity'")

        product_id = item['product_id']
        quantity = item['quantity']

        if isinstance(product_id, bool) or not isinstance(product_id, int) or product_id < 1:
            raise OrderValidationError(f"Item {idx}: product_id must be a positive integer")

        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise OrderValidationError(f"Item {idx}: quantity must be a positive integer")

        if product_id in seen_products:
            raise OrderValidationError(f"Item {idx}: duplicate product_id {product_id}")
        seen_products.add(product_id)


def validate_shipping_address(shipping_address: Dict[str, Any]) -> None:
    if not isinstance(shipping_address, dict):
        raise OrderValidationError("Shipping address must be an object")
    missing = [f for f in SHIPPING_ADDRESS_FIELDS if not str(shipping_address.get(f) or '').strip()]
    if missing:
        raise OrderValidationError(f"Shipping address missing: {', '.join(missing)}")


def calculate_shipping_fee(subtotal: int, free_shipping: bool = False) -> int:
    """Flat fee, waived by a free-shipping promotion or a large enough subtotal."""
    if free_shipping or subtotal >= settings.FREE_SHIPPING_THRESHOLD:
        return 0
    return settings.SHIPPING_FEE


def calculate_total(subtotal: int, discount: int, shipping_fee: int) -> int:
    return max(0, subtotal - discount) + shipping_fee


def create_order(
    user,
    items: List[Dict],
    shipping_address: Dict[str, Any],
    payment_method: str,
    notes: str = '',
    promotion_code: Optional[str] = None,
    now=None,
) -> Tuple[Order, List[str]]:
    """
    Create an order with atomic transaction handling.

    Args:
        user: Customer placing the order
        items: List of dicts with 'product_id' and 'quantity'
        shipping_address: Structured delivery address
        payment_method: One of Order.PaymentMethod
        notes: Free-text note from the customer
        promotion_code: Optional promotion code (case-insensitive)
        now: Time used for promotion window checks

    Returns:
        Tuple of (persisted Order, list of post-commit warnings)

    Raises:
        OrderValidationError: Malformed input, nothing touched
        ProductNotFound: A product is missing or inactive
        OutOfStock: A product lacks stock, checked before and during deduction
        InvalidPromotion: The promotion code can't be applied
    """
    validate_order_items(items)
    validate_shipping_address(shipping_address)
    if payment_method not in Order.PaymentMethod.values:
        raise OrderValidationError(f"Unsupported payment method: {payment_method!r}")

    now = now or timezone.now()

    # Lock rows in product id order so concurrent checkouts can't deadlock
    sorted_items = sorted(items, key=lambda item: item['product_id'])

    with transaction.atomic():
        lines = []
        subtotal = 0
        for item in sorted_items:
            product = get_purchasable_product(item['product_id'], for_update=True)
            quantity = item['quantity']
            if product.stock < quantity:
                logger.warning(
                    f"Checkout rejected for user {user.pk}: product {product.pk} "
                    f"requested {quantity}, available {product.stock}"
                )
                raise OutOfStock(product.pk, quantity, product.stock)
            lines.append((product, quantity, product.price))
            subtotal += product.price * quantity

        evaluation = None
        discount = 0
        free_shipping = False
        if promotion_code:
            evaluation = evaluate_promotion(promotion_code, subtotal, now=now, for_update=True)
            if not evaluation.usable:
                logger.warning(
                    f"Checkout rejected for user {user.pk}: promotion "
                    f"{promotion_code!r} {evaluation.reason}"
                )
                raise InvalidPromotion(promotion_code.strip().upper(), evaluation.reason)
            discount = evaluation.discount
            free_shipping = evaluation.free_shipping

        shipping_fee = calculate_shipping_fee(subtotal, free_shipping)
        total = calculate_total(subtotal, discount, shipping_fee)

        order = Order.objects.create(
            user=user,
            status=Order.Status.PENDING,
            payment_method=payment_method,
            payment_status=Order.PaymentStatus.PENDING,
            subtotal=subtotal,
            discount=discount,
            shipping_fee=shipping_fee,
            total=total,
            shipping_address=shipping_address,
            notes=notes or '',
            promotion=evaluation.promotion if evaluation else None,
        )

        OrderItem.objects.bulk_create([
            OrderItem(order=order, product=product, quantity=quantity, unit_price=unit_price)
            for product, quantity, unit_price in lines
        ])

        for product, quantity, _ in lines:
            reserve_stock(product.pk, quantity)

        if evaluation is not None:
            redeem_promotion(evaluation.promotion, order, user, discount)

    logger.info(
        f"Order {order.order_number} created for user {user.pk}: "
        f"{len(lines)} items, subtotal {subtotal}, discount {discount}, "
        f"shipping {shipping_fee}, total {total}"
    )

    warnings = []
    try:
        with transaction.atomic():
            clear_cart(user)
    except Exception as e:
        logger.error(f"Failed to clear cart for user {user.pk} after order {order.order_number}: {e}")
        warnings.append("Order placed but the cart could not be cleared")

    warnings.extend(_queue_notification(order, 'created'))
    return order, warnings


def get_order_for_user(user, order_id: int) -> Order:
    """
    Fetch an order with its items for the given caller.

    Raises:
        OrderNotFound: No such order
        OrderAccessDenied: The order belongs to someone else and the caller isn't staff
    """
    try:
        order = Order.objects.select_related('user', 'promotion').prefetch_related(
            'items__product'
        ).get(pk=order_id)
    except Order.DoesNotExist:
        raise OrderNotFound(order_id)
    _check_owner(order, user)
    return order


def list_orders_for_user(user, status: Optional[str] = None):
    queryset = Order.objects.filter(user=user).prefetch_related('items__product')
    if status:
        if status not in Order.Status.values:
            raise InvalidOrderStatus(status)
        queryset = queryset.filter(status=status)
    return queryset.order_by('-created_at', '-id')


def cancel_order(user, order_id: int) -> Tuple[Order, List[str]]:
    """
    Cancel a pending or confirmed order and put its stock back.

    Raises:
        OrderNotFound, OrderAccessDenied, NotCancellable
    """
    with transaction.atomic():
        order = _lock_order(order_id)
        _check_owner(order, user)
        _cancel_locked_order(order)

    logger.info(f"Order {order.order_number} cancelled by user {user.pk}")
    return _reload(order), _queue_notification(order, 'cancelled')


def update_order_status(
    order_id: int,
    status: str,
    tracking_number: Optional[str] = None,
    actor=None,
) -> Tuple[Order, List[str]]:
    """
    Move an order along its status flow (admin operation).

    Setting the current status again only updates the tracking number.
    Moving to CANCELLED performs a full cancellation with stock restore.

    Raises:
        InvalidOrderStatus: status isn't a known order status
        OrderNotFound: No such order
        InvalidStatusTransition: The move isn't allowed from the current status
        NotCancellable: CANCELLED requested from a non-cancellable status
    """
    if status not in Order.Status.values:
        raise InvalidOrderStatus(status)

    actor_id = actor.pk if actor is not None else None

    with transaction.atomic():
        order = _lock_order(order_id)
        previous = order.status

        if status == Order.Status.CANCELLED:
            _cancel_locked_order(order)
            if tracking_number:
                order.tracking_number = tracking_number
                order.save(update_fields=['tracking_number', 'updated_at'])
        elif status == previous:
            if tracking_number:
                order.tracking_number = tracking_number
                order.save(update_fields=['tracking_number', 'updated_at'])
        else:
            if not Order.can_transition(previous, status):
                raise InvalidStatusTransition(order.pk, previous, status)
            update_fields = ['status', 'updated_at']
            order.status = status
            if tracking_number:
                order.tracking_number = tracking_number
                update_fields.append('tracking_number')
            if status == Order.Status.DELIVERED:
                order.delivered_at = timezone.now()
                update_fields.append('delivered_at')
            order.save(update_fields=update_fields)

    if status == previous:
        return _reload(order), []

    logger.info(f"Order {order.order_number} moved {previous} -> {status} by user {actor_id}")
    if status == Order.Status.CANCELLED:
        return _reload(order), _queue_notification(order, 'cancelled')
    return _reload(order), _queue_notification(order, 'status_changed', status)


def _lock_order(order_id: int) -> Order:
    try:
        return Order.objects.select_for_update().get(pk=order_id)
    except Order.DoesNotExist:
        raise OrderNotFound(order_id)


def _check_owner(order: Order, user) -> None:
    if order.user_id != user.pk and not user.is_staff:
        logger.warning(f"User {user.pk} tried to access order {order.pk}")
        raise OrderAccessDenied(order.pk, user.pk)


def _cancel_locked_order(order: Order) -> None:
    """Flip a locked order to CANCELLED and restore stock. Caller holds the transaction."""
    if not order.is_cancellable:
        logger.warning(f"Order {order.order_number} not cancellable in status {order.status}")
        raise NotCancellable(order.pk, order.status)

    now = timezone.now()
    updated = Order.objects.filter(
        pk=order.pk,
        status__in=Order.CANCELLABLE_STATUSES
    ).update(status=Order.Status.CANCELLED, updated_at=now)
    if updated != 1:
        # Lost a race with another cancellation on a backend without row locks
        raise NotCancellable(order.pk, Order.objects.values_list('status', flat=True).get(pk=order.pk))

    for product_id, quantity in order.items.values_list('product_id', 'quantity'):
        restore_stock(product_id, quantity)

    order.status = Order.Status.CANCELLED
    order.updated_at = now


def _reload(order: Order) -> Order:
    return Order.objects.select_related('user', 'promotion').prefetch_related(
        'items__product'
    ).get(pk=order.pk)


def _queue_notification(order: Order, event: str, status: Optional[str] = None) -> List[str]:
    """
    Queue the customer notification; failures never undo the order.

    status_changed events carry the status they moved to, since the order
    may have moved again by the time a worker picks the task up.
    """
    from .tasks import notify_order_event

    args = (order.pk, event) if status is None else (order.pk, event, status)
    try:
        notify_order_event.delay(*args)
        logger.debug(f"Queued {event} notification for order {order.order_number}")
        return []
    except Exception as e:
        logger.error(f"Failed to queue {event} notification for order {order.order_number}: {e}")
        return [f"Order {event.replace('_', ' ')} but the notification could not be sent"]
