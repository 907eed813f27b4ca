"""
Celery tasks for order processing.

Tasks:
    - notify_order_event: In-app notification after an order is created,
      cancelled or moves to a new status
"""
import logging
from typing import Optional

from celery import shared_task

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    'confirmed': "Order {number} has been confirmed and is being prepared.",
    'processing': "Order {number} is being processed.",
    'shipping': "Order {number} is on its way to you.",
    'delivered': "Order {number} has been delivered successfully.",
    'cancelled': "Order {number} has been cancelled.",
}


def build_order_message(order, event: str, status: Optional[str] = None):
    """
    Return (title, message) for an order event, or None if nothing to say.

    status_changed describes `status` when given, else the order's current status.
    """
    number = order.order_number
    if event == 'created':
        return (
            "Order placed",
            f"Order {number} has been placed successfully. "
            f"We will process it as soon as possible."
        )
    if event == 'cancelled':
        return ("Order cancelled", STATUS_MESSAGES['cancelled'].format(number=number))
    if event == 'status_changed':
        template = STATUS_MESSAGES.get(status or order.status)
        if template is None:
            return None
        return ("Order update", template.format(number=number))
    raise ValueError(f"Unknown order event: {event}")


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(Exception,),
    dont_autoretry_for=(ValueError,),
    retry_backoff=True
)
def notify_order_event(self, order_id: int, event: str, status: Optional[str] = None):
    """
    Write the customer's in-app notification for an order event.

    Args:
        order_id: ID of the order
        event: 'created', 'cancelled' or 'status_changed'
        status: Status a status_changed event moved the order to

    Returns:
        Dict with notification details
    """
    from orders.models import Order
    from notifications.models import Notification

    try:
        order = Order.objects.select_related('user').get(id=order_id)
    except Order.DoesNotExist:
        logger.error(f"Order #{order_id} not found for {event} notification")
        return {'status': 'error', 'message': f'Order {order_id} not found'}

    content = build_order_message(order, event, status)
    if content is None:
        logger.info(f"No notification for order {order.order_number} in status {status or order.status}")
        return {'status': 'skipped', 'order_id': order.id}

    title, message = content
    notification = Notification.objects.create(
        user=order.user,
        type=Notification.Type.ORDER,
        title=title,
        message=message,
        action_url=f"/orders/{order.id}"
    )

    logger.info(f"[CELERY] Sent {event} notification for order {order.order_number}")

    return {
        'status': 'success',
        'order_id': order.id,
        'notification_id': notification.id
    }
