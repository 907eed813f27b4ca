"""
Checkout error taxonomy.

Every error the order workflow raises on purpose derives from
CheckoutError. Views turn them into {'error': code, 'detail': message}
responses with the class's status code; anything else is a 500.
"""


class CheckoutError(Exception):
    """Base class for recoverable order workflow errors."""
    code = 'CheckoutError'
    status_code = 400

    def to_response_data(self) -> dict:
        return {'error': self.code, 'detail': str(self)}


class OrderValidationError(CheckoutError):
    """Raised when order input fails structural validation."""
    code = 'ValidationError'


class ProductNotFound(CheckoutError):
    """Raised when a product is missing or inactive."""
    code = 'ProductNotFound'

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found or inactive")


class OutOfStock(CheckoutError):
    """Raised when there's not enough stock for an order item."""
    code = 'OutOfStock'

    def __init__(self, product_id: int, requested: int, available=None):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        if available is None:
            message = f"Insufficient stock for product {product_id}: requested {requested}"
        else:
            message = (
                f"Insufficient stock for product {product_id}: "
                f"requested {requested}, available {available}"
            )
        super().__init__(message)


class InvalidPromotion(CheckoutError):
    """Raised when a promotion code can't be applied to an order."""
    code = 'InvalidPromotion'

    MESSAGES = {
        'not_found': "Promotion code does not exist",
        'inactive': "Promotion code is no longer active",
        'not_started': "Promotion has not started yet",
        'expired': "Promotion has expired",
        'usage_limit_reached': "Promotion code has reached its usage limit",
        'below_minimum_order': "Order subtotal is below the promotion minimum",
    }

    def __init__(self, code: str, reason: str):
        self.promotion_code = code
        self.reason = reason
        message = self.MESSAGES.get(reason, reason)
        super().__init__(f"{message}: {code}")

    def to_response_data(self) -> dict:
        data = super().to_response_data()
        data['reason'] = self.reason
        return data


class NotCancellable(CheckoutError):
    """Raised when an order's status no longer allows cancellation."""
    code = 'NotCancellable'

    def __init__(self, order_id: int, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} cannot be cancelled while {status}")


class InvalidOrderStatus(CheckoutError):
    """Raised for a status value outside the order status enum."""
    code = 'InvalidOrderStatus'

    def __init__(self, status):
        self.status = status
        super().__init__(f"Invalid order status: {status!r}")


class InvalidStatusTransition(CheckoutError):
    """Raised when the requested status is not reachable from the current one."""
    code = 'InvalidStatusTransition'

    def __init__(self, order_id: int, current: str, target: str):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(f"Order {order_id} cannot move from {current} to {target}")


class OrderNotFound(CheckoutError):
    code = 'NotFound'
    status_code = 404

    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class OrderAccessDenied(CheckoutError):
    """
    Raised when a non-staff user touches someone else's order.

    Rendered as a 404 so order ids belonging to other users aren't
    confirmed to exist.
    """
    code = 'Unauthorized'
    status_code = 404

    def __init__(self, order_id, user_id):
        self.order_id = order_id
        self.user_id = user_id
        super().__init__(f"Order {order_id} does not belong to user {user_id}")

    def to_response_data(self) -> dict:
        return {'error': OrderNotFound.code, 'detail': f"Order {self.order_id} not found"}


class CartItemNotFound(CheckoutError):
    code = 'NotFound'
    status_code = 404

    def __init__(self, item_id):
        self.item_id = item_id
        super().__init__(f"Cart item {item_id} not found")
