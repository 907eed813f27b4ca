"""
Tests for order transaction logic.

Test Cases:
1. Order totals, stock deduction and price snapshot
2. Rejection on missing product, insufficient stock or bad promotion
3. Atomic rollback when a later step fails
4. Cancellation restores stock from cancellable states only
5. Status transitions follow the transition table
6. Concurrent checkouts can't oversell stock or promotion uses
7. HTTP surface status codes and payloads
"""
import threading
from datetime import timedelta
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import DatabaseError, connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.utils import timezone
from rest_framework.test import APITestCase

from cart.models import CartItem
from catalog.models import Category, Product
from catalog.services import reserve_stock as real_reserve_stock
from core.exceptions import (
    InvalidOrderStatus,
    InvalidPromotion,
    InvalidStatusTransition,
    NotCancellable,
    OrderAccessDenied,
    OrderNotFound,
    OrderValidationError,
    OutOfStock,
    ProductNotFound,
)
from notifications.models import Notification
from orders.models import Order, OrderItem
from orders.services import (
    calculate_shipping_fee,
    calculate_total,
    cancel_order,
    create_order,
    get_order_for_user,
    update_order_status,
)
from orders.tasks import notify_order_event
from promotions.models import Promotion, PromotionUsage
from promotions.services import PromotionEvaluation

User = get_user_model()

ADDRESS = {
    'full_name': 'Nguyen Van A',
    'phone': '0901234567',
    'address': '12 Le Loi',
    'city': 'Ho Chi Minh',
    'district': 'District 1',
    'ward': 'Ben Nghe',
}


def make_promotion(code, discount_type, value, **kwargs):
    now = timezone.now()
    defaults = {
        'name': code,
        'min_order': 0,
        'start_date': now - timedelta(days=1),
        'end_date': now + timedelta(days=1),
        'usage_limit': 100,
    }
    defaults.update(kwargs)
    return Promotion.objects.create(code=code, discount_type=discount_type, value=value, **defaults)


@override_settings(SHIPPING_FEE=30000, FREE_SHIPPING_THRESHOLD=500000)
class OrderCreationTestCase(TestCase):
    """Test cases for order creation."""

    def setUp(self):
        self.user = User.objects.create_user(username='buyer', password='pass')
        self.category = Category.objects.create(name='Flowers')

        self.product1 = Product.objects.create(
            title='Rose Bouquet', price=100000, stock=100, category=self.category
        )
        self.product2 = Product.objects.create(
            title='Tulip Box', price=25000, stock=50, category=self.category
        )
        self.product3 = Product.objects.create(
            title='Orchid Pot', price=150000, stock=10, category=self.category  # Low stock
        )

    def _order(self, items, **kwargs):
        kwargs.setdefault('payment_method', Order.PaymentMethod.COD)
        kwargs.setdefault('shipping_address', ADDRESS)
        return create_order(self.user, items, **kwargs)

    def test_order_created_with_sufficient_stock(self):
        """
        Given: Products with sufficient stock
        When: Creating an order within stock limits
        Then: Order is PENDING, totals are computed and stock is deducted
        """
        items = [
            {'product_id': self.product1.id, 'quantity': 2},
            {'product_id': self.product2.id, 'quantity': 3}
        ]

        order, warnings = self._order(items)

        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.payment_status, Order.PaymentStatus.PENDING)
        self.assertEqual(warnings, [])

        # (2 * 100000) + (3 * 25000) = 275000, below the free shipping threshold
        self.assertEqual(order.subtotal, 275000)
        self.assertEqual(order.discount, 0)
        self.assertEqual(order.shipping_fee, 30000)
        self.assertEqual(order.total, 305000)
        self.assertEqual(order.items.count(), 2)

        self.product1.refresh_from_db()
        self.product2.refresh_from_db()
        self.assertEqual(self.product1.stock, 98)
        self.assertEqual(self.product2.stock, 47)

    def test_worked_example_with_fixed_promotion(self):
        """
        Given: Product with stock 1 at 100000 and SAVE10 (fixed 10000, min 50000, limit 5)
        When: Ordering 1 unit with SAVE10, then ordering again
        Then: First order totals 120000 and uses the code once; second is OutOfStock
        """
        product = Product.objects.create(title='Last One', price=100000, stock=1, category=self.category)
        promotion = make_promotion(
            'SAVE10', Promotion.DiscountType.FIXED_AMOUNT, 10000, min_order=50000, usage_limit=5
        )

        order, _ = self._order([{'product_id': product.id, 'quantity': 1}], promotion_code='save10')

        self.assertEqual(order.subtotal, 100000)
        self.assertEqual(order.discount, 10000)
        self.assertEqual(order.shipping_fee, 30000)
        self.assertEqual(order.total, 120000)
        self.assertEqual(order.promotion, promotion)

        product.refresh_from_db()
        promotion.refresh_from_db()
        self.assertEqual(product.stock, 0)
        self.assertEqual(promotion.usage_count, 1)
        self.assertTrue(PromotionUsage.objects.filter(order=order, promotion=promotion).exists())

        with self.assertRaises(OutOfStock):
            self._order([{'product_id': product.id, 'quantity': 1}])

    def test_order_with_exact_stock(self):
        order, _ = self._order([{'product_id': self.product3.id, 'quantity': 10}])

        self.assertEqual(order.status, Order.Status.PENDING)
        self.product3.refresh_from_db()
        self.assertEqual(self.product3.stock, 0)

    def test_insufficient_stock_rejects_whole_order(self):
        """
        Given: Orchid Pot has only 10 units
        When: Requesting 15 units alongside an in-stock line
        Then: OutOfStock is raised and nothing is persisted
        """
        items = [
            {'product_id': self.product1.id, 'quantity': 5},
            {'product_id': self.product3.id, 'quantity': 15}
        ]

        with self.assertRaises(OutOfStock) as context:
            self._order(items)

        self.assertEqual(context.exception.product_id, self.product3.id)
        self.assertEqual(context.exception.requested, 15)
        self.assertEqual(context.exception.available, 10)
        self.assertEqual(Order.objects.count(), 0)
        self.product1.refresh_from_db()
        self.assertEqual(self.product1.stock, 100)

    def test_rollback_when_third_deduction_fails(self):
        """
        Given: Three valid lines
        When: The third stock deduction fails after two have been applied
        Then: The first two deductions are rolled back and no order exists
        """
        calls = []

        def flaky_reserve(product_id, quantity):
            calls.append(product_id)
            if len(calls) == 3:
                raise OutOfStock(product_id, quantity, 0)
            real_reserve_stock(product_id, quantity)

        items = [
            {'product_id': self.product1.id, 'quantity': 5},
            {'product_id': self.product2.id, 'quantity': 10},
            {'product_id': self.product3.id, 'quantity': 2}
        ]

        with patch('orders.services.reserve_stock', side_effect=flaky_reserve):
            with self.assertRaises(OutOfStock):
                self._order(items)

        self.assertEqual(len(calls), 3)
        for product, original in ((self.product1, 100), (self.product2, 50), (self.product3, 10)):
            product.refresh_from_db()
            self.assertEqual(product.stock, original)
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(OrderItem.objects.count(), 0)

    def test_stale_stock_read_is_caught_by_guarded_update(self):
        """
        Given: The lookup saw 1 unit but another checkout already took it
        When: Deducting stock
        Then: The guarded UPDATE matches no row and the order is rejected
        """
        product = Product.objects.create(title='Contended', price=50000, stock=0, category=self.category)
        stale = Product.objects.get(pk=product.pk)
        stale.stock = 1

        with patch('orders.services.get_purchasable_product', return_value=stale):
            with self.assertRaises(OutOfStock):
                self._order([{'product_id': product.id, 'quantity': 1}])

        product.refresh_from_db()
        self.assertEqual(product.stock, 0)
        self.assertEqual(Order.objects.count(), 0)

    def test_missing_product_rejected(self):
        with self.assertRaises(ProductNotFound):
            self._order([{'product_id': 99999, 'quantity': 1}])
        self.assertEqual(Order.objects.count(), 0)

    def test_inactive_product_rejected(self):
        self.product2.is_active = False
        self.product2.save()

        with self.assertRaises(ProductNotFound):
            self._order([
                {'product_id': self.product1.id, 'quantity': 1},
                {'product_id': self.product2.id, 'quantity': 1}
            ])

        self.product1.refresh_from_db()
        self.assertEqual(self.product1.stock, 100)

    def test_invalid_promotion_fails_order_instead_of_being_ignored(self):
        promotion = make_promotion(
            'BIGSPEND', Promotion.DiscountType.FIXED_AMOUNT, 50000, min_order=1000000
        )

        with self.assertRaises(InvalidPromotion) as context:
            self._order([{'product_id': self.product1.id, 'quantity': 1}], promotion_code='BIGSPEND')

        self.assertEqual(context.exception.reason, 'below_minimum_order')
        self.product1.refresh_from_db()
        promotion.refresh_from_db()
        self.assertEqual(self.product1.stock, 100)
        self.assertEqual(promotion.usage_count, 0)
        self.assertEqual(Order.objects.count(), 0)

    def test_unknown_promotion_code_rejected(self):
        with self.assertRaises(InvalidPromotion) as context:
            self._order([{'product_id': self.product1.id, 'quantity': 1}], promotion_code='NOPE')
        self.assertEqual(context.exception.reason, 'not_found')

    def test_promotion_limit_taken_between_check_and_redeem(self):
        """
        Given: Evaluation saw a free use, but the last use was taken concurrently
        When: Redeeming the promotion inside the order transaction
        Then: InvalidPromotion is raised and stock deductions roll back
        """
        promotion = make_promotion(
            'LASTUSE', Promotion.DiscountType.FIXED_AMOUNT, 10000, usage_limit=1, usage_count=1
        )
        stale = PromotionEvaluation(usable=True, discount=10000, promotion=promotion)

        with patch('orders.services.evaluate_promotion', return_value=stale):
            with self.assertRaises(InvalidPromotion) as context:
                self._order([{'product_id': self.product1.id, 'quantity': 1}], promotion_code='LASTUSE')

        self.assertEqual(context.exception.reason, 'usage_limit_reached')
        self.product1.refresh_from_db()
        promotion.refresh_from_db()
        self.assertEqual(self.product1.stock, 100)
        self.assertEqual(promotion.usage_count, 1)
        self.assertEqual(Order.objects.count(), 0)

    def test_percentage_promotion_capped(self):
        make_promotion('PCT20', Promotion.DiscountType.PERCENTAGE, 20, max_discount=15000)

        order, _ = self._order([{'product_id': self.product1.id, 'quantity': 1}], promotion_code='PCT20')

        self.assertEqual(order.discount, 15000)
        self.assertEqual(order.total, 100000 - 15000 + 30000)

    def test_free_shipping_promotion_waives_fee(self):
        make_promotion('FREESHIP', Promotion.DiscountType.FREE_SHIPPING, 0)

        order, _ = self._order([{'product_id': self.product2.id, 'quantity': 1}], promotion_code='FREESHIP')

        self.assertEqual(order.discount, 0)
        self.assertEqual(order.shipping_fee, 0)
        self.assertEqual(order.total, 25000)

    def test_free_shipping_threshold(self):
        order, _ = self._order([{'product_id': self.product1.id, 'quantity': 5}])

        self.assertEqual(order.subtotal, 500000)
        self.assertEqual(order.shipping_fee, 0)
        self.assertEqual(order.total, 500000)

    def test_total_invariant(self):
        make_promotion('ALL', Promotion.DiscountType.PERCENTAGE, 100)
        make_promotion('FIX', Promotion.DiscountType.FIXED_AMOUNT, 999999999)
        scenarios = [
            ([{'product_id': self.product2.id, 'quantity': 1}], None),
            ([{'product_id': self.product2.id, 'quantity': 1}], 'ALL'),
            ([{'product_id': self.product2.id, 'quantity': 2}], 'FIX'),
            ([{'product_id': self.product1.id, 'quantity': 6}], 'ALL'),
        ]

        for items, code in scenarios:
            order, _ = self._order(items, promotion_code=code)
            self.assertGreaterEqual(order.total, 0)
            self.assertLessEqual(order.discount, order.subtotal)
            self.assertEqual(
                order.total,
                max(0, order.subtotal - order.discount) + order.shipping_fee
            )

    def test_unit_price_is_snapshotted(self):
        """
        Given: A placed order
        When: The product price changes afterwards
        Then: The order's line price and total keep their original values
        """
        order, _ = self._order([{'product_id': self.product1.id, 'quantity': 2}])

        self.product1.price = 999000
        self.product1.save()

        item = OrderItem.objects.get(order=order)
        order.refresh_from_db()
        self.assertEqual(item.unit_price, 100000)
        self.assertEqual(item.line_total, 200000)
        self.assertEqual(order.subtotal, 200000)

    def test_order_numbers_are_unique(self):
        first, _ = self._order([{'product_id': self.product1.id, 'quantity': 1}])
        second, _ = self._order([{'product_id': self.product2.id, 'quantity': 1}])

        self.assertTrue(first.order_number.startswith('GH'))
        self.assertNotEqual(first.order_number, second.order_number)

    def test_cart_cleared_after_checkout(self):
        CartItem.objects.create(user=self.user, product=self.product1, quantity=2)
        other = User.objects.create_user(username='other', password='pass')
        CartItem.objects.create(user=other, product=self.product1, quantity=1)

        self._order([{'product_id': self.product1.id, 'quantity': 2}])

        self.assertFalse(CartItem.objects.filter(user=self.user).exists())
        self.assertTrue(CartItem.objects.filter(user=other).exists())

    def test_cart_failure_is_a_warning(self):
        with patch('orders.services.clear_cart', side_effect=DatabaseError('cart table gone')):
            order, warnings = self._order([{'product_id': self.product1.id, 'quantity': 1}])

        self.assertTrue(Order.objects.filter(pk=order.pk).exists())
        self.assertEqual(len(warnings), 1)
        self.assertIn('cart', warnings[0])

    def test_notification_queued_after_commit(self):
        with patch.object(notify_order_event, 'delay') as delay:
            order, warnings = self._order([{'product_id': self.product1.id, 'quantity': 1}])

        delay.assert_called_once_with(order.pk, 'created')
        self.assertEqual(warnings, [])

    def test_notification_failure_is_a_warning(self):
        with patch.object(notify_order_event, 'delay', side_effect=ConnectionError('broker down')):
            order, warnings = self._order([{'product_id': self.product1.id, 'quantity': 1}])

        self.assertTrue(Order.objects.filter(pk=order.pk).exists())
        self.assertEqual(warnings, ["Order created but the notification could not be sent"])

    def test_validation_error_empty_items(self):
        with self.assertRaises(OrderValidationError) as context:
            self._order([])

        self.assertIn('at least one item', str(context.exception))

    def test_validation_error_invalid_quantity(self):
        with self.assertRaises(OrderValidationError):
            self._order([{'product_id': self.product1.id, 'quantity': 0}])

    def test_validation_error_duplicate_products(self):
        items = [
            {'product_id': self.product1.id, 'quantity': 5},
            {'product_id': self.product1.id, 'quantity': 3}  # Duplicate
        ]

        with self.assertRaises(OrderValidationError) as context:
            self._order(items)

        self.assertIn('duplicate', str(context.exception).lower())

    def test_validation_error_payment_method(self):
        with self.assertRaises(OrderValidationError):
            self._order([{'product_id': self.product1.id, 'quantity': 1}], payment_method='bitcoin')

    def test_validation_error_incomplete_address(self):
        address = dict(ADDRESS, ward='')

        with self.assertRaises(OrderValidationError) as context:
            self._order([{'product_id': self.product1.id, 'quantity': 1}], shipping_address=address)

        self.assertIn('ward', str(context.exception))

    def test_shipping_helpers(self):
        self.assertEqual(calculate_shipping_fee(499999), 30000)
        self.assertEqual(calculate_shipping_fee(500000), 0)
        self.assertEqual(calculate_shipping_fee(1000, free_shipping=True), 0)
        self.assertEqual(calculate_total(1000, 5000, 30000), 30000)


class OrderCancellationTestCase(TestCase):
    """Cancellation restores stock and keeps promotion usage."""

    def setUp(self):
        self.user = User.objects.create_user(username='buyer', password='pass')
        self.other = User.objects.create_user(username='other', password='pass')
        self.staff = User.objects.create_user(username='admin', password='pass', is_staff=True)
        category = Category.objects.create(name='Gifts')
        self.product1 = Product.objects.create(title='Candle', price=80000, stock=20, category=category)
        self.product2 = Product.objects.create(title='Card', price=20000, stock=5, category=category)
        self.promotion = make_promotion('TENOFF', Promotion.DiscountType.FIXED_AMOUNT, 10000)

        self.order, _ = create_order(
            self.user,
            [
                {'product_id': self.product1.id, 'quantity': 3},
                {'product_id': self.product2.id, 'quantity': 5}
            ],
            ADDRESS,
            Order.PaymentMethod.MOMO,
            promotion_code='TENOFF'
        )

    def test_cancel_restores_stock(self):
        """
        Given: An order that took 3 candles and 5 cards
        When: The owner cancels it
        Then: Stock returns to its pre-order level
        """
        order, warnings = cancel_order(self.user, self.order.pk)

        self.assertEqual(order.status, Order.Status.CANCELLED)
        self.assertEqual(warnings, [])
        self.product1.refresh_from_db()
        self.product2.refresh_from_db()
        self.assertEqual(self.product1.stock, 20)
        self.assertEqual(self.product2.stock, 5)

    def test_cancel_keeps_promotion_usage(self):
        cancel_order(self.user, self.order.pk)

        self.promotion.refresh_from_db()
        self.assertEqual(self.promotion.usage_count, 1)

    def test_cancel_confirmed_order(self):
        Order.objects.filter(pk=self.order.pk).update(status=Order.Status.CONFIRMED)

        order, _ = cancel_order(self.user, self.order.pk)

        self.assertEqual(order.status, Order.Status.CANCELLED)

    def test_cancel_delivered_order_not_allowed(self):
        Order.objects.filter(pk=self.order.pk).update(status=Order.Status.DELIVERED)

        with self.assertRaises(NotCancellable):
            cancel_order(self.user, self.order.pk)

        self.order.refresh_from_db()
        self.product1.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.DELIVERED)
        self.assertEqual(self.product1.stock, 17)

    def test_cancel_twice_does_not_restore_twice(self):
        cancel_order(self.user, self.order.pk)

        with self.assertRaises(NotCancellable):
            cancel_order(self.user, self.order.pk)

        self.product1.refresh_from_db()
        self.assertEqual(self.product1.stock, 20)

    def test_cancel_someone_elses_order(self):
        with self.assertRaises(OrderAccessDenied):
            cancel_order(self.other, self.order.pk)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)

    def test_staff_can_cancel_any_order(self):
        order, _ = cancel_order(self.staff, self.order.pk)
        self.assertEqual(order.status, Order.Status.CANCELLED)

    def test_cancel_missing_order(self):
        with self.assertRaises(OrderNotFound):
            cancel_order(self.user, 424242)

    def test_cancel_queues_notification(self):
        with patch.object(notify_order_event, 'delay') as delay:
            cancel_order(self.user, self.order.pk)

        delay.assert_called_once_with(self.order.pk, 'cancelled')

    def test_get_order_for_user_ownership(self):
        self.assertEqual(get_order_for_user(self.user, self.order.pk).pk, self.order.pk)
        self.assertEqual(get_order_for_user(self.staff, self.order.pk).pk, self.order.pk)
        with self.assertRaises(OrderAccessDenied):
            get_order_for_user(self.other, self.order.pk)


class OrderStatusTransitionTestCase(TestCase):
    """Admin-driven status changes."""

    def setUp(self):
        self.user = User.objects.create_user(username='buyer', password='pass')
        self.staff = User.objects.create_user(username='admin', password='pass', is_staff=True)
        category = Category.objects.create(name='Gifts')
        self.product = Product.objects.create(title='Hamper', price=300000, stock=4, category=category)
        self.order, _ = create_order(
            self.user,
            [{'product_id': self.product.id, 'quantity': 2}],
            ADDRESS,
            Order.PaymentMethod.BANK_TRANSFER
        )

    def test_forward_path_to_delivered(self):
        with patch.object(notify_order_event, 'delay') as delay:
            for target in ('confirmed', 'processing', 'shipping', 'delivered'):
                order, _ = update_order_status(self.order.pk, target, actor=self.staff)
                self.assertEqual(order.status, target)

        self.assertIsNotNone(order.delivered_at)
        self.assertEqual(delay.call_count, 4)
        delay.assert_called_with(self.order.pk, 'status_changed', 'delivered')
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 2)

    def test_queued_notifications_describe_their_own_transition(self):
        """
        Given: Two transitions queued before any worker runs
        When: The queued tasks run after the order reached PROCESSING
        Then: Each notification describes the status it was queued for
        """
        with patch.object(notify_order_event, 'delay') as delay:
            update_order_status(self.order.pk, 'confirmed')
            update_order_status(self.order.pk, 'processing')

        for call in delay.call_args_list:
            notify_order_event(*call.args)

        messages = list(
            Notification.objects.filter(user=self.user, title='Order update')
            .order_by('id').values_list('message', flat=True)
        )
        self.assertEqual(len(messages), 2)
        self.assertIn('confirmed', messages[0])
        self.assertIn('being processed', messages[1])

    def test_confirmed_can_skip_processing(self):
        update_order_status(self.order.pk, 'confirmed')
        order, _ = update_order_status(self.order.pk, 'shipping', tracking_number='VN123')

        self.assertEqual(order.status, Order.Status.SHIPPING)
        self.assertEqual(order.tracking_number, 'VN123')

    def test_unknown_status_rejected_before_lookup(self):
        with self.assertRaises(InvalidOrderStatus):
            update_order_status(424242, 'lost')

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)

    def test_missing_order(self):
        with self.assertRaises(OrderNotFound):
            update_order_status(424242, 'confirmed')

    def test_skipping_confirmation_rejected(self):
        with self.assertRaises(InvalidStatusTransition):
            update_order_status(self.order.pk, 'shipping')

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)

    def test_backward_transition_rejected(self):
        update_order_status(self.order.pk, 'confirmed')
        update_order_status(self.order.pk, 'processing')

        with self.assertRaises(InvalidStatusTransition):
            update_order_status(self.order.pk, 'confirmed')

    def test_admin_cancel_restores_stock(self):
        update_order_status(self.order.pk, 'confirmed')

        with patch.object(notify_order_event, 'delay') as delay:
            order, _ = update_order_status(self.order.pk, 'cancelled', actor=self.staff)

        self.assertEqual(order.status, Order.Status.CANCELLED)
        delay.assert_called_once_with(self.order.pk, 'cancelled')
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 4)

    def test_cancel_after_shipping_rejected(self):
        update_order_status(self.order.pk, 'confirmed')
        update_order_status(self.order.pk, 'shipping')

        with self.assertRaises(NotCancellable):
            update_order_status(self.order.pk, 'cancelled')

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 2)

    def test_same_status_only_updates_tracking(self):
        update_order_status(self.order.pk, 'confirmed')

        with patch.object(notify_order_event, 'delay') as delay:
            order, warnings = update_order_status(self.order.pk, 'confirmed', tracking_number='VN999')

        delay.assert_not_called()
        self.assertEqual(warnings, [])
        self.assertEqual(order.tracking_number, 'VN999')

    def test_terminal_states(self):
        self.assertFalse(Order.can_transition('delivered', 'shipping'))
        self.assertFalse(Order.can_transition('cancelled', 'pending'))
        self.assertTrue(Order.can_transition('pending', 'cancelled'))
        self.assertFalse(Order.can_transition('processing', 'cancelled'))


class ConcurrentOrderTestCase(TransactionTestCase):
    """
    Test concurrent order handling.
    Uses TransactionTestCase for proper multi-threading support.
    """

    def setUp(self):
        self.category = Category.objects.create(name='Concurrent Test Category')
        self.product = Product.objects.create(
            title='Limited Stock Product', price=50000, stock=1, category=self.category
        )
        self.users = [
            User.objects.create_user(username=f'buyer{i}', password='pass') for i in range(5)
        ]

    def _run_concurrently(self, target, args_list):
        results = []
        lock = threading.Lock()
        barrier = threading.Barrier(len(args_list))

        def worker(*args):
            try:
                barrier.wait()
                outcome = target(*args)
            except Exception as e:
                outcome = e
            finally:
                connection.close()
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=worker, args=args) for args in args_list]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results

    def test_concurrent_orders_no_overselling(self):
        """
        Given: 1 unit in stock
        When: Five users check out that unit at the same time
        Then: Exactly one succeeds, the rest get OutOfStock, stock ends at 0
        """
        def place_order(user):
            order, _ = create_order(
                user, [{'product_id': self.product.id, 'quantity': 1}], ADDRESS, 'cod'
            )
            return order

        results = self._run_concurrently(place_order, [(user,) for user in self.users])

        orders = [r for r in results if isinstance(r, Order)]
        out_of_stock = [r for r in results if isinstance(r, OutOfStock)]
        self.assertEqual(len(orders), 1, results)
        self.assertEqual(len(out_of_stock), 4, results)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 0)
        self.assertEqual(Order.objects.count(), 1)

    def test_concurrent_promotion_redemptions_respect_limit(self):
        """
        Given: A promotion with one use left and plenty of stock
        When: Four users apply it at the same time
        Then: Exactly one order gets it, the rest fail with InvalidPromotion
        """
        self.product.stock = 100
        self.product.save()
        promotion = make_promotion(
            'ONCE', Promotion.DiscountType.FIXED_AMOUNT, 5000, usage_limit=1
        )

        def place_order(user):
            order, _ = create_order(
                user, [{'product_id': self.product.id, 'quantity': 1}], ADDRESS, 'cod',
                promotion_code='ONCE'
            )
            return order

        results = self._run_concurrently(place_order, [(user,) for user in self.users[:4]])

        orders = [r for r in results if isinstance(r, Order)]
        rejected = [r for r in results if isinstance(r, InvalidPromotion)]
        self.assertEqual(len(orders), 1, results)
        self.assertEqual(len(rejected), 3, results)

        promotion.refresh_from_db()
        self.product.refresh_from_db()
        self.assertEqual(promotion.usage_count, 1)
        self.assertEqual(self.product.stock, 99)


@override_settings(RATE_LIMIT_ENABLED=False, SHIPPING_FEE=30000, FREE_SHIPPING_THRESHOLD=500000)
class OrderAPITestCase(APITestCase):
    """HTTP surface of the order workflow."""

    def setUp(self):
        self.user = User.objects.create_user(username='buyer', password='pass')
        self.other = User.objects.create_user(username='other', password='pass')
        self.staff = User.objects.create_user(username='admin', password='pass', is_staff=True)
        category = Category.objects.create(name='Flowers')
        self.product = Product.objects.create(title='Rose Bouquet', price=100000, stock=3, category=category)
        self.client.force_authenticate(self.user)

    def _payload(self, quantity=1, **extra):
        payload = {
            'items': [{'product_id': self.product.id, 'quantity': quantity}],
            'payment_method': 'cod',
            'shipping_address': ADDRESS,
        }
        payload.update(extra)
        return payload

    def _create(self, **kwargs):
        return self.client.post('/api/orders/', self._payload(**kwargs), format='json')

    def test_create_order(self):
        response = self._create(quantity=2, notes='Gift wrap please')

        self.assertEqual(response.status_code, 201)
        order = response.data['order']
        self.assertEqual(order['status'], 'pending')
        self.assertEqual(order['subtotal'], 200000)
        self.assertEqual(order['shipping_fee'], 30000)
        self.assertEqual(order['total'], 230000)
        self.assertEqual(order['shipping_address']['city'], 'Ho Chi Minh')
        self.assertEqual(order['items'][0]['unit_price'], 100000)
        self.assertEqual(response.data['warnings'], [])

    def test_create_requires_authentication(self):
        self.client.force_authenticate(None)
        response = self._create()
        self.assertIn(response.status_code, (401, 403))

    def test_create_out_of_stock(self):
        response = self._create(quantity=4)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'OutOfStock')

    def test_create_missing_product(self):
        payload = self._payload()
        payload['items'] = [{'product_id': 99999, 'quantity': 1}]

        response = self.client.post('/api/orders/', payload, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'ProductNotFound')

    def test_create_invalid_promotion(self):
        response = self._create(promotion_code='GHOST')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'InvalidPromotion')
        self.assertEqual(response.data['reason'], 'not_found')

    def test_create_validation_error(self):
        response = self.client.post('/api/orders/', {'items': []}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'ValidationError')

    def test_create_rejects_bad_phone(self):
        response = self._create(shipping_address=dict(ADDRESS, phone='12ab'))

        self.assertEqual(response.status_code, 400)
        self.assertIn('shipping_address', response.data['detail'])

    def test_list_own_orders(self):
        self._create()
        self.client.force_authenticate(self.other)
        self._create()
        self.client.force_authenticate(self.user)

        response = self.client.get('/api/orders/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['item_count'], 1)

        response = self.client.get('/api/orders/?status=cancelled')
        self.assertEqual(response.data['count'], 0)

        response = self.client.get('/api/orders/?status=PENDING')
        self.assertEqual(response.data['count'], 1)

    def test_list_unknown_status_filter(self):
        self._create()

        response = self.client.get('/api/orders/?status=bogus')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'InvalidOrderStatus')

    def test_get_order_detail(self):
        order_id = self._create().data['order']['id']

        self.assertEqual(self.client.get(f'/api/orders/{order_id}/').status_code, 200)

        self.client.force_authenticate(self.other)
        response = self.client.get(f'/api/orders/{order_id}/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error'], 'NotFound')

        self.client.force_authenticate(self.staff)
        self.assertEqual(self.client.get(f'/api/orders/{order_id}/').status_code, 200)

    def test_get_missing_order(self):
        self.assertEqual(self.client.get('/api/orders/424242/').status_code, 404)

    def test_cancel_order(self):
        order_id = self._create(quantity=2).data['order']['id']

        response = self.client.put(f'/api/orders/{order_id}/cancel/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['order']['status'], 'cancelled')
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 3)

        response = self.client.put(f'/api/orders/{order_id}/cancel/')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'NotCancellable')

    def test_cancel_other_users_order(self):
        order_id = self._create().data['order']['id']
        self.client.force_authenticate(self.other)

        response = self.client.put(f'/api/orders/{order_id}/cancel/')

        self.assertEqual(response.status_code, 404)

    def test_status_update_requires_staff(self):
        order_id = self._create().data['order']['id']

        response = self.client.put(f'/api/orders/{order_id}/status/', {'status': 'confirmed'}, format='json')

        self.assertEqual(response.status_code, 403)

    def test_status_update(self):
        order_id = self._create().data['order']['id']
        self.client.force_authenticate(self.staff)

        response = self.client.put(
            f'/api/orders/{order_id}/status/', {'status': 'confirmed', 'tracking_number': 'VN1'}, format='json'
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['order']['status'], 'confirmed')
        self.assertEqual(response.data['order']['tracking_number'], 'VN1')

    def test_status_update_invalid_value(self):
        order_id = self._create().data['order']['id']
        self.client.force_authenticate(self.staff)

        response = self.client.put(f'/api/orders/{order_id}/status/', {'status': 'teleported'}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'InvalidOrderStatus')

    def test_status_update_invalid_transition(self):
        order_id = self._create().data['order']['id']
        self.client.force_authenticate(self.staff)

        response = self.client.put(f'/api/orders/{order_id}/status/', {'status': 'delivered'}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'InvalidStatusTransition')

    def test_status_update_missing_order(self):
        self.client.force_authenticate(self.staff)

        response = self.client.put('/api/orders/424242/status/', {'status': 'confirmed'}, format='json')

        self.assertEqual(response.status_code, 404)

    def test_unexpected_error_is_500(self):
        with patch('orders.views.create_order', side_effect=RuntimeError('db exploded')):
            response = self._create()

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data['error'], 'Server Error')
