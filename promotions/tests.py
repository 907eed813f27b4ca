"""
Tests for promotion evaluation and redemption.

Test Cases:
1. Each gating rule reports its own reason
2. Discount math per discount type
3. Redemption respects the usage limit
4. Preview and listing endpoints
"""
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APITestCase

from core.exceptions import InvalidPromotion
from orders.models import Order
from .models import Promotion, PromotionUsage
from .services import (
    calculate_discount,
    evaluate_promotion,
    get_running_promotions,
    redeem_promotion,
)

User = get_user_model()


class PromotionEvaluationTestCase(TestCase):

    def setUp(self):
        self.now = timezone.now()
        self.promotion = Promotion.objects.create(
            code='save10',
            name='10k off',
            discount_type=Promotion.DiscountType.FIXED_AMOUNT,
            value=10000,
            min_order=50000,
            start_date=self.now - timedelta(days=1),
            end_date=self.now + timedelta(days=1),
            usage_limit=5
        )

    def test_code_stored_upper_case_and_matched_case_insensitively(self):
        self.assertEqual(self.promotion.code, 'SAVE10')

        evaluation = evaluate_promotion(' Save10 ', 100000, now=self.now)

        self.assertTrue(evaluation.usable)
        self.assertEqual(evaluation.discount, 10000)
        self.assertFalse(evaluation.free_shipping)
        self.assertEqual(evaluation.promotion, self.promotion)

    def test_unknown_code(self):
        evaluation = evaluate_promotion('NOPE', 100000, now=self.now)
        self.assertFalse(evaluation.usable)
        self.assertEqual(evaluation.reason, 'not_found')

        self.assertEqual(evaluate_promotion('', 100000, now=self.now).reason, 'not_found')

    def test_inactive(self):
        self.promotion.is_active = False
        self.promotion.save()

        self.assertEqual(evaluate_promotion('SAVE10', 100000, now=self.now).reason, 'inactive')

    def test_window(self):
        """
        Given: A promotion running for one day either side of now
        When: Evaluating before the start, on both bounds and after the end
        Then: Bounds are inclusive, outside them the reason says why
        """
        start, end = self.promotion.start_date, self.promotion.end_date

        self.assertEqual(
            evaluate_promotion('SAVE10', 100000, now=start - timedelta(seconds=1)).reason,
            'not_started'
        )
        self.assertTrue(evaluate_promotion('SAVE10', 100000, now=start).usable)
        self.assertTrue(evaluate_promotion('SAVE10', 100000, now=end).usable)
        self.assertEqual(
            evaluate_promotion('SAVE10', 100000, now=end + timedelta(seconds=1)).reason,
            'expired'
        )

    def test_usage_limit_reached(self):
        self.promotion.usage_count = 5
        self.promotion.save()

        self.assertEqual(
            evaluate_promotion('SAVE10', 100000, now=self.now).reason,
            'usage_limit_reached'
        )

    def test_unlimited_usage(self):
        self.promotion.usage_limit = None
        self.promotion.usage_count = 10000
        self.promotion.save()

        self.assertTrue(evaluate_promotion('SAVE10', 100000, now=self.now).usable)

    def test_below_minimum_order(self):
        self.assertEqual(
            evaluate_promotion('SAVE10', 49999, now=self.now).reason,
            'below_minimum_order'
        )
        self.assertTrue(evaluate_promotion('SAVE10', 50000, now=self.now).usable)

    def test_percentage_rounds_down_and_caps(self):
        promotion = Promotion(
            code='PCT', discount_type=Promotion.DiscountType.PERCENTAGE, value=15
        )
        self.assertEqual(calculate_discount(promotion, 99999), 14999)

        promotion.max_discount = 10000
        self.assertEqual(calculate_discount(promotion, 1000000), 10000)

    def test_fixed_amount_never_exceeds_subtotal(self):
        promotion = Promotion(
            code='FIX', discount_type=Promotion.DiscountType.FIXED_AMOUNT, value=80000
        )
        self.assertEqual(calculate_discount(promotion, 50000), 50000)

    def test_free_shipping(self):
        Promotion.objects.create(
            code='FREESHIP',
            name='Free shipping',
            discount_type=Promotion.DiscountType.FREE_SHIPPING,
            start_date=self.now - timedelta(days=1),
            end_date=self.now + timedelta(days=1),
        )

        evaluation = evaluate_promotion('freeship', 10000, now=self.now)

        self.assertTrue(evaluation.usable)
        self.assertEqual(evaluation.discount, 0)
        self.assertTrue(evaluation.free_shipping)

    def test_clean_rejects_bad_values(self):
        self.promotion.discount_type = Promotion.DiscountType.PERCENTAGE
        self.promotion.value = 150
        with self.assertRaises(ValidationError):
            self.promotion.clean()

    def test_running_promotions(self):
        Promotion.objects.create(
            code='OLD', name='Old', discount_type=Promotion.DiscountType.FIXED_AMOUNT, value=1,
            start_date=self.now - timedelta(days=10), end_date=self.now - timedelta(days=5)
        )
        Promotion.objects.create(
            code='USEDUP', name='Used up', discount_type=Promotion.DiscountType.FIXED_AMOUNT, value=1,
            start_date=self.now - timedelta(days=1), end_date=self.now + timedelta(days=1),
            usage_limit=1, usage_count=1
        )

        codes = [p.code for p in get_running_promotions(now=self.now)]

        self.assertEqual(codes, ['SAVE10'])


class PromotionRedemptionTestCase(TestCase):

    def setUp(self):
        now = timezone.now()
        self.user = User.objects.create_user(username='buyer', password='pass')
        self.promotion = Promotion.objects.create(
            code='ONCE',
            name='One use',
            discount_type=Promotion.DiscountType.FIXED_AMOUNT,
            value=5000,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=1),
            usage_limit=1
        )

    def _order(self):
        return Order.objects.create(
            user=self.user,
            payment_method=Order.PaymentMethod.COD,
            subtotal=100000,
            discount=5000,
            shipping_fee=30000,
            total=125000,
            shipping_address={},
        )

    def test_redeem_records_usage(self):
        order = self._order()

        usage = redeem_promotion(self.promotion, order, self.user, 5000)

        self.promotion.refresh_from_db()
        self.assertEqual(self.promotion.usage_count, 1)
        self.assertEqual(usage.order, order)
        self.assertEqual(usage.discount, 5000)

    def test_redeem_past_limit_raises(self):
        redeem_promotion(self.promotion, self._order(), self.user, 5000)

        with self.assertRaises(InvalidPromotion) as context:
            redeem_promotion(self.promotion, self._order(), self.user, 5000)

        self.assertEqual(context.exception.reason, 'usage_limit_reached')
        self.promotion.refresh_from_db()
        self.assertEqual(self.promotion.usage_count, 1)
        self.assertEqual(PromotionUsage.objects.count(), 1)


@override_settings(RATE_LIMIT_ENABLED=False)
class PromotionAPITestCase(APITestCase):

    def setUp(self):
        now = timezone.now()
        self.user = User.objects.create_user(username='buyer', password='pass')
        self.client.force_authenticate(self.user)
        Promotion.objects.create(
            code='GIFT15',
            name='15% off gifts',
            discount_type=Promotion.DiscountType.PERCENTAGE,
            value=15,
            max_discount=200000,
            min_order=300000,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=30),
            usage_limit=500
        )

    def test_validate_usable_code(self):
        response = self.client.post(
            '/api/promotions/validate/', {'code': 'gift15', 'subtotal': 400000}, format='json'
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['code'], 'GIFT15')
        self.assertTrue(response.data['usable'])
        self.assertEqual(response.data['discount'], 60000)
        self.assertIsNone(response.data['reason'])

    def test_validate_reports_reason(self):
        response = self.client.post(
            '/api/promotions/validate/', {'code': 'GIFT15', 'subtotal': 1000}, format='json'
        )

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data['usable'])
        self.assertEqual(response.data['reason'], 'below_minimum_order')

    def test_validate_bad_body(self):
        response = self.client.post('/api/promotions/validate/', {'subtotal': -1}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'ValidationError')
        self.assertIn('code', response.data['detail'])
        self.assertIn('subtotal', response.data['detail'])

    def test_active_list_hides_counters(self):
        response = self.client.get('/api/promotions/active/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 1)
        promotion = response.data['results'][0]
        self.assertEqual(promotion['code'], 'GIFT15')
        self.assertNotIn('usage_count', promotion)
