"""
Tests for the cart.

Test Cases:
1. Service-level add/update/remove/clear scoped to one user
2. Quantities checked against current stock
3. HTTP surface, including checkout emptying a cart filled over the API
"""
from django.contrib.auth import get_user_model
from django.db import IntegrityError
from django.test import TestCase, override_settings
from rest_framework.test import APITestCase

from catalog.models import Category, Product
from core.exceptions import CartItemNotFound, OutOfStock, ProductNotFound
from .models import CartItem
from .services import add_to_cart, clear_cart, remove_cart_item, update_cart_item

User = get_user_model()

ADDRESS = {
    'full_name': 'Tran Thi B',
    'phone': '0912345678',
    'address': '5 Tran Phu',
    'city': 'Ha Noi',
    'district': 'Hoan Kiem',
    'ward': 'Hang Trong',
}


class CartServiceTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='shopper', password='pass')
        self.other = User.objects.create_user(username='other', password='pass')
        category = Category.objects.create(name='Stationery')
        self.pen = Product.objects.create(title='Fountain Pen', price=250000, stock=4, category=category)
        self.card = Product.objects.create(title='Thank You Card', price=15000, stock=40, category=category)

    def test_clear_only_own_cart(self):
        CartItem.objects.create(user=self.user, product=self.pen, quantity=1)
        CartItem.objects.create(user=self.user, product=self.card, quantity=3)
        CartItem.objects.create(user=self.other, product=self.card, quantity=1)

        removed = clear_cart(self.user)

        self.assertEqual(removed, 2)
        self.assertFalse(CartItem.objects.filter(user=self.user).exists())
        self.assertEqual(CartItem.objects.filter(user=self.other).count(), 1)

    def test_clear_empty_cart(self):
        self.assertEqual(clear_cart(self.user), 0)

    def test_one_line_per_product(self):
        CartItem.objects.create(user=self.user, product=self.pen, quantity=1)

        with self.assertRaises(IntegrityError):
            CartItem.objects.create(user=self.user, product=self.pen, quantity=2)

    def test_add_merges_lines(self):
        first = add_to_cart(self.user, self.pen.id, 1)
        second = add_to_cart(self.user, self.pen.id, 2)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(second.quantity, 3)
        self.assertEqual(CartItem.objects.filter(user=self.user).count(), 1)

    def test_add_beyond_stock(self):
        """
        Given: 4 pens in stock and 3 already in the cart
        When: Adding 2 more
        Then: OutOfStock is raised and the line keeps 3
        """
        add_to_cart(self.user, self.pen.id, 3)

        with self.assertRaises(OutOfStock) as context:
            add_to_cart(self.user, self.pen.id, 2)

        self.assertEqual(context.exception.requested, 5)
        self.assertEqual(context.exception.available, 4)
        self.assertEqual(CartItem.objects.get(user=self.user).quantity, 3)

    def test_add_inactive_product(self):
        self.card.is_active = False
        self.card.save()

        with self.assertRaises(ProductNotFound):
            add_to_cart(self.user, self.card.id, 1)

    def test_update_checks_stock(self):
        item = add_to_cart(self.user, self.pen.id, 1)

        self.assertEqual(update_cart_item(self.user, item.id, 4).quantity, 4)
        with self.assertRaises(OutOfStock):
            update_cart_item(self.user, item.id, 5)

    def test_cannot_touch_someone_elses_line(self):
        item = add_to_cart(self.other, self.card.id, 1)

        with self.assertRaises(CartItemNotFound):
            update_cart_item(self.user, item.id, 2)
        with self.assertRaises(CartItemNotFound):
            remove_cart_item(self.user, item.id)

        self.assertTrue(CartItem.objects.filter(pk=item.pk).exists())


@override_settings(RATE_LIMIT_ENABLED=False)
class CartAPITestCase(APITestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='shopper', password='pass')
        self.other = User.objects.create_user(username='other', password='pass')
        category = Category.objects.create(name='Flowers')
        self.rose = Product.objects.create(title='Rose Bouquet', price=100000, stock=5, category=category)
        self.lily = Product.objects.create(title='Lily Bouquet', price=90000, stock=2, category=category)
        self.client.force_authenticate(self.user)

    def _add(self, product, quantity):
        return self.client.post(
            '/api/cart/items/', {'product_id': product.id, 'quantity': quantity}, format='json'
        )

    def test_get_cart_with_summary(self):
        self._add(self.rose, 2)
        self._add(self.lily, 1)
        CartItem.objects.create(user=self.other, product=self.rose, quantity=1)
        self.lily.is_active = False
        self.lily.save()

        response = self.client.get('/api/cart/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data['items']), 2)
        self.assertEqual(response.data['summary'], {
            'total_items': 2,
            'subtotal': 200000,
            'active_items': 1,
            'inactive_items': 1,
        })

    def test_add_item(self):
        response = self._add(self.rose, 2)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['quantity'], 2)
        self.assertEqual(response.data['line_total'], 200000)

    def test_add_item_over_stock(self):
        response = self._add(self.lily, 3)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'OutOfStock')

    def test_add_item_bad_body(self):
        response = self.client.post('/api/cart/items/', {'product_id': self.rose.id, 'quantity': 0}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'ValidationError')

    def test_add_missing_product(self):
        response = self.client.post('/api/cart/items/', {'product_id': 99999, 'quantity': 1}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'ProductNotFound')

    def test_update_item(self):
        item_id = self._add(self.rose, 1).data['id']

        response = self.client.put(f'/api/cart/items/{item_id}/', {'quantity': 5}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['quantity'], 5)

        response = self.client.put(f'/api/cart/items/{item_id}/', {'quantity': 6}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'OutOfStock')

    def test_delete_item(self):
        item_id = self._add(self.rose, 1).data['id']

        self.assertEqual(self.client.delete(f'/api/cart/items/{item_id}/').status_code, 204)
        self.assertEqual(self.client.delete(f'/api/cart/items/{item_id}/').status_code, 404)

    def test_other_users_line_is_not_found(self):
        item = CartItem.objects.create(user=self.other, product=self.rose, quantity=1)

        response = self.client.put(f'/api/cart/items/{item.id}/', {'quantity': 2}, format='json')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error'], 'NotFound')

    def test_clear_cart(self):
        self._add(self.rose, 1)
        self._add(self.lily, 1)

        response = self.client.delete('/api/cart/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['removed'], 2)
        self.assertEqual(self.client.get('/api/cart/').data['items'], [])

    def test_checkout_empties_cart(self):
        """
        Given: A cart filled through the API
        When: The user checks out
        Then: The order is created and the cart is empty
        """
        self._add(self.rose, 2)

        response = self.client.post('/api/orders/', {
            'items': [{'product_id': self.rose.id, 'quantity': 2}],
            'payment_method': 'cod',
            'shipping_address': ADDRESS,
        }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['warnings'], [])
        self.assertEqual(self.client.get('/api/cart/').data['items'], [])
