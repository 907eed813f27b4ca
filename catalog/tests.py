"""
Tests for catalog lookup and guarded stock updates.
"""
from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APITestCase

from core.exceptions import OutOfStock, ProductNotFound
from .models import Category, Product
from .services import get_purchasable_product, reserve_stock, restore_stock

User = get_user_model()


class StockServiceTestCase(TestCase):

    def setUp(self):
        self.category = Category.objects.create(name='Chocolates')
        self.product = Product.objects.create(
            title='Truffle Box', price=120000, stock=5, category=self.category
        )

    def test_get_purchasable_product(self):
        self.assertEqual(get_purchasable_product(self.product.id).pk, self.product.pk)
        self.assertEqual(get_purchasable_product(self.product.id, for_update=True).pk, self.product.pk)

    def test_inactive_product_not_purchasable(self):
        self.product.is_active = False
        self.product.save()

        with self.assertRaises(ProductNotFound) as context:
            get_purchasable_product(self.product.id)

        self.assertEqual(context.exception.product_id, self.product.id)

    def test_reserve_stock(self):
        reserve_stock(self.product.id, 5)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 0)
        self.assertTrue(self.product.is_out_of_stock)

    def test_reserve_more_than_available(self):
        """
        Given: 5 units on the shelf
        When: Reserving 6
        Then: OutOfStock reports what was available and stock is untouched
        """
        with self.assertRaises(OutOfStock) as context:
            reserve_stock(self.product.id, 6)

        self.assertEqual(context.exception.requested, 6)
        self.assertEqual(context.exception.available, 5)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 5)

    def test_restore_stock(self):
        reserve_stock(self.product.id, 3)
        restore_stock(self.product.id, 3)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 5)


class ProductAPITestCase(APITestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='browser', password='pass')
        self.client.force_authenticate(self.user)
        flowers = Category.objects.create(name='Flowers')
        candles = Category.objects.create(name='Candles')
        self.rose = Product.objects.create(title='Rose Bouquet', price=100000, stock=3, category=flowers)
        self.lily = Product.objects.create(title='Lily Bouquet', price=90000, stock=0, category=flowers)
        self.candle = Product.objects.create(title='Vanilla Candle', price=60000, stock=8, category=candles)
        self.hidden = Product.objects.create(
            title='Retired Bouquet', price=10000, stock=8, category=flowers, is_active=False
        )

    def test_list_active_products(self):
        response = self.client.get('/api/products/')

        self.assertEqual(response.status_code, 200)
        titles = [p['title'] for p in response.data['results']]
        self.assertEqual(titles, ['Lily Bouquet', 'Rose Bouquet', 'Vanilla Candle'])

    def test_filters(self):
        response = self.client.get('/api/products/', {'q': 'bouquet', 'in_stock': 'true'})
        self.assertEqual([p['id'] for p in response.data['results']], [self.rose.id])

        response = self.client.get('/api/products/', {'category_id': self.candle.category_id})
        self.assertEqual([p['id'] for p in response.data['results']], [self.candle.id])

    def test_detail(self):
        response = self.client.get(f'/api/products/{self.lily.id}/')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['is_out_of_stock'])
        self.assertEqual(response.data['category']['name'], 'Flowers')

    def test_inactive_product_hidden(self):
        response = self.client.get(f'/api/products/{self.hidden.id}/')
        self.assertEqual(response.status_code, 404)
