"""
Management command to seed the database with sample data.

Generates:
- Gift categories
- Products with prices and stock
- A handful of promotions covering every discount type

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing data first
"""
import random
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from catalog.models import Category, Product
from promotions.models import Promotion


class Command(BaseCommand):
    help = 'Seed the database with sample categories, products, and promotions'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )
        parser.add_argument(
            '--products',
            type=int,
            default=200,
            help='Number of products to create (default: 200)',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            categories = self._create_categories()
            self._create_products(options['products'], categories)
            self._create_promotions()

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))

    def _clear_data(self):
        """Clear all existing data."""
        from orders.models import OrderItem, Order
        from promotions.models import PromotionUsage

        PromotionUsage.objects.all().delete()
        OrderItem.objects.all().delete()
        Order.objects.all().delete()
        Promotion.objects.all().delete()
        Product.objects.all().delete()
        Category.objects.all().delete()

        self.stdout.write(self.style.WARNING('All existing data cleared.'))

    def _create_categories(self):
        category_names = [
            'Flowers', 'Chocolates', 'Gift Baskets', 'Personalized Gifts',
            'Home Decor', 'Jewelry', 'Stationery', 'Toys'
        ]

        categories = []
        for name in category_names:
            category, created = Category.objects.get_or_create(name=name)
            categories.append(category)
            if created:
                self.stdout.write(f'  Created category: {name}')

        self.stdout.write(self.style.SUCCESS(f'Created {len(categories)} categories'))
        return categories

    def _create_products(self, count, categories):
        adjectives = ['Classic', 'Deluxe', 'Handmade', 'Premium', 'Mini', 'Signature', 'Seasonal']
        items = ['Bouquet', 'Box', 'Set', 'Hamper', 'Keepsake', 'Candle', 'Card', 'Frame']

        products = []
        for i in range(count):
            category = random.choice(categories)
            title = f"{random.choice(adjectives)} {category.name} {random.choice(items)} #{i + 1}"
            products.append(Product(
                title=title,
                description=f"A {category.name.lower()} gift, wrapped and ready to send.",
                price=random.randrange(50000, 2000000, 10000),
                stock=random.randint(0, 100),
                category=category,
                is_active=random.random() > 0.05  # 95% active
            ))

        Product.objects.bulk_create(products)
        self.stdout.write(self.style.SUCCESS(f'Created {len(products)} products'))

    def _create_promotions(self):
        now = timezone.now()
        promotions = [
            dict(code='SAVE10', name='10k off', discount_type=Promotion.DiscountType.FIXED_AMOUNT,
                 value=10000, min_order=50000, usage_limit=100),
            dict(code='GIFT15', name='15% off gifts', discount_type=Promotion.DiscountType.PERCENTAGE,
                 value=15, max_discount=200000, min_order=300000, usage_limit=500),
            dict(code='FREESHIP', name='Free shipping', discount_type=Promotion.DiscountType.FREE_SHIPPING,
                 value=0, min_order=0, usage_limit=None),
        ]

        for data in promotions:
            _, created = Promotion.objects.get_or_create(
                code=data['code'],
                defaults={
                    **data,
                    'start_date': now - timedelta(days=1),
                    'end_date': now + timedelta(days=90),
                }
            )
            if created:
                self.stdout.write(f"  Created promotion: {data['code']}")

        self.stdout.write(self.style.SUCCESS(f'Seeded {len(promotions)} promotions'))
