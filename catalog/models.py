"""
Catalog Models - Products offered by the storefront.

Models:
    - Category: Product categorization
    - Product: Items available for sale, with their own stock counter

Prices are integer minor currency units.
"""
from django.db import models


class Category(models.Model):
    """
    Product category for organizing products.
    """
    name = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        help_text="Unique category name"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Category'
        verbose_name_plural = 'Categories'
        ordering = ['name']

    def __str__(self):
        return self.name


class Product(models.Model):
    """
    Product entity representing items available for sale.

    Stock is only changed by the order workflow through conditional
    updates (see catalog.services), never by read-modify-write.
    """
    title = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Product title for display and search"
    )
    description = models.TextField(
        blank=True,
        default='',
        help_text="Optional product description"
    )
    price = models.PositiveBigIntegerField(
        help_text="Unit price in minor currency units"
    )
    stock = models.PositiveIntegerField(
        default=0,
        help_text="Units available for sale"
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.CASCADE,
        related_name='products',
        help_text="Product category"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether product is available for ordering"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        ordering = ['title']
        indexes = [
            models.Index(fields=['title', 'is_active'], name='catalog_product_title_active'),
            models.Index(fields=['category', 'is_active'], name='catalog_product_cat_active'),
        ]

    def __str__(self):
        return f"{self.title} ({self.price})"

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock == 0
