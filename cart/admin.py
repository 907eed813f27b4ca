from django.contrib import admin
from .models import CartItem


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'product', 'quantity', 'updated_at']
    search_fields = ['user__username', 'product__title']
    raw_id_fields = ['user', 'product']
