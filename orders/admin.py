"""
Django Admin configuration for order models.

Status changes go through the API so stock and notifications stay in
step; the admin only shows orders.
"""
from django.contrib import admin
from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'quantity', 'unit_price', 'line_total']
    can_delete = False

    @admin.display(description='Line total')
    def line_total(self, obj):
        return obj.line_total


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['id', 'order_number', 'user', 'status', 'payment_status', 'total', 'item_count', 'created_at']
    list_filter = ['status', 'payment_status', 'payment_method', 'created_at']
    search_fields = ['order_number', 'user__username', 'tracking_number']
    ordering = ['-created_at']
    readonly_fields = [
        'order_number', 'user', 'status', 'payment_method', 'subtotal', 'discount',
        'shipping_fee', 'total', 'promotion', 'shipping_address',
        'created_at', 'updated_at', 'delivered_at'
    ]
    inlines = [OrderItemInline]

    @admin.display(description='Items')
    def item_count(self, obj):
        return obj.items.count()


@admin.register(OrderItem)
class OrderItemAdmin(admin.ModelAdmin):
    list_display = ['id', 'order', 'product', 'quantity', 'unit_price', 'line_total']
    list_filter = ['order__status', 'created_at']
    search_fields = ['product__title', 'order__order_number']
    ordering = ['-created_at']
    raw_id_fields = ['order', 'product']

    @admin.display(description='Line total')
    def line_total(self, obj):
        return obj.line_total
