"""
Django Admin configuration for promotion models.
"""
from django.contrib import admin
from .models import Promotion, PromotionUsage


@admin.register(Promotion)
class PromotionAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'code', 'discount_type', 'value', 'min_order',
        'usage_count', 'usage_limit', 'start_date', 'end_date', 'is_active'
    ]
    list_filter = ['discount_type', 'is_active', 'start_date']
    search_fields = ['code', 'name']
    ordering = ['-created_at']
    readonly_fields = ['usage_count', 'created_at', 'updated_at']


@admin.register(PromotionUsage)
class PromotionUsageAdmin(admin.ModelAdmin):
    list_display = ['id', 'promotion', 'user', 'order', 'discount', 'used_at']
    list_filter = ['used_at']
    search_fields = ['promotion__code', 'user__username', 'order__order_number']
    raw_id_fields = ['promotion', 'user', 'order']
    readonly_fields = ['used_at']
