"""
Coupons Admin Configuration for the Clothing Store backend
==========================================================
"""

from django.contrib import admin
from .models import Coupon, CouponUsage


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = [
        'code', 'name', 'type', 'visibility', 'discount_type', 'discount_value',
        'used_count', 'usage_limit', 'start_date', 'end_date', 'is_active'
    ]
    list_filter = ['type', 'visibility', 'discount_type', 'apply_type', 'is_active']
    search_fields = ['code', 'name']
    readonly_fields = ['used_count', 'created_at', 'updated_at']
    filter_horizontal = ['applicable_categories', 'applicable_products', 'assigned_users']
    raw_id_fields = ['created_by']


@admin.register(CouponUsage)
class CouponUsageAdmin(admin.ModelAdmin):
    """Redemptions are read-only history."""

    list_display = ['coupon', 'user', 'order', 'discount_amount', 'used_at']
    list_filter = ['used_at']
    search_fields = ['coupon__code', 'user__email', 'order__order_number']
    readonly_fields = ['coupon', 'user', 'order', 'discount_amount', 'used_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
