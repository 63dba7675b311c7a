"""
Cart Admin Configuration for the Clothing Store backend
=======================================================
"""

from django.contrib import admin
from .models import Cart, CartItem


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    raw_id_fields = ['product']


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'item_count', 'subtotal', 'coupon_code', 'updated_at']
    list_filter = ['updated_at']
    search_fields = ['user__email', 'coupon_code']
    raw_id_fields = ['user']
    readonly_fields = ['id', 'subtotal', 'item_count', 'created_at', 'updated_at']
    inlines = [CartItemInline]
