"""
Payments Admin Configuration for the Clothing Store backend
===========================================================
"""

from django.contrib import admin
from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = [
        'transaction_code', 'order', 'gateway', 'amount',
        'received_amount', 'status', 'expires_at', 'created_at'
    ]
    list_filter = ['status', 'gateway', 'created_at']
    search_fields = ['transaction_code', 'order__order_number', 'gateway_transaction_id']
    raw_id_fields = ['order', 'user']
    readonly_fields = [
        'id', 'transaction_code', 'qr_url', 'gateway_response',
        'created_at', 'paid_at'
    ]
    date_hierarchy = 'created_at'
