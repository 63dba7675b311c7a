"""
Payment Serializers for the Clothing Store backend
==================================================
"""

from rest_framework import serializers
from drf_spectacular.utils import extend_schema_field
from .models import Payment


class SepayPaymentSerializer(serializers.ModelSerializer):
    """QR payment as shown on the payment page."""

    order_number = serializers.CharField(source='order.order_number', read_only=True)
    bank_info = serializers.SerializerMethodField()
    seconds_left = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            'id', 'order_number', 'status', 'currency', 'amount',
            'qr_url', 'bank_info', 'transfer_content',
            'expires_at', 'seconds_left', 'paid_at', 'created_at'
        ]

    @extend_schema_field(serializers.DictField())
    def get_bank_info(self, obj) -> dict:
        return {
            'bank_id': obj.bank_id,
            'bank_name': obj.bank_name,
            'account_number': obj.account_number,
            'account_name': obj.account_name,
        }

    @extend_schema_field(int)
    def get_seconds_left(self, obj) -> int:
        return obj.seconds_left()


class CreateSepayPaymentSerializer(serializers.Serializer):
    order_number = serializers.CharField(max_length=50)


class PaymentStatusSerializer(serializers.Serializer):
    """Polling response."""

    order_number = serializers.CharField()
    status = serializers.ChoiceField(choices=Payment.Status.choices)
    payment_status = serializers.CharField()
    amount = serializers.DecimalField(max_digits=15, decimal_places=2)
    expires_at = serializers.DateTimeField(allow_null=True)
    seconds_left = serializers.IntegerField()


class SepayWebhookSerializer(serializers.Serializer):
    """Transfer notification sent by Sepay (documentation only)."""

    id = serializers.IntegerField()
    gateway = serializers.CharField()
    transactionDate = serializers.CharField()
    accountNumber = serializers.CharField()
    code = serializers.CharField(allow_null=True, required=False)
    content = serializers.CharField()
    transferType = serializers.ChoiceField(choices=['in', 'out'])
    transferAmount = serializers.IntegerField()
    referenceCode = serializers.CharField(required=False)
    description = serializers.CharField(required=False)
