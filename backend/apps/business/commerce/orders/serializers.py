"""
Order Serializers for the Clothing Store backend
================================================
"""

from rest_framework import serializers
from django.utils.translation import gettext_lazy as _
from drf_spectacular.utils import extend_schema_field
from apps.base.core.locations.models import Province, Ward
from .models import Order, OrderItem, OrderStatusHistory


class OrderItemSerializer(serializers.ModelSerializer):
    """Order item serializer."""

    class Meta:
        model = OrderItem
        fields = [
            'id', 'product', 'product_name', 'product_sku',
            'quantity', 'unit_price', 'total_price'
        ]


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    """Order status history serializer."""

    class Meta:
        model = OrderStatusHistory
        fields = ['id', 'old_status', 'new_status', 'note', 'created_at']


class OrderListSerializer(serializers.ModelSerializer):
    """Order list serializer (simplified)."""

    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'status', 'payment_status', 'payment_method',
            'total', 'item_count', 'created_at'
        ]

    @extend_schema_field(int)
    def get_item_count(self, obj) -> int:
        return obj.items.count()


class OrderDetailSerializer(serializers.ModelSerializer):
    """Order detail serializer (full information)."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = OrderStatusHistorySerializer(many=True, read_only=True)
    can_cancel = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'status', 'payment_status', 'payment_method',
            'currency', 'subtotal', 'shipping_fee', 'discount_amount', 'total',
            'coupon_code',
            'shipping_name', 'shipping_phone', 'shipping_street', 'shipping_ward',
            'shipping_province', 'shipping_address_line', 'estimated_delivery',
            'customer_note', 'items', 'status_history', 'can_cancel',
            'created_at', 'paid_at', 'delivered_at', 'cancelled_at', 'cancellation_reason'
        ]

    @extend_schema_field(bool)
    def get_can_cancel(self, obj) -> bool:
        return obj.can_cancel


class InlineAddressSerializer(serializers.Serializer):
    """Shipping address typed in at checkout instead of a saved one."""

    recipient_name = serializers.CharField(max_length=255)
    phone_number = serializers.CharField(max_length=20)
    street_address = serializers.CharField(max_length=500)
    province = serializers.SlugRelatedField(
        slug_field='code', queryset=Province.objects.filter(is_active=True)
    )
    ward = serializers.SlugRelatedField(
        slug_field='code', queryset=Ward.objects.filter(is_active=True),
        required=False, allow_null=True
    )

    def validate(self, attrs):
        ward = attrs.get('ward')
        if ward is not None and ward.province_id != attrs['province'].pk:
            raise serializers.ValidationError({
                'ward': _('Phường/xã không thuộc tỉnh/thành đã chọn.')
            })
        return attrs


class ReviewOrderSerializer(serializers.Serializer):
    """Address choice for an order review."""

    address_id = serializers.IntegerField(required=False, allow_null=True)
    address = InlineAddressSerializer(required=False, allow_null=True)


class CheckoutSerializer(ReviewOrderSerializer):
    """Serializer for creating order from cart."""

    idempotency_key = serializers.UUIDField()
    payment_method = serializers.ChoiceField(choices=Order.PaymentMethod.choices)
    customer_note = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')


class CancelOrderSerializer(serializers.Serializer):
    """Serializer for cancelling order."""

    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class UpdateOrderStatusSerializer(serializers.Serializer):
    """Serializer for staff status changes."""

    status = serializers.ChoiceField(choices=Order.Status.choices)
    note = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
