"""
Cart Serializers for the Clothing Store backend
===============================================
"""

from rest_framework import serializers
from .models import Cart, CartItem
from apps.business.commerce.products.serializers import ProductListSerializer


class CartItemSerializer(serializers.ModelSerializer):
    """Cart item serializer."""

    product = ProductListSerializer(read_only=True)

    class Meta:
        model = CartItem
        fields = ['id', 'product', 'quantity', 'unit_price', 'total_price']
        read_only_fields = fields


class CartSerializer(serializers.ModelSerializer):
    """Cart serializer."""

    items = CartItemSerializer(many=True, read_only=True)

    class Meta:
        model = Cart
        fields = [
            'id', 'subtotal', 'item_count', 'currency', 'coupon_code',
            'items', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class AddToCartSerializer(serializers.Serializer):
    """Serializer for adding items to cart."""

    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, default=1)


class UpdateCartItemSerializer(serializers.Serializer):
    """Serializer for updating cart item quantity."""

    quantity = serializers.IntegerField(min_value=0)


class AttachCouponSerializer(serializers.Serializer):
    """Serializer for attaching a coupon to the cart."""

    coupon_code = serializers.CharField(max_length=50)
