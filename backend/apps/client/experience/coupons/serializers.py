"""
Coupons Serializers for the Clothing Store backend
==================================================
"""

from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.utils.translation import gettext_lazy as _
from apps.business.commerce.products.models import Category, Product
from .models import Coupon, CouponUsage

User = get_user_model()


class CouponSerializer(serializers.ModelSerializer):
    """Public coupon serializer (limited info)."""

    remaining_total_uses = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Coupon
        fields = [
            'id', 'code', 'name', 'description', 'type', 'visibility',
            'discount_type', 'discount_value', 'max_discount', 'min_order_value',
            'usage_limit_per_user', 'apply_type', 'start_date', 'end_date',
            'remaining_total_uses'
        ]


class CouponAdminSerializer(serializers.ModelSerializer):
    """Full coupon representation and update serializer for staff."""

    applicable_categories = serializers.PrimaryKeyRelatedField(
        many=True, queryset=Category.objects.all(), required=False
    )
    applicable_products = serializers.PrimaryKeyRelatedField(
        many=True, queryset=Product.objects.all(), required=False
    )
    assigned_users = serializers.PrimaryKeyRelatedField(
        many=True, queryset=User.objects.all(), required=False
    )

    class Meta:
        model = Coupon
        fields = [
            'id', 'code', 'name', 'description', 'type', 'visibility',
            'discount_type', 'discount_value', 'max_discount', 'min_order_value',
            'usage_limit', 'usage_limit_per_user', 'used_count',
            'apply_type', 'applicable_categories', 'applicable_products', 'assigned_users',
            'start_date', 'end_date', 'is_active', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'code', 'used_count', 'created_by', 'created_at', 'updated_at']

    def validate(self, attrs):
        instance = self.instance
        discount_type = attrs.get('discount_type', getattr(instance, 'discount_type', None))
        discount_value = attrs.get('discount_value', getattr(instance, 'discount_value', None))
        start_date = attrs.get('start_date', getattr(instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(instance, 'end_date', None))
        max_discount = attrs.get('max_discount', getattr(instance, 'max_discount', None))

        if discount_value is not None and discount_value <= 0:
            raise serializers.ValidationError({'discount_value': _('Giá trị giảm phải lớn hơn 0')})
        if discount_type == Coupon.DiscountType.PERCENTAGE and discount_value and discount_value > 100:
            raise serializers.ValidationError({'discount_value': _('Phần trăm giảm không được vượt quá 100')})
        if max_discount is not None and max_discount < 0:
            raise serializers.ValidationError({'max_discount': _('Mức giảm tối đa không được âm')})
        if start_date and end_date and end_date <= start_date:
            raise serializers.ValidationError({'end_date': _('Ngày kết thúc phải sau ngày bắt đầu')})
        return attrs


class CouponCreateSerializer(serializers.Serializer):
    """Input for creating a coupon through the builder."""

    PRESET_CHOICES = ['flash_sale', 'new_customer', 'public_featured', 'private_for_users']

    code = serializers.CharField(max_length=50)
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    discount_type = serializers.ChoiceField(choices=Coupon.DiscountType.choices)
    discount_value = serializers.DecimalField(max_digits=15, decimal_places=2)
    max_discount = serializers.DecimalField(
        max_digits=15, decimal_places=2, required=False, allow_null=True, min_value=0
    )
    min_order_value = serializers.DecimalField(max_digits=15, decimal_places=2, required=False, default=0)
    usage_limit = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    usage_limit_per_user = serializers.IntegerField(required=False, min_value=1, default=1)
    type = serializers.ChoiceField(choices=Coupon.Type.choices, required=False, default=Coupon.Type.PUBLIC)
    visibility = serializers.ChoiceField(
        choices=Coupon.Visibility.choices, required=False, default=Coupon.Visibility.HIDDEN
    )
    start_date = serializers.DateTimeField()
    end_date = serializers.DateTimeField()
    is_active = serializers.BooleanField(required=False, default=True)
    applicable_categories = serializers.PrimaryKeyRelatedField(
        many=True, queryset=Category.objects.all(), required=False
    )
    applicable_products = serializers.PrimaryKeyRelatedField(
        many=True, queryset=Product.objects.all(), required=False
    )
    assigned_users = serializers.PrimaryKeyRelatedField(
        many=True, queryset=User.objects.all(), required=False
    )
    presets = serializers.ListField(
        child=serializers.ChoiceField(choices=PRESET_CHOICES), required=False, default=list
    )

    def validate(self, attrs):
        if 'flash_sale' in attrs.get('presets', []) and not attrs.get('usage_limit'):
            raise serializers.ValidationError({'usage_limit': _('Flash sale cần có giới hạn lượt dùng')})
        return attrs


class ValidateCouponSerializer(serializers.Serializer):
    """Serializer for validating a coupon code against an order."""

    code = serializers.CharField(max_length=50)
    order_value = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=0)
    category_ids = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    product_ids = serializers.ListField(child=serializers.CharField(), required=False, default=list)


class ApplyCouponSerializer(serializers.Serializer):
    """Serializer for recording a redemption on an order."""

    coupon_id = serializers.UUIDField()
    order_id = serializers.UUIDField()
    discount_amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=0)


class CouponUsageSerializer(serializers.ModelSerializer):
    """Serializer for coupon usage history."""

    coupon_code = serializers.CharField(source='coupon.code', read_only=True)
    coupon_name = serializers.CharField(source='coupon.name', read_only=True)
    order_number = serializers.CharField(source='order.order_number', read_only=True)

    class Meta:
        model = CouponUsage
        fields = [
            'id', 'coupon_code', 'coupon_name', 'discount_amount',
            'order', 'order_number', 'used_at'
        ]
