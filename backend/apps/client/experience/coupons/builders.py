"""
Coupon Builder
==============
Fluent construction of coupons with validation and common presets.
"""

from decimal import Decimal, InvalidOperation
from django.db import transaction
import logging

from apps.base.core.system.exceptions import ValidationError

logger = logging.getLogger(__name__)


class CouponBuilder:
    """
    Collects coupon fields, validates them and saves the coupon.

    Example:
        CouponBuilder().with_code('sale20').with_name('Sale 20%') \\
            .as_percentage_discount(20, max_discount=100000) \\
            .with_date_range(start, end).as_flash_sale(100).build()
    """

    def __init__(self, created_by=None):
        self.data = {}
        self.categories = []
        self.products = []
        self.assigned_users = []
        self.created_by = created_by

    # -------------------------------------------------------------------------
    # Fields
    # -------------------------------------------------------------------------

    def with_code(self, code):
        self.data['code'] = (code or '').strip().upper()
        return self

    def with_name(self, name):
        self.data['name'] = name
        return self

    def with_description(self, description):
        self.data['description'] = description or ''
        return self

    def with_discount_type(self, discount_type):
        from .models import Coupon

        if discount_type not in Coupon.DiscountType.values:
            raise ValidationError(f'discount_type must be one of {", ".join(Coupon.DiscountType.values)}')
        self.data['discount_type'] = discount_type
        return self

    def with_discount_value(self, value):
        self.data['discount_value'] = self._decimal(value, 'discount_value')
        return self

    def with_min_order_value(self, value):
        value = self._decimal(value, 'min_order_value')
        if value < 0:
            raise ValidationError('min_order_value must not be negative')
        self.data['min_order_value'] = value
        return self

    def with_max_discount(self, value):
        self.data['max_discount'] = None if value is None else self._decimal(value, 'max_discount')
        return self

    def with_usage_limit(self, limit):
        self.data['usage_limit'] = limit
        return self

    def with_usage_limit_per_user(self, limit):
        if limit is not None and limit < 1:
            raise ValidationError('usage_limit_per_user must be at least 1')
        self.data['usage_limit_per_user'] = limit
        return self

    def with_date_range(self, start_date, end_date):
        if end_date <= start_date:
            raise ValidationError('end_date must be after start_date')
        self.data['start_date'] = start_date
        self.data['end_date'] = end_date
        return self

    def with_type(self, coupon_type):
        from .models import Coupon

        if coupon_type not in Coupon.Type.values:
            raise ValidationError('type must be either "public" or "private"')
        self.data['type'] = coupon_type
        return self

    def with_visibility(self, visibility):
        from .models import Coupon

        if visibility not in Coupon.Visibility.values:
            raise ValidationError('visibility must be "hidden", "featured", or "landing_page"')
        self.data['visibility'] = visibility
        return self

    def with_is_active(self, is_active):
        self.data['is_active'] = bool(is_active)
        return self

    def for_categories(self, categories):
        self.categories = list(categories)
        return self

    def for_products(self, products):
        self.products = list(products)
        return self

    def with_assigned_users(self, users):
        self.assigned_users = list(users)
        return self

    # -------------------------------------------------------------------------
    # Presets
    # -------------------------------------------------------------------------

    def as_percentage_discount(self, percent, max_discount=None):
        self.with_discount_type('percentage')
        self.with_discount_value(percent)
        if max_discount:
            self.with_max_discount(max_discount)
        return self

    def as_fixed_discount(self, amount):
        self.with_discount_type('fixed')
        self.with_discount_value(amount)
        return self

    def as_flash_sale(self, total_limit):
        self.data['usage_limit'] = total_limit
        return self

    def as_new_customer_coupon(self):
        self.data['usage_limit_per_user'] = 1
        return self

    def as_private_for_users(self, users):
        self.data['type'] = 'private'
        self.data['visibility'] = 'hidden'
        self.assigned_users = list(users)
        return self

    def as_public_featured(self):
        self.data['type'] = 'public'
        self.data['visibility'] = 'featured'
        return self

    # -------------------------------------------------------------------------
    # Build
    # -------------------------------------------------------------------------

    def validate(self):
        errors = []
        data = self.data

        for field in ('code', 'name', 'discount_type', 'discount_value', 'start_date', 'end_date'):
            if data.get(field) in (None, ''):
                errors.append(f'{field} is required')

        value = data.get('discount_value')
        if value is not None:
            if value <= 0:
                errors.append('discount_value must be greater than 0')
            if data.get('discount_type') == 'percentage' and value > 100:
                errors.append('percentage discount can not exceed 100%')

        if data.get('start_date') and data.get('end_date') and data['end_date'] <= data['start_date']:
            errors.append('end_date must be after start_date')

        if data.get('usage_limit') is not None and data['usage_limit'] < 1:
            errors.append('usage_limit must be at least 1')

        if errors:
            raise ValidationError('Dữ liệu mã giảm giá không hợp lệ', extra_data={'errors': errors})

    def _apply_type(self):
        if self.categories and self.products:
            return 'mixed'
        if self.categories:
            return 'category'
        if self.products:
            return 'product'
        return 'all'

    @transaction.atomic
    def build(self):
        """Validate and persist the coupon with its relations."""
        from .models import Coupon

        self.validate()
        if Coupon.objects.filter(code=self.data['code']).exists():
            raise ValidationError(f'Mã {self.data["code"]} đã tồn tại', code='duplicate_code')

        fields = {key: value for key, value in self.data.items() if value is not None}
        fields.setdefault('apply_type', self._apply_type())
        coupon = Coupon.objects.create(created_by=self.created_by, **fields)

        if self.categories:
            coupon.applicable_categories.set(self.categories)
        if self.products:
            coupon.applicable_products.set(self.products)
        if self.assigned_users:
            coupon.assigned_users.set(self.assigned_users)

        logger.info(f"Coupon {coupon.code} created (apply_type={coupon.apply_type})")
        return coupon

    @staticmethod
    def _decimal(value, field):
        try:
            return Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(f'{field} must be a number')
