"""
Coupon Models for the Clothing Store backend
============================================
Discount codes and the append-only redemption ledger.
"""

import uuid
from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.utils.translation import gettext_lazy as _
from django.utils import timezone
from apps.base.core.system.models import TimeStampedModel


class Coupon(TimeStampedModel):
    """
    Coupon/Promo code model.
    """

    class Type(models.TextChoices):
        PUBLIC = 'public', _('Public')
        PRIVATE = 'private', _('Private')

    class Visibility(models.TextChoices):
        HIDDEN = 'hidden', _('Hidden')
        FEATURED = 'featured', _('Featured')
        LANDING_PAGE = 'landing_page', _('Landing Page')

    class DiscountType(models.TextChoices):
        PERCENTAGE = 'percentage', _('Percentage')
        FIXED = 'fixed', _('Fixed Amount')

    class ApplyType(models.TextChoices):
        ALL = 'all', _('All products')
        CATEGORY = 'category', _('Specific categories')
        PRODUCT = 'product', _('Specific products')
        MIXED = 'mixed', _('Categories or products')

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )
    code = models.CharField(
        _('Code'),
        max_length=50,
        unique=True,
        db_index=True,
        help_text=_('Stored upper-case; matched case-insensitively')
    )
    name = models.CharField(_('Name'), max_length=255)
    description = models.TextField(_('Description'), blank=True)

    type = models.CharField(
        _('Type'),
        max_length=20,
        choices=Type.choices,
        default=Type.PUBLIC
    )
    visibility = models.CharField(
        _('Visibility'),
        max_length=20,
        choices=Visibility.choices,
        default=Visibility.HIDDEN
    )

    # Discount settings
    discount_type = models.CharField(
        _('Discount type'),
        max_length=20,
        choices=DiscountType.choices,
        default=DiscountType.PERCENTAGE
    )
    discount_value = models.DecimalField(
        _('Discount value'),
        max_digits=15,
        decimal_places=2
    )
    max_discount = models.DecimalField(
        _('Maximum discount'),
        max_digits=15,
        decimal_places=2,
        blank=True,
        null=True,
        help_text=_('Maximum discount amount for percentage coupons')
    )

    # Conditions
    min_order_value = models.DecimalField(
        _('Minimum order value'),
        max_digits=15,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0)]
    )

    # Usage limits
    usage_limit = models.PositiveIntegerField(
        _('Total usage limit'),
        blank=True,
        null=True,
        help_text=_('Leave empty for unlimited')
    )
    usage_limit_per_user = models.PositiveIntegerField(
        _('Usage limit per user'),
        default=1
    )
    used_count = models.PositiveIntegerField(_('Times used'), default=0)

    # Scope
    apply_type = models.CharField(
        _('Apply type'),
        max_length=20,
        choices=ApplyType.choices,
        default=ApplyType.ALL
    )
    applicable_categories = models.ManyToManyField(
        'products.Category',
        related_name='coupons',
        blank=True
    )
    applicable_products = models.ManyToManyField(
        'products.Product',
        related_name='coupons',
        blank=True
    )
    assigned_users = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name='assigned_coupons',
        blank=True
    )

    # Validity (inclusive window)
    start_date = models.DateTimeField(_('Start date'), default=timezone.now)
    end_date = models.DateTimeField(_('End date'))

    is_active = models.BooleanField(_('Active'), default=True, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='created_coupons',
        blank=True,
        null=True
    )

    class Meta:
        verbose_name = _('Coupon')
        verbose_name_plural = _('Coupons')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['is_active', 'type', 'end_date']),
            models.Index(fields=['visibility', 'is_active']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(discount_value__gt=0),
                name='coupon_discount_value_positive'
            ),
        ]

    def __str__(self):
        return f'{self.code} - {self.name}'

    @staticmethod
    def normalize_code(code):
        return (code or '').strip().upper()

    def clean(self):
        errors = {}
        if self.discount_value is not None and self.discount_value <= 0:
            errors['discount_value'] = _('Giá trị giảm phải lớn hơn 0')
        if (
            self.discount_type == self.DiscountType.PERCENTAGE
            and self.discount_value is not None
            and self.discount_value > 100
        ):
            errors['discount_value'] = _('Phần trăm giảm không được vượt quá 100')
        if self.max_discount is not None and self.max_discount < 0:
            errors['max_discount'] = _('Mức giảm tối đa không được âm')
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            errors['end_date'] = _('Ngày kết thúc phải sau ngày bắt đầu')
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        self.code = self.normalize_code(self.code)
        super().save(*args, **kwargs)

    def is_within_window(self, now=None):
        now = now or timezone.now()
        return self.start_date <= now <= self.end_date

    @property
    def has_global_capacity(self):
        return self.usage_limit is None or self.used_count < self.usage_limit

    @property
    def remaining_total_uses(self):
        if self.usage_limit is None:
            return None
        return max(self.usage_limit - self.used_count, 0)


class CouponUsageQuerySet(models.QuerySet):
    """Ledger rows are append-only."""

    def update(self, **kwargs):
        raise TypeError('CouponUsage rows cannot be updated')

    def delete(self):
        raise TypeError('CouponUsage rows cannot be deleted')


class CouponUsage(models.Model):
    """
    One successful redemption of a coupon on an order.
    Never updated and never deleted once written.
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )
    coupon = models.ForeignKey(
        Coupon,
        on_delete=models.PROTECT,
        related_name='usages'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='coupon_usages'
    )
    order = models.ForeignKey(
        'orders.Order',
        on_delete=models.PROTECT,
        related_name='coupon_usages'
    )
    discount_amount = models.DecimalField(
        _('Discount amount'),
        max_digits=15,
        decimal_places=2
    )
    used_at = models.DateTimeField(_('Used at'), default=timezone.now, db_index=True)

    objects = CouponUsageQuerySet.as_manager()

    class Meta:
        verbose_name = _('Coupon Usage')
        verbose_name_plural = _('Coupon Usages')
        ordering = ['-used_at']
        indexes = [
            models.Index(fields=['coupon', 'user']),
        ]
        constraints = [
            models.UniqueConstraint(fields=['coupon', 'order'], name='coupon_usage_once_per_order'),
        ]

    def __str__(self):
        return f'{self.coupon.code} - {self.user} - {self.order_id}'

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise TypeError('CouponUsage rows cannot be updated')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise TypeError('CouponUsage rows cannot be deleted')
