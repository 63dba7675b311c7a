"""
Order Models for the Clothing Store backend
===========================================
Orders with a shipping address snapshot, line items and status history.
"""

import secrets
import string
import uuid
from django.db import models
from django.conf import settings
from django.utils.translation import gettext_lazy as _
from django.utils import timezone
from django.core.validators import MinValueValidator
from apps.base.core.system.models import TimeStampedModel


def generate_order_number():
    """
    Generate cryptographically secure unique order number.

    Format: {PREFIX}{YYMMDD}{6-char-alphanumeric}
    Example: ORD251019A3B5C9
    """
    prefix = settings.STORE_CONFIG.get('ORDER_ID_PREFIX', 'ORD')
    date_part = timezone.localdate().strftime('%y%m%d')

    alphabet = string.ascii_uppercase + string.digits
    random_part = ''.join(secrets.choice(alphabet) for _ in range(6))

    return f'{prefix}{date_part}{random_part}'


class Order(TimeStampedModel):
    """
    Main order model.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', _('Pending')
        CONFIRMED = 'confirmed', _('Confirmed')
        PROCESSING = 'processing', _('Processing')
        SHIPPING = 'shipping', _('Shipping')
        DELIVERED = 'delivered', _('Delivered')
        CANCELLED = 'cancelled', _('Cancelled')
        RETURNED = 'returned', _('Returned')

    class PaymentStatus(models.TextChoices):
        PENDING = 'pending', _('Pending')
        PAID = 'paid', _('Paid')
        FAILED = 'failed', _('Failed')
        CANCELLED = 'cancelled', _('Cancelled')

    class PaymentMethod(models.TextChoices):
        COD = 'cod', _('Cash on delivery')
        SEPAY = 'sepay', _('Sepay QR transfer')

    # Allowed staff transitions
    TRANSITIONS = {
        Status.PENDING: [Status.CONFIRMED, Status.CANCELLED],
        Status.CONFIRMED: [Status.PROCESSING, Status.CANCELLED],
        Status.PROCESSING: [Status.SHIPPING, Status.CANCELLED],
        Status.SHIPPING: [Status.DELIVERED, Status.CANCELLED],
        Status.DELIVERED: [Status.RETURNED],
    }

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )
    order_number = models.CharField(
        _('Order number'),
        max_length=50,
        unique=True,
        default=generate_order_number,
        db_index=True
    )

    # Customer
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='orders'
    )
    email = models.EmailField(_('Email'))

    # Status
    status = models.CharField(
        _('Status'),
        max_length=30,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    payment_status = models.CharField(
        _('Payment status'),
        max_length=30,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING
    )
    payment_method = models.CharField(
        _('Payment method'),
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.COD
    )

    # Pricing (VND)
    currency = models.CharField(_('Currency'), max_length=3, default='VND')
    subtotal = models.DecimalField(
        _('Subtotal'),
        max_digits=15,
        decimal_places=2,
        validators=[MinValueValidator(0)]
    )
    shipping_fee = models.DecimalField(
        _('Shipping fee'),
        max_digits=15,
        decimal_places=2,
        default=0
    )
    discount_amount = models.DecimalField(
        _('Discount'),
        max_digits=15,
        decimal_places=2,
        default=0
    )
    total = models.DecimalField(
        _('Total'),
        max_digits=15,
        decimal_places=2,
        validators=[MinValueValidator(0)]
    )

    # Coupon
    coupon = models.ForeignKey(
        'coupons.Coupon',
        on_delete=models.SET_NULL,
        related_name='orders',
        blank=True,
        null=True
    )
    coupon_code = models.CharField(_('Coupon code'), max_length=50, blank=True)

    # Shipping address snapshot (kept even if the saved address changes)
    shipping_address = models.ForeignKey(
        'users.UserAddress',
        on_delete=models.SET_NULL,
        related_name='orders',
        blank=True,
        null=True
    )
    shipping_name = models.CharField(_('Shipping name'), max_length=255)
    shipping_phone = models.CharField(_('Shipping phone'), max_length=20)
    shipping_street = models.CharField(_('Street address'), max_length=500)
    shipping_ward = models.CharField(_('Ward'), max_length=255, blank=True)
    shipping_province = models.CharField(_('Province'), max_length=255)
    shipping_address_line = models.TextField(_('Full shipping address'))
    estimated_delivery = models.DateField(_('Estimated delivery'), blank=True, null=True)

    # Notes
    customer_note = models.TextField(_('Customer note'), blank=True)
    ip_address = models.GenericIPAddressField(_('IP address'), blank=True, null=True)

    # Timestamps
    paid_at = models.DateTimeField(_('Paid at'), blank=True, null=True)
    delivered_at = models.DateTimeField(_('Delivered at'), blank=True, null=True)
    cancelled_at = models.DateTimeField(_('Cancelled at'), blank=True, null=True)
    cancellation_reason = models.TextField(_('Cancellation reason'), blank=True)

    class Meta:
        verbose_name = _('Order')
        verbose_name_plural = _('Orders')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'status']),
            models.Index(fields=['status', 'payment_status']),
            models.Index(fields=['-created_at']),
        ]

    def __str__(self):
        return self.order_number

    @property
    def can_cancel(self):
        """Customers may cancel until the order is being prepared."""
        return self.status in [self.Status.PENDING, self.Status.CONFIRMED]

    @property
    def is_paid(self):
        return self.payment_status == self.PaymentStatus.PAID

    def can_transition_to(self, new_status):
        return new_status in self.TRANSITIONS.get(self.status, [])

    def update_status(self, new_status, note='', changed_by=None):
        """Update order status with timestamp and history."""
        old_status = self.status
        self.status = new_status

        now = timezone.now()
        if new_status == self.Status.DELIVERED:
            self.delivered_at = now
        elif new_status == self.Status.CANCELLED:
            self.cancelled_at = now
            self.cancellation_reason = note

        self.save()

        OrderStatusHistory.objects.create(
            order=self,
            old_status=old_status,
            new_status=new_status,
            note=note,
            changed_by=changed_by
        )

    def mark_paid(self, note='', changed_by=None):
        """Record payment; a pending order becomes confirmed."""
        self.payment_status = self.PaymentStatus.PAID
        self.paid_at = timezone.now()
        if self.status == self.Status.PENDING:
            self.update_status(self.Status.CONFIRMED, note=note, changed_by=changed_by)
        else:
            self.save(update_fields=['payment_status', 'paid_at', 'updated_at'])


class OrderItem(TimeStampedModel):
    """
    Individual item in an order.
    """
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='items'
    )
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.PROTECT,
        related_name='order_items'
    )

    # Product snapshot
    product_name = models.CharField(_('Product name'), max_length=500)
    product_sku = models.CharField(_('SKU'), max_length=100)

    quantity = models.PositiveIntegerField(
        _('Quantity'),
        validators=[MinValueValidator(1)]
    )
    unit_price = models.DecimalField(
        _('Unit price'),
        max_digits=15,
        decimal_places=2
    )
    total_price = models.DecimalField(
        _('Total'),
        max_digits=15,
        decimal_places=2
    )

    class Meta:
        verbose_name = _('Order Item')
        verbose_name_plural = _('Order Items')

    def __str__(self):
        return f'{self.product_name} x {self.quantity}'

    def save(self, *args, **kwargs):
        self.total_price = self.unit_price * self.quantity
        super().save(*args, **kwargs)


class OrderStatusHistory(TimeStampedModel):
    """
    Track order status changes.
    """
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='status_history'
    )
    old_status = models.CharField(_('Old status'), max_length=30)
    new_status = models.CharField(_('New status'), max_length=30)
    note = models.TextField(_('Note'), blank=True)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='order_status_changes',
        blank=True,
        null=True
    )

    class Meta:
        verbose_name = _('Order Status History')
        verbose_name_plural = _('Order Status Histories')
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.order.order_number}: {self.old_status} -> {self.new_status}'
