"""
Payment Models for the Clothing Store backend
=============================================
Sepay QR bank transfers and their lifecycle.
"""

import uuid
from django.db import models
from django.conf import settings
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from django.core.validators import MinValueValidator
from apps.base.core.system.models import TimeStampedModel


class Payment(TimeStampedModel):
    """
    One payment attempt for an order.

    A Sepay attempt carries the QR snapshot shown to the customer and stays
    pending until the bank webhook arrives or ``expires_at`` passes.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', _('Pending')
        COMPLETED = 'completed', _('Completed')
        FAILED = 'failed', _('Failed')
        CANCELLED = 'cancelled', _('Cancelled')
        EXPIRED = 'expired', _('Expired')

    class Gateway(models.TextChoices):
        SEPAY = 'sepay', _('Sepay QR transfer')
        COD = 'cod', _('Cash on delivery')

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )

    order = models.ForeignKey(
        'orders.Order',
        on_delete=models.PROTECT,
        related_name='payments'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='payments'
    )
    gateway = models.CharField(
        _('Gateway'),
        max_length=20,
        choices=Gateway.choices,
        default=Gateway.SEPAY
    )

    # Bank transfer content is "DH" + order number
    transaction_code = models.CharField(_('Transaction code'), max_length=100, db_index=True)

    currency = models.CharField(_('Currency'), max_length=3, default='VND')
    amount = models.DecimalField(
        _('Amount'),
        max_digits=15,
        decimal_places=2,
        validators=[MinValueValidator(0)]
    )
    received_amount = models.DecimalField(
        _('Received amount'),
        max_digits=15,
        decimal_places=2,
        blank=True,
        null=True
    )

    status = models.CharField(
        _('Status'),
        max_length=30,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )

    # QR snapshot
    qr_url = models.URLField(_('QR image URL'), max_length=1000, blank=True)
    bank_id = models.CharField(_('Bank'), max_length=50, blank=True)
    bank_name = models.CharField(_('Bank name'), max_length=100, blank=True)
    account_number = models.CharField(_('Account number'), max_length=50, blank=True)
    account_name = models.CharField(_('Account name'), max_length=255, blank=True)
    transfer_content = models.CharField(_('Transfer content'), max_length=255, blank=True)
    expires_at = models.DateTimeField(_('Expires at'), blank=True, null=True)

    # Gateway response
    gateway_transaction_id = models.CharField(
        _('Gateway transaction ID'),
        max_length=255,
        blank=True
    )
    gateway_response = models.JSONField(
        _('Gateway response'),
        default=dict,
        blank=True
    )
    failure_reason = models.TextField(_('Failure reason'), blank=True)

    paid_at = models.DateTimeField(_('Paid at'), blank=True, null=True)

    class Meta:
        verbose_name = _('Payment')
        verbose_name_plural = _('Payments')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'expires_at']),
            models.Index(fields=['order', 'status']),
        ]

    def __str__(self):
        return f'{self.transaction_code} - {self.amount} {self.currency}'

    def is_expired(self, now=None):
        if self.status != self.Status.PENDING or self.expires_at is None:
            return False
        return self.expires_at <= (now or timezone.now())

    def seconds_left(self, now=None):
        """Whole seconds until the QR window closes; 0 once it has."""
        if self.status != self.Status.PENDING or self.expires_at is None:
            return 0
        remaining = (self.expires_at - (now or timezone.now())).total_seconds()
        return max(int(remaining), 0)
