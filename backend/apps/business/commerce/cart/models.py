"""
Cart Models for the Clothing Store backend
==========================================
One cart per signed-in user, with the coupon code the user attached.
"""

import uuid
from django.db import models
from django.conf import settings
from django.utils.translation import gettext_lazy as _
from django.core.validators import MinValueValidator
from apps.base.core.system.models import TimeStampedModel


class Cart(TimeStampedModel):
    """
    Shopping cart model.
    Totals are cached and refreshed by CartService.recalculate_totals.
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='cart'
    )

    # Totals (cached)
    subtotal = models.DecimalField(
        _('Subtotal'),
        max_digits=15,
        decimal_places=2,
        default=0
    )
    item_count = models.PositiveIntegerField(_('Item count'), default=0)
    currency = models.CharField(_('Currency'), max_length=3, default='VND')

    # Coupon attached by the user; re-validated on every read and at checkout
    coupon_code = models.CharField(_('Coupon code'), max_length=50, blank=True)

    class Meta:
        verbose_name = _('Cart')
        verbose_name_plural = _('Carts')

    def __str__(self):
        return f'Cart - {self.user.email}'


class CartItem(TimeStampedModel):
    """
    Individual item in a cart.
    """
    cart = models.ForeignKey(
        Cart,
        on_delete=models.CASCADE,
        related_name='items'
    )
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.CASCADE,
        related_name='cart_items'
    )
    quantity = models.PositiveIntegerField(
        _('Quantity'),
        default=1,
        validators=[MinValueValidator(1)]
    )
    unit_price = models.DecimalField(
        _('Unit price'),
        max_digits=15,
        decimal_places=2
    )
    total_price = models.DecimalField(
        _('Total price'),
        max_digits=15,
        decimal_places=2
    )

    class Meta:
        verbose_name = _('Cart Item')
        verbose_name_plural = _('Cart Items')
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['cart', 'product'], name='cart_item_unique_product'),
        ]

    def __str__(self):
        return f'{self.product.name} x {self.quantity}'
