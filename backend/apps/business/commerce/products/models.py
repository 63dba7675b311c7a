"""
Product Models for the Clothing Store backend
=============================================
Catalogue categories and products with inventory.
"""

import uuid
from django.db import models
from django.utils.translation import gettext_lazy as _
from django.core.validators import MinValueValidator
from apps.base.core.system.models import TimeStampedModel, SlugModel, StatusModel


class Category(TimeStampedModel, SlugModel, StatusModel):
    """
    Product category with an optional parent.
    """
    name = models.CharField(_('Name'), max_length=255)
    description = models.TextField(_('Description'), blank=True)
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        related_name='children',
        blank=True,
        null=True
    )
    order = models.PositiveIntegerField(_('Order'), default=0)

    class Meta:
        verbose_name = _('Category')
        verbose_name_plural = _('Categories')
        ordering = ['order', 'name']

    def __str__(self):
        return self.name

    @property
    def full_path(self):
        """Return full category path."""
        if self.parent:
            return f'{self.parent.full_path} > {self.name}'
        return self.name


class Product(TimeStampedModel, SlugModel, StatusModel):
    """
    Sellable clothing item.
    """

    class Status(models.TextChoices):
        DRAFT = 'draft', _('Draft')
        PUBLISHED = 'published', _('Published')
        OUT_OF_STOCK = 'out_of_stock', _('Out of Stock')
        DISCONTINUED = 'discontinued', _('Discontinued')

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )

    name = models.CharField(_('Name'), max_length=500)
    description = models.TextField(_('Description'), blank=True)
    sku = models.CharField(
        _('SKU'),
        max_length=100,
        unique=True,
        db_index=True
    )

    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        related_name='products'
    )

    status = models.CharField(
        _('Status'),
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
        db_index=True
    )

    # Pricing (VND)
    price = models.DecimalField(
        _('Price'),
        max_digits=15,
        decimal_places=2,
        validators=[MinValueValidator(0)]
    )
    compare_at_price = models.DecimalField(
        _('Compare at price'),
        max_digits=15,
        decimal_places=2,
        blank=True,
        null=True,
        help_text=_('Original price before discount')
    )

    # Inventory
    track_inventory = models.BooleanField(_('Track inventory'), default=True)
    stock_quantity = models.IntegerField(_('Stock quantity'), default=0)
    sold_count = models.PositiveIntegerField(_('Sold count'), default=0)

    class Meta:
        verbose_name = _('Product')
        verbose_name_plural = _('Products')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'is_active']),
            models.Index(fields=['category', 'status']),
            models.Index(fields=['price']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock_quantity__gte=0),
                name='product_stock_quantity_non_negative'
            ),
        ]

    def __str__(self):
        return self.name

    @property
    def is_available(self):
        return self.is_active and self.status == self.Status.PUBLISHED

    @property
    def is_in_stock(self):
        if not self.track_inventory:
            return True
        return self.stock_quantity > 0

    def has_stock_for(self, quantity):
        return not self.track_inventory or self.stock_quantity >= quantity
