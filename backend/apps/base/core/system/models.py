"""
Base Models for the Clothing Store backend
==========================================
Abstract base classes shared by the store's models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class TimeStampedModel(models.Model):
    """
    Abstract base model with created/updated timestamps.
    """
    created_at = models.DateTimeField(
        _('Created at'),
        auto_now_add=True,
        db_index=True
    )
    updated_at = models.DateTimeField(
        _('Updated at'),
        auto_now=True
    )

    class Meta:
        abstract = True
        ordering = ['-created_at']


class StatusModel(models.Model):
    """
    Abstract model for objects that can be activated/deactivated.
    """
    is_active = models.BooleanField(
        _('Is active'),
        default=True,
        db_index=True
    )

    class Meta:
        abstract = True


class SlugModel(models.Model):
    """
    Abstract model with slug field for SEO-friendly URLs.
    """
    slug = models.SlugField(
        _('Slug'),
        max_length=255,
        unique=True,
        db_index=True
    )

    class Meta:
        abstract = True
