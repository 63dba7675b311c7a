"""
Location Models for the Clothing Store backend
==============================================
Vietnamese administrative units (two-level: province, ward).
"""

from django.db import models
from apps.base.core.system.models import TimeStampedModel


class Province(TimeStampedModel):
    """
    Province or centrally-governed city.
    """

    code = models.CharField(max_length=10, primary_key=True)
    name = models.CharField(max_length=100)
    name_en = models.CharField(max_length=100, blank=True)
    division_type = models.CharField(max_length=50, blank=True)

    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'provinces'
        ordering = ['name']

    def __str__(self):
        return self.name


class Ward(TimeStampedModel):
    """
    Ward or commune within a province.
    """

    code = models.CharField(max_length=10, primary_key=True)
    province = models.ForeignKey(
        Province,
        on_delete=models.CASCADE,
        related_name='wards'
    )
    name = models.CharField(max_length=100)
    division_type = models.CharField(max_length=50, blank=True)

    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'wards'
        ordering = ['name']

    def __str__(self):
        return f"{self.name}, {self.province.name}"
