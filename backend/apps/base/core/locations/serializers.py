"""
Location Serializers for the Clothing Store backend
===================================================
"""

from rest_framework import serializers
from .models import Province, Ward


class ProvinceSerializer(serializers.ModelSerializer):
    """Serializer for provinces."""

    class Meta:
        model = Province
        fields = ['code', 'name', 'name_en', 'division_type']


class WardSerializer(serializers.ModelSerializer):
    """Compact serializer for ward list."""

    class Meta:
        model = Ward
        fields = ['code', 'name', 'division_type']
