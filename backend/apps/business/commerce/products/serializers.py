"""
Product Serializers for the Clothing Store backend
==================================================
"""

from rest_framework import serializers
from drf_spectacular.utils import extend_schema_field
from .models import Category, Product


class CategorySerializer(serializers.ModelSerializer):
    """Category serializer."""

    children = serializers.SerializerMethodField()
    full_path = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'description', 'parent', 'full_path', 'children']

    @extend_schema_field(list)
    def get_children(self, obj):
        return CategoryListSerializer(obj.children.filter(is_active=True), many=True).data

    @extend_schema_field(str)
    def get_full_path(self, obj) -> str:
        return obj.full_path or ''


class CategoryListSerializer(serializers.ModelSerializer):
    """Simplified category serializer for lists."""

    class Meta:
        model = Category
        fields = ['id', 'name', 'slug']


class ProductListSerializer(serializers.ModelSerializer):
    """Product list serializer (optimized for listing)."""

    category = CategoryListSerializer(read_only=True)
    is_in_stock = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'slug', 'sku', 'category', 'price',
            'compare_at_price', 'sold_count', 'is_in_stock', 'created_at'
        ]

    @extend_schema_field(bool)
    def get_is_in_stock(self, obj) -> bool:
        return obj.is_in_stock


class ProductDetailSerializer(ProductListSerializer):
    """Product detail serializer."""

    class Meta(ProductListSerializer.Meta):
        fields = ProductListSerializer.Meta.fields + [
            'description', 'stock_quantity', 'track_inventory', 'status'
        ]
