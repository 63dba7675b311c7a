"""
Product Filters for the Clothing Store backend
==============================================
"""

import django_filters
from django.db.models import Q
from .models import Product, Category


class ProductFilter(django_filters.FilterSet):
    """Filter for products."""

    category = django_filters.CharFilter(method='filter_category')
    min_price = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='price', lookup_expr='lte')
    in_stock = django_filters.BooleanFilter(method='filter_in_stock')

    class Meta:
        model = Product
        fields = ['category', 'min_price', 'max_price', 'in_stock']

    def filter_category(self, queryset, name, value):
        """Filter by category slug, including direct subcategories."""
        try:
            category = Category.objects.get(slug=value, is_active=True)
        except Category.DoesNotExist:
            return queryset.none()
        return queryset.filter(Q(category=category) | Q(category__parent=category))

    def filter_in_stock(self, queryset, name, value):
        if value:
            return queryset.filter(Q(track_inventory=False) | Q(stock_quantity__gt=0))
        return queryset
