"""
Product Views for the Clothing Store backend
============================================
"""

from rest_framework import generics, permissions, filters
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from .models import Category, Product
from .serializers import CategorySerializer, ProductListSerializer, ProductDetailSerializer
from .filters import ProductFilter


@extend_schema(tags=['Products'])
class CategoryListView(generics.ListAPIView):
    """List top-level categories with their children."""

    serializer_class = CategorySerializer
    permission_classes = [permissions.AllowAny]
    pagination_class = None

    def get_queryset(self):
        return Category.objects.filter(
            is_active=True,
            parent__isnull=True
        ).prefetch_related('children')


@extend_schema(tags=['Products'])
class ProductListView(generics.ListAPIView):
    """List products with filtering and search."""

    serializer_class = ProductListSerializer
    permission_classes = [permissions.AllowAny]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = ProductFilter
    search_fields = ['name', 'description', 'sku']
    ordering_fields = ['price', 'created_at', 'sold_count']
    ordering = ['-created_at']

    def get_queryset(self):
        return Product.objects.filter(
            status=Product.Status.PUBLISHED,
            is_active=True
        ).select_related('category')


@extend_schema(tags=['Products'])
class ProductDetailView(generics.RetrieveAPIView):
    """Get product details."""

    serializer_class = ProductDetailSerializer
    permission_classes = [permissions.AllowAny]
    lookup_field = 'slug'

    def get_queryset(self):
        return Product.objects.filter(
            status=Product.Status.PUBLISHED,
            is_active=True
        ).select_related('category')

    def retrieve(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_object())
        return Response({
            'success': True,
            'data': serializer.data
        })
