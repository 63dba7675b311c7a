"""
Product Tests for the Clothing Store backend
============================================
"""

from decimal import Decimal
from django.test import TestCase
from rest_framework.test import APITestCase
from rest_framework import status
from .models import Category, Product


class ProductModelTests(TestCase):

    def setUp(self):
        self.category = Category.objects.create(name='Áo', slug='ao')

    def test_stock_helpers(self):
        product = Product.objects.create(
            name='Áo thun', slug='ao-thun', sku='AT-01', category=self.category,
            price=Decimal('150000'), stock_quantity=2, status=Product.Status.PUBLISHED
        )
        self.assertTrue(product.is_available)
        self.assertTrue(product.has_stock_for(2))
        self.assertFalse(product.has_stock_for(3))

        product.track_inventory = False
        self.assertTrue(product.has_stock_for(100))

    def test_full_path(self):
        child = Category.objects.create(name='Áo sơ mi', slug='ao-so-mi', parent=self.category)
        self.assertEqual(child.full_path, 'Áo > Áo sơ mi')


class ProductApiTests(APITestCase):

    def setUp(self):
        self.shirts = Category.objects.create(name='Shirts', slug='shirts')
        self.polo = Category.objects.create(name='Polo', slug='polo', parent=self.shirts)
        self.pants = Category.objects.create(name='Pants', slug='pants')
        self.tee = Product.objects.create(
            name='Basic Tee', slug='basic-tee', sku='TEE-1', category=self.shirts,
            price=Decimal('120000'), stock_quantity=5, status=Product.Status.PUBLISHED
        )
        self.polo_shirt = Product.objects.create(
            name='Polo Classic', slug='polo-classic', sku='POLO-1', category=self.polo,
            price=Decimal('350000'), stock_quantity=0, status=Product.Status.PUBLISHED
        )
        self.jeans = Product.objects.create(
            name='Slim Jeans', slug='slim-jeans', sku='JEAN-1', category=self.pants,
            price=Decimal('550000'), stock_quantity=3, status=Product.Status.PUBLISHED
        )
        Product.objects.create(
            name='Draft Jacket', slug='draft-jacket', sku='JK-1', category=self.pants,
            price=Decimal('900000'), stock_quantity=1
        )

    def test_list_excludes_unpublished(self):
        response = self.client.get('/api/v1/products/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)

    def test_filter_by_category_includes_children(self):
        response = self.client.get('/api/v1/products/', {'category': 'shirts'})
        slugs = {p['slug'] for p in response.data['results']}
        self.assertEqual(slugs, {'basic-tee', 'polo-classic'})

    def test_filter_by_price_range_and_stock(self):
        response = self.client.get('/api/v1/products/', {'min_price': 300000, 'in_stock': 'true'})
        slugs = {p['slug'] for p in response.data['results']}
        self.assertEqual(slugs, {'slim-jeans'})

    def test_search(self):
        response = self.client.get('/api/v1/products/', {'search': 'Polo'})
        self.assertEqual(response.data['count'], 1)

    def test_category_tree(self):
        response = self.client.get('/api/v1/products/categories/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        shirts = next(c for c in response.data if c['slug'] == 'shirts')
        self.assertEqual([c['slug'] for c in shirts['children']], ['polo'])

    def test_product_detail(self):
        response = self.client.get('/api/v1/products/basic-tee/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['sku'], 'TEE-1')

    def test_draft_product_detail_not_found(self):
        response = self.client.get('/api/v1/products/draft-jacket/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
