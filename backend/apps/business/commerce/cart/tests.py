"""
Cart Tests for the Clothing Store backend
=========================================
"""

from datetime import timedelta
from decimal import Decimal
from django.test import TestCase
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase
from rest_framework import status

from apps.base.core.system.exceptions import CartError, InsufficientStockError, NotFoundError
from apps.business.commerce.products.models import Category, Product
from apps.client.experience.coupons.exceptions import CouponValidationError, CouponErrorCode
from apps.client.experience.coupons.models import Coupon
from .models import CartItem
from .services import CartService

User = get_user_model()


def make_coupon(code, **kwargs):
    now = timezone.now()
    defaults = {
        'name': code,
        'discount_type': Coupon.DiscountType.FIXED,
        'discount_value': Decimal('50000'),
        'start_date': now - timedelta(days=1),
        'end_date': now + timedelta(days=30),
    }
    defaults.update(kwargs)
    return Coupon.objects.create(code=code, **defaults)


class CartServiceTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='buyer@example.com', password='pass12345')
        self.category = Category.objects.create(name='Áo', slug='ao')
        self.tee = Product.objects.create(
            name='Áo thun', slug='ao-thun', sku='AT-01', category=self.category,
            price=Decimal('150000'), stock_quantity=5, status=Product.Status.PUBLISHED
        )
        self.service = CartService.for_user(self.user)

    def test_add_item_merges_lines_and_recalculates(self):
        self.service.add_item(self.tee, 2)
        self.service.add_item(self.tee, 1)

        self.assertEqual(CartItem.objects.filter(cart=self.service.cart).count(), 1)
        self.assertEqual(self.service.cart.item_count, 3)
        self.assertEqual(self.service.cart.subtotal, Decimal('450000'))

    def test_add_item_rejects_quantity_above_stock(self):
        with self.assertRaises(InsufficientStockError):
            self.service.add_item(self.tee, 6)

    def test_add_unpublished_product_rejected(self):
        draft = Product.objects.create(
            name='Nháp', slug='nhap', sku='D-1', category=self.category,
            price=Decimal('100000'), stock_quantity=5
        )
        with self.assertRaises(NotFoundError):
            self.service.add_item(draft, 1)

    def test_update_quantity_to_zero_removes_line(self):
        item = self.service.add_item(self.tee, 2)

        self.assertIsNone(self.service.update_item_quantity(item.pk, 0))
        self.assertEqual(self.service.cart.item_count, 0)
        self.assertEqual(self.service.cart.subtotal, Decimal('0'))

    def test_update_unknown_item_raises(self):
        with self.assertRaises(NotFoundError):
            self.service.update_item_quantity(9999, 1)

    def test_refresh_prices_reprices_stale_lines(self):
        self.service.add_item(self.tee, 2)
        Product.objects.filter(pk=self.tee.pk).update(price=Decimal('250000'))

        changes = self.service.refresh_prices()

        self.assertEqual(len(changes), 1)
        self.assertEqual(changes[0]['old_price'], Decimal('150000'))
        self.assertEqual(changes[0]['new_price'], Decimal('250000'))
        self.assertEqual(self.service.cart.subtotal, Decimal('500000'))
        self.assertEqual(self.service.refresh_prices(), [])

    def test_context_lists_products_and_categories(self):
        self.service.add_item(self.tee, 2)
        context = self.service.get_context()

        self.assertEqual(context.subtotal, Decimal('300000'))
        self.assertEqual(context.product_ids, {str(self.tee.pk)})
        self.assertEqual(context.category_ids, {str(self.category.pk)})

    def test_attach_coupon_to_empty_cart(self):
        make_coupon('GIAM50K')
        with self.assertRaises(CartError):
            self.service.attach_coupon('GIAM50K', self.user)

    def test_attach_coupon_reports_reason_code(self):
        make_coupon('BIG', min_order_value=Decimal('500000'))
        self.service.add_item(self.tee, 1)

        with self.assertRaises(CouponValidationError) as ctx:
            self.service.attach_coupon('big', self.user)
        self.assertEqual(ctx.exception.code, CouponErrorCode.MIN_ORDER_NOT_MET)
        self.assertEqual(self.service.cart.coupon_code, '')

    def test_summary_revalidates_attached_coupon(self):
        coupon = make_coupon('GIAM50K')
        self.service.add_item(self.tee, 1)
        result = self.service.attach_coupon(' giam50k ', self.user)

        self.assertEqual(result['coupon_code'], 'GIAM50K')
        self.assertEqual(result['discount_amount'], Decimal('50000'))
        self.assertEqual(self.service.get_summary(self.user)['total'], Decimal('100000'))

        coupon.is_active = False
        coupon.save()
        summary = self.service.get_summary(self.user)
        self.assertEqual(summary['discount_amount'], Decimal('0'))
        self.assertEqual(summary['coupon_error']['code'], CouponErrorCode.INACTIVE)

    def test_clear_drops_items_and_coupon(self):
        make_coupon('GIAM50K')
        self.service.add_item(self.tee, 1)
        self.service.attach_coupon('GIAM50K', self.user)

        self.service.clear()

        self.assertEqual(self.service.cart.item_count, 0)
        self.assertEqual(self.service.cart.coupon_code, '')


class CartApiTests(APITestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='api@example.com', password='pass12345')
        self.category = Category.objects.create(name='Quần', slug='quan')
        self.jeans = Product.objects.create(
            name='Quần jean', slug='quan-jean', sku='QJ-01', category=self.category,
            price=Decimal('400000'), stock_quantity=3, status=Product.Status.PUBLISHED
        )
        self.client.force_authenticate(self.user)

    def test_cart_requires_auth(self):
        self.client.force_authenticate(None)
        response = self.client.get('/api/v1/cart/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_add_update_and_remove_item(self):
        response = self.client.post(
            '/api/v1/cart/items/', {'product_id': str(self.jeans.pk), 'quantity': 1}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        item_id = response.data['data']['item']['id']

        response = self.client.patch(f'/api/v1/cart/items/{item_id}/', {'quantity': 2}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['item_count'], 2)

        response = self.client.delete(f'/api/v1/cart/items/{item_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['items'], [])

    def test_add_over_stock_returns_error_code(self):
        response = self.client.post(
            '/api/v1/cart/items/', {'product_id': str(self.jeans.pk), 'quantity': 4}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'insufficient_stock')

    def test_coupon_rejection_surfaces_reason_code(self):
        make_coupon('SCOPED', apply_type=Coupon.ApplyType.CATEGORY).applicable_categories.set(
            [Category.objects.create(name='Giày', slug='giay')]
        )
        CartService.for_user(self.user).add_item(self.jeans, 1)

        response = self.client.post('/api/v1/cart/coupon/', {'coupon_code': 'scoped'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error']['code'], 'COUPON_SCOPE_MISMATCH')

    def test_attach_and_detach_coupon(self):
        make_coupon('GIAM50K')
        CartService.for_user(self.user).add_item(self.jeans, 1)

        response = self.client.post('/api/v1/cart/coupon/', {'coupon_code': 'giam50k'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['cart']['summary']['total'], Decimal('350000'))

        response = self.client.delete('/api/v1/cart/coupon/')
        self.assertEqual(response.data['data']['coupon_code'], '')
