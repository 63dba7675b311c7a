"""
Order Tests for the Clothing Store backend
==========================================
"""

import uuid
from datetime import timedelta
from decimal import Decimal
from unittest import mock
from django.test import TestCase
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase
from rest_framework import status

from apps.base.core.locations.models import Province, Ward
from apps.base.core.system.exceptions import CartError, InsufficientStockError, OrderError, ValidationError
from apps.base.core.users.models import UserAddress
from apps.business.commerce.cart.services import CartService
from apps.business.commerce.payments.models import Payment
from apps.business.commerce.products.models import Category, Product
from apps.client.experience.coupons.exceptions import CouponValidationError, CouponErrorCode
from apps.client.experience.coupons.models import Coupon, CouponUsage
from .models import Order
from .services import CheckoutService, OrderService

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


class OrderFixtureMixin:

    def create_fixtures(self):
        self.user = User.objects.create_user(email='checkout@example.com', password='pass12345')
        self.hanoi = Province.objects.create(code='01', name='Hà Nội')
        self.hue = Province.objects.create(code='46', name='Huế')
        self.ward = Ward.objects.create(code='00004', province=self.hanoi, name='Phường Ba Đình')
        self.address = UserAddress.objects.create(
            user=self.user, recipient_name='Nguyễn Văn A', phone_number='0901234567',
            street_address='1 Tràng Tiền', ward=self.ward, province=self.hanoi, is_default=True
        )
        self.category = Category.objects.create(name='Áo', slug='ao')
        self.tee = Product.objects.create(
            name='Áo thun', slug='ao-thun', sku='AT-01', category=self.category,
            price=Decimal('150000'), stock_quantity=5, status=Product.Status.PUBLISHED
        )
        self.cart = CartService.for_user(self.user)
        self.cart.add_item(self.tee, 2)


class CheckoutReviewTests(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.create_fixtures()

    def test_review_with_default_address(self):
        result = CheckoutService.review_order(self.user)

        self.assertTrue(result['valid'])
        summary = result['order_summary']
        self.assertEqual(summary['subtotal'], Decimal('300000'))
        self.assertEqual(summary['shipping_fee'], Decimal('0'))
        self.assertEqual(summary['total'], Decimal('300000'))
        self.assertEqual(summary['shipping_address']['address_id'], self.address.pk)
        self.assertEqual(summary['estimated_delivery'], timezone.localdate() + timedelta(days=2))

    def test_review_with_inline_address_outside_fast_provinces(self):
        result = CheckoutService.review_order(self.user, address={
            'recipient_name': 'Trần Thị B',
            'phone_number': '0912345678',
            'street_address': '2 Lê Lợi',
            'province': self.hue,
        })

        self.assertTrue(result['valid'])
        self.assertEqual(result['order_summary']['shipping_address']['full_address'], '2 Lê Lợi, Huế')
        self.assertEqual(
            result['order_summary']['estimated_delivery'], timezone.localdate() + timedelta(days=3)
        )

    def test_review_applies_attached_coupon(self):
        make_coupon('GIAM50K')
        self.cart.attach_coupon('GIAM50K', self.user)

        summary = CheckoutService.review_order(self.user)['order_summary']

        self.assertEqual(summary['discount'], Decimal('50000'))
        self.assertEqual(summary['total'], Decimal('250000'))
        self.assertEqual(summary['coupon']['code'], 'GIAM50K')

    def test_review_reports_coupon_rejection(self):
        coupon = make_coupon('GIAM50K')
        self.cart.attach_coupon('GIAM50K', self.user)
        coupon.min_order_value = Decimal('500000')
        coupon.save()

        result = CheckoutService.review_order(self.user)

        self.assertFalse(result['valid'])
        self.assertEqual(result['errors'][0]['code'], CouponErrorCode.MIN_ORDER_NOT_MET)
        self.assertEqual(result['errors'][0]['field'], 'coupon')
        self.assertEqual(result['order_summary']['discount'], Decimal('0'))

    def test_review_reports_missing_address(self):
        self.address.delete()

        result = CheckoutService.review_order(self.user)

        self.assertFalse(result['valid'])
        self.assertEqual(result['errors'][0]['field'], 'address')
        self.assertIsNone(result['order_summary']['estimated_delivery'])

    def test_review_empty_cart(self):
        self.cart.clear()

        result = CheckoutService.review_order(self.user)

        self.assertFalse(result['valid'])
        self.assertEqual(result['errors'][0]['code'], 'cart_empty')
        self.assertIsNone(result['order_summary'])

    def test_review_flags_and_resyncs_raised_price(self):
        self.tee.price = Decimal('250000')
        self.tee.save()

        result = CheckoutService.review_order(self.user)

        self.assertFalse(result['valid'])
        error = result['errors'][0]
        self.assertEqual(error['code'], 'price_changed')
        self.assertEqual(error['product_id'], str(self.tee.pk))
        self.assertEqual((error['old_price'], error['new_price']), (Decimal('150000'), Decimal('250000')))
        line = result['order_summary']['items'][0]
        self.assertTrue(line['price_changed'])
        self.assertEqual(line['current_price'], Decimal('250000'))
        self.assertEqual(line['total_price'], Decimal('500000'))
        self.assertEqual(result['order_summary']['subtotal'], Decimal('500000'))

        self.assertEqual(self.cart.cart.items.get().unit_price, Decimal('250000'))
        self.assertTrue(CheckoutService.review_order(self.user)['valid'])


class CheckoutTests(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.create_fixtures()

    def test_checkout_creates_order_and_redeems_coupon(self):
        coupon = make_coupon('GIAM50K')
        self.cart.attach_coupon('GIAM50K', self.user)

        order = CheckoutService.checkout(self.user, payment_method=Order.PaymentMethod.COD)

        self.assertEqual(order.subtotal, Decimal('300000'))
        self.assertEqual(order.discount_amount, Decimal('50000'))
        self.assertEqual(order.total, Decimal('250000'))
        self.assertEqual(order.coupon_code, 'GIAM50K')
        self.assertEqual(order.shipping_province, 'Hà Nội')
        self.assertEqual(order.estimated_delivery, timezone.localdate() + timedelta(days=2))
        self.assertTrue(order.order_number.startswith('ORD'))
        self.assertEqual(order.items.get().total_price, Decimal('300000'))

        self.tee.refresh_from_db()
        self.assertEqual(self.tee.stock_quantity, 3)
        self.assertEqual(self.tee.sold_count, 2)

        coupon.refresh_from_db()
        self.assertEqual(coupon.used_count, 1)
        usage = CouponUsage.objects.get(coupon=coupon)
        self.assertEqual(usage.order_id, order.pk)
        self.assertEqual(usage.discount_amount, Decimal('50000'))

        self.cart.cart.refresh_from_db()
        self.assertEqual(self.cart.cart.item_count, 0)
        self.assertEqual(self.cart.cart.coupon_code, '')

    def test_checkout_without_coupon(self):
        order = CheckoutService.checkout(self.user, payment_method=Order.PaymentMethod.SEPAY)

        self.assertEqual(order.total, Decimal('300000'))
        self.assertIsNone(order.coupon)
        self.assertFalse(CouponUsage.objects.exists())

    def test_stale_validation_rolls_back_everything(self):
        # Another checkout used the last redemption after this cart was validated
        exhausted = make_coupon('FLASH', usage_limit=1, used_count=1)
        self.cart.cart.coupon_code = 'FLASH'
        self.cart.cart.save()

        with mock.patch(
            'apps.business.commerce.orders.services.CouponEvaluator.validate',
            return_value=exhausted
        ):
            with self.assertRaises(CouponValidationError) as ctx:
                CheckoutService.checkout(self.user, payment_method=Order.PaymentMethod.COD)

        self.assertEqual(ctx.exception.code, CouponErrorCode.USAGE_LIMIT_REACHED)
        self.assertFalse(Order.objects.exists())
        self.tee.refresh_from_db()
        self.assertEqual(self.tee.stock_quantity, 5)
        self.assertEqual(self.tee.sold_count, 0)
        self.assertEqual(self.cart.cart.items.count(), 1)

    def test_rejected_coupon_blocks_checkout(self):
        coupon = make_coupon('GIAM50K')
        self.cart.attach_coupon('GIAM50K', self.user)
        coupon.is_active = False
        coupon.save()

        with self.assertRaises(CouponValidationError) as ctx:
            CheckoutService.checkout(self.user, payment_method=Order.PaymentMethod.COD)

        self.assertEqual(ctx.exception.code, CouponErrorCode.INACTIVE)
        self.assertFalse(Order.objects.exists())

    def test_stock_changed_after_cart(self):
        Product.objects.filter(pk=self.tee.pk).update(stock_quantity=1)

        with self.assertRaises(InsufficientStockError):
            CheckoutService.checkout(self.user, payment_method=Order.PaymentMethod.COD)
        self.assertFalse(Order.objects.exists())

    def test_price_raised_after_cart_is_refused(self):
        Product.objects.filter(pk=self.tee.pk).update(price=Decimal('250000'))

        with self.assertRaises(OrderError) as ctx:
            CheckoutService.checkout(self.user, payment_method=Order.PaymentMethod.COD)

        self.assertEqual(ctx.exception.code, 'price_changed')
        self.assertEqual(Decimal(ctx.exception.extra_data['new_price']), Decimal('250000'))
        self.assertFalse(Order.objects.exists())
        self.tee.refresh_from_db()
        self.assertEqual(self.tee.stock_quantity, 5)

    def test_checkout_after_review_charges_current_price(self):
        Product.objects.filter(pk=self.tee.pk).update(price=Decimal('250000'))
        CheckoutService.review_order(self.user)

        order = CheckoutService.checkout(self.user, payment_method=Order.PaymentMethod.COD)

        self.assertEqual(order.subtotal, Decimal('500000'))
        self.assertEqual(order.items.get().unit_price, Decimal('250000'))

    def test_empty_cart(self):
        self.cart.clear()
        with self.assertRaises(CartError):
            CheckoutService.checkout(self.user, payment_method=Order.PaymentMethod.COD)

    def test_address_required(self):
        self.address.delete()
        with self.assertRaises(ValidationError):
            CheckoutService.checkout(self.user, payment_method=Order.PaymentMethod.COD)


class OrderLifecycleTests(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.create_fixtures()
        self.coupon = make_coupon('GIAM50K')
        self.cart.attach_coupon('GIAM50K', self.user)
        self.order = CheckoutService.checkout(self.user, payment_method=Order.PaymentMethod.SEPAY)

    def test_cancel_restores_stock_and_keeps_coupon_spent(self):
        Payment.objects.create(
            order=self.order, user=self.user, amount=self.order.total,
            transaction_code=f'DH{self.order.order_number}'
        )

        self.assertTrue(OrderService(self.order).cancel_order(reason='Đổi ý', changed_by=self.user))

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.CANCELLED)
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.CANCELLED)
        self.assertEqual(self.order.cancellation_reason, 'Đổi ý')
        self.tee.refresh_from_db()
        self.assertEqual(self.tee.stock_quantity, 5)
        self.assertEqual(self.tee.sold_count, 0)
        self.assertEqual(self.order.payments.get().status, Payment.Status.CANCELLED)

        self.coupon.refresh_from_db()
        self.assertEqual(self.coupon.used_count, 1)
        self.assertEqual(CouponUsage.objects.filter(coupon=self.coupon).count(), 1)

    def test_cannot_cancel_once_shipping(self):
        service = OrderService(self.order)
        service.update_status(Order.Status.CONFIRMED)
        service.update_status(Order.Status.PROCESSING)
        service.update_status(Order.Status.SHIPPING)

        self.assertFalse(service.cancel_order())

    def test_status_history_records_changes(self):
        OrderService(self.order).update_status(Order.Status.CONFIRMED, note='Đã gọi xác nhận')

        self.assertEqual(
            list(self.order.status_history.order_by('id').values_list('new_status', flat=True)),
            ['pending', 'confirmed']
        )


class OrderApiTests(OrderFixtureMixin, APITestCase):

    def setUp(self):
        self.create_fixtures()
        self.staff = User.objects.create_user(email='staff@example.com', password='pass12345', is_staff=True)
        self.client.force_authenticate(self.user)

    def checkout(self, key=None, **data):
        payload = {'idempotency_key': str(key or uuid.uuid4()), 'payment_method': 'cod'}
        payload.update(data)
        return self.client.post('/api/v1/orders/checkout/', payload, format='json')

    def test_review_endpoint(self):
        response = self.client.get('/api/v1/orders/review/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['data']['valid'])

    def test_review_with_inline_address(self):
        response = self.client.post('/api/v1/orders/review/', {
            'address': {
                'recipient_name': 'Trần Thị B',
                'phone_number': '0912345678',
                'street_address': '2 Lê Lợi',
                'province': '46',
            }
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['order_summary']['shipping_address']['province_name'], 'Huế')

    def test_inline_ward_must_belong_to_province(self):
        response = self.client.post('/api/v1/orders/review/', {
            'address': {
                'recipient_name': 'Trần Thị B',
                'phone_number': '0912345678',
                'street_address': '2 Lê Lợi',
                'province': '46',
                'ward': '00004',
            }
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_checkout_is_idempotent(self):
        key = uuid.uuid4()

        first = self.checkout(key)
        self.assertEqual(first.status_code, status.HTTP_201_CREATED)

        second = self.checkout(key)
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertTrue(second.data['duplicate'])
        self.assertEqual(second.data['data']['order_number'], first.data['data']['order_number'])
        self.assertEqual(Order.objects.count(), 1)

    def test_checkout_failure_releases_key(self):
        key = uuid.uuid4()
        Product.objects.filter(pk=self.tee.pk).update(stock_quantity=1)

        response = self.checkout(key)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'insufficient_stock')

        Product.objects.filter(pk=self.tee.pk).update(stock_quantity=5)
        self.assertEqual(self.checkout(key).status_code, status.HTTP_201_CREATED)

    def test_checkout_surfaces_coupon_code(self):
        coupon = make_coupon('GIAM50K')
        self.cart.attach_coupon('GIAM50K', self.user)
        coupon.is_active = False
        coupon.save()

        response = self.checkout()

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'COUPON_INACTIVE')

    def test_list_detail_and_cancel(self):
        order_number = self.checkout().data['data']['order_number']

        response = self.client.get('/api/v1/orders/')
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(f'/api/v1/orders/{order_number}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['data']['can_cancel'])

        response = self.client.post(f'/api/v1/orders/{order_number}/cancel/', {'reason': 'Đặt nhầm'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'cancelled')

        response = self.client.post(f'/api/v1/orders/{order_number}/cancel/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'cannot_cancel')

    def test_other_users_order_is_hidden(self):
        order_number = self.checkout().data['data']['order_number']
        self.client.force_authenticate(self.staff)

        response = self.client.get(f'/api/v1/orders/{order_number}/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_confirm_cod_payment_is_staff_only(self):
        order_number = self.checkout().data['data']['order_number']
        url = f'/api/v1/orders/{order_number}/confirm-cod/'

        self.assertEqual(self.client.post(url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.staff)
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['payment_status'], 'paid')
        self.assertEqual(response.data['data']['status'], 'confirmed')

        self.assertEqual(self.client.post(url).status_code, status.HTTP_409_CONFLICT)

    def test_staff_status_transitions(self):
        order_number = self.checkout().data['data']['order_number']
        url = f'/api/v1/orders/{order_number}/status/'
        self.client.force_authenticate(self.staff)

        response = self.client.post(url, {'status': 'shipping'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'invalid_transition')

        response = self.client.post(url, {'status': 'confirmed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(url, {'status': 'cancelled', 'note': 'Hết hàng'}, format='json')
        self.assertEqual(response.data['data']['status'], 'cancelled')
        self.tee.refresh_from_db()
        self.assertEqual(self.tee.stock_quantity, 5)
