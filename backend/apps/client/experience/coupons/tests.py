"""
Coupon Tests for the Clothing Store backend
===========================================
"""

import threading
from datetime import timedelta
from decimal import Decimal
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import connection
from django.test import TestCase, SimpleTestCase, TransactionTestCase, skipUnlessDBFeature
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase
from rest_framework import status

from apps.base.core.system.exceptions import ValidationError
from apps.business.commerce.orders.models import Order
from apps.business.commerce.products.models import Category, Product
from .builders import CouponBuilder
from .exceptions import CouponErrorCode, CouponValidationError
from .models import Coupon, CouponUsage
from .services import CartContext, CouponEvaluator, CouponService, UsageLedger, compute_discount

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


def make_order(user, order_number, subtotal=Decimal('500000')):
    return Order.objects.create(
        order_number=order_number,
        user=user,
        email=user.email,
        subtotal=subtotal,
        total=subtotal,
        shipping_name='Nguyễn Văn A',
        shipping_phone='0901234567',
        shipping_street='1 Tràng Tiền',
        shipping_province='Hà Nội',
        shipping_address_line='1 Tràng Tiền, Hà Nội',
    )


class ComputeDiscountTests(SimpleTestCase):

    def coupon(self, discount_type, value, max_discount=None):
        return Coupon(discount_type=discount_type, discount_value=Decimal(value), max_discount=max_discount)

    def test_fixed_discount_capped_by_order_value(self):
        coupon = self.coupon(Coupon.DiscountType.FIXED, '50000')
        self.assertEqual(compute_discount(coupon, Decimal('30000')), Decimal('30000'))
        self.assertEqual(compute_discount(coupon, Decimal('200000')), Decimal('50000'))

    def test_percentage_capped_by_max_discount(self):
        coupon = self.coupon(Coupon.DiscountType.PERCENTAGE, '20', max_discount=Decimal('100000'))
        self.assertEqual(compute_discount(coupon, Decimal('1000000')), Decimal('100000'))

    def test_percentage_without_cap(self):
        coupon = self.coupon(Coupon.DiscountType.PERCENTAGE, '15')
        self.assertEqual(compute_discount(coupon, Decimal('200000')), Decimal('30000'))

    def test_zero_max_discount_means_uncapped(self):
        coupon = self.coupon(Coupon.DiscountType.PERCENTAGE, '20', max_discount=Decimal('0'))
        self.assertEqual(compute_discount(coupon, Decimal('1000000')), Decimal('200000'))

    def test_negative_max_discount_rejected(self):
        coupon = self.coupon(Coupon.DiscountType.PERCENTAGE, '20', max_discount=Decimal('-1'))
        with self.assertRaises(DjangoValidationError) as ctx:
            coupon.clean()
        self.assertIn('max_discount', ctx.exception.message_dict)

    def test_rounds_half_up_to_whole_vnd(self):
        coupon = self.coupon(Coupon.DiscountType.PERCENTAGE, '10')
        self.assertEqual(compute_discount(coupon, Decimal('12345')), Decimal('1235'))
        self.assertEqual(compute_discount(coupon, Decimal('12344')), Decimal('1234'))

    def test_never_negative_or_above_order_value(self):
        coupon = self.coupon(Coupon.DiscountType.PERCENTAGE, '100')
        for order_value in ('0', '1', '999.50', '250000'):
            with self.subTest(order_value=order_value):
                discount = compute_discount(coupon, Decimal(order_value))
                self.assertGreaterEqual(discount, 0)
                self.assertLessEqual(discount, Decimal(order_value))

    def test_zero_order_value(self):
        coupon = self.coupon(Coupon.DiscountType.FIXED, '50000')
        self.assertEqual(compute_discount(coupon, 0), Decimal('0'))


class CouponEvaluatorTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='shopper@example.com', password='pass12345')
        self.shirts = Category.objects.create(name='Áo', slug='ao')
        self.shoes = Category.objects.create(name='Giày', slug='giay')
        self.cart = CartContext(Decimal('400000'), [{'product_id': 'p-1', 'category_id': self.shirts.pk}])

    def assertRejected(self, code, expected, user=None, cart=None, now=None):
        with self.assertRaises(CouponValidationError) as ctx:
            CouponEvaluator.validate(code, user, cart or self.cart, now)
        self.assertEqual(ctx.exception.code, expected)
        return ctx.exception

    def test_code_is_normalized(self):
        make_coupon('GIAM50K')
        self.assertEqual(CouponEvaluator.validate('  giam50k ', self.user, self.cart).code, 'GIAM50K')

    def test_unknown_code(self):
        self.assertRejected('NOPE', CouponErrorCode.NOT_FOUND)
        self.assertRejected('   ', CouponErrorCode.NOT_FOUND)

    def test_inactive(self):
        make_coupon('OFF', is_active=False)
        self.assertRejected('OFF', CouponErrorCode.INACTIVE)

    def test_window_bounds_are_inclusive(self):
        coupon = make_coupon('WINDOW')

        self.assertEqual(CouponEvaluator.validate('WINDOW', self.user, self.cart, now=coupon.start_date), coupon)
        self.assertEqual(CouponEvaluator.validate('WINDOW', self.user, self.cart, now=coupon.end_date), coupon)
        self.assertRejected('WINDOW', CouponErrorCode.EXPIRED, now=coupon.start_date - timedelta(seconds=1))
        self.assertRejected('WINDOW', CouponErrorCode.EXPIRED, now=coupon.end_date + timedelta(seconds=1))

    def test_global_limit(self):
        make_coupon('GONE', usage_limit=10, used_count=10)
        self.assertRejected('GONE', CouponErrorCode.USAGE_LIMIT_REACHED, user=self.user)

    def test_private_requires_login(self):
        make_coupon('VIP', type=Coupon.Type.PRIVATE)
        self.assertRejected('VIP', CouponErrorCode.AUTH_REQUIRED)

    def test_private_with_empty_assignment_allows_any_user(self):
        coupon = make_coupon('VIP', type=Coupon.Type.PRIVATE)
        self.assertEqual(CouponEvaluator.validate('VIP', self.user, self.cart), coupon)

    def test_private_assigned_to_someone_else(self):
        other = User.objects.create_user(email='other@example.com', password='pass12345')
        make_coupon('VIP', type=Coupon.Type.PRIVATE).assigned_users.set([other])
        self.assertRejected('VIP', CouponErrorCode.NOT_AVAILABLE_FOR_USER, user=self.user)

    def test_per_user_limit(self):
        coupon = make_coupon('ONCE')
        UsageLedger.record_redemption(coupon.pk, self.user.pk, make_order(self.user, 'ORD251019ONCE01').pk, 50000)
        self.assertRejected('ONCE', CouponErrorCode.USER_USAGE_LIMIT_REACHED, user=self.user)

    def test_min_order_reports_shortfall(self):
        make_coupon('BIG', min_order_value=Decimal('500000'))
        error = self.assertRejected('BIG', CouponErrorCode.MIN_ORDER_NOT_MET, user=self.user)
        self.assertEqual(Decimal(error.extra_data['shortfall']), Decimal('100000'))
        self.assertIn('100,000đ', error.message)

    def test_category_scope_mismatch(self):
        make_coupon('SHOES', apply_type=Coupon.ApplyType.CATEGORY).applicable_categories.set([self.shoes])
        self.assertRejected('SHOES', CouponErrorCode.SCOPE_MISMATCH, user=self.user)

    def test_category_scope_match(self):
        coupon = make_coupon('SHIRTS', apply_type=Coupon.ApplyType.CATEGORY)
        coupon.applicable_categories.set([self.shirts])
        self.assertEqual(CouponEvaluator.validate('SHIRTS', self.user, self.cart), coupon)

    def test_mixed_scope_matches_either(self):
        product = Product.objects.create(
            name='Giày da', slug='giay-da', sku='GD-01', category=self.shoes,
            price=Decimal('900000'), stock_quantity=1, status=Product.Status.PUBLISHED
        )
        coupon = make_coupon('MIX', apply_type=Coupon.ApplyType.MIXED)
        coupon.applicable_products.set([product])
        cart = CartContext(Decimal('900000'), [{'product_id': product.pk, 'category_id': self.shoes.pk}])

        self.assertEqual(CouponEvaluator.validate('MIX', self.user, cart), coupon)
        self.assertRejected('MIX', CouponErrorCode.SCOPE_MISMATCH, user=self.user)

    def test_first_failing_check_wins(self):
        make_coupon(
            'MANY', is_active=False, usage_limit=1, used_count=1,
            min_order_value=Decimal('9000000'), end_date=timezone.now() - timedelta(hours=1)
        )
        self.assertRejected('MANY', CouponErrorCode.INACTIVE)

    def test_evaluate_returns_reason_instead_of_raising(self):
        make_coupon('BIG', min_order_value=Decimal('500000'))

        result = CouponEvaluator.evaluate('BIG', self.user, self.cart)

        self.assertFalse(result['eligible'])
        self.assertEqual(result['reason'], CouponErrorCode.MIN_ORDER_NOT_MET)

    def test_evaluation_never_writes(self):
        coupon = make_coupon('READ')
        CouponEvaluator.evaluate('READ', self.user, self.cart)

        coupon.refresh_from_db()
        self.assertEqual(coupon.used_count, 0)
        self.assertFalse(CouponUsage.objects.exists())


class UsageLedgerTests(TestCase):

    def setUp(self):
        self.users = [
            User.objects.create_user(email=f'user{i}@example.com', password='pass12345') for i in range(3)
        ]
        self.orders = [make_order(user, f'ORD251019LEDG{i:02d}') for i, user in enumerate(self.users)]

    def test_increment_never_exceeds_limit(self):
        coupon = make_coupon('TWO', usage_limit=2)
        # record_redemption increments with a guarded UPDATE filtered on used_count < usage_limit

        UsageLedger.record_redemption(coupon.pk, self.users[0].pk, self.orders[0].pk, 50000)
        UsageLedger.record_redemption(coupon.pk, self.users[1].pk, self.orders[1].pk, 50000)
        with self.assertRaises(CouponValidationError) as ctx:
            UsageLedger.record_redemption(coupon.pk, self.users[2].pk, self.orders[2].pk, 50000)

        self.assertEqual(ctx.exception.code, CouponErrorCode.USAGE_LIMIT_REACHED)
        coupon.refresh_from_db()
        self.assertEqual(coupon.used_count, 2)
        self.assertEqual(CouponUsage.objects.filter(coupon=coupon).count(), 2)

    def test_stale_snapshot_cannot_push_past_limit(self):
        coupon = make_coupon('LAST', usage_limit=1)
        # Another checkout takes the last redemption after this one read the coupon
        Coupon.objects.filter(pk=coupon.pk).update(used_count=1)
        self.assertEqual(coupon.used_count, 0)

        with self.assertRaises(CouponValidationError) as ctx:
            UsageLedger.record_redemption(coupon.pk, self.users[0].pk, self.orders[0].pk, 50000)

        self.assertEqual(ctx.exception.code, CouponErrorCode.USAGE_LIMIT_REACHED)
        coupon.refresh_from_db()
        self.assertEqual(coupon.used_count, 1)
        self.assertFalse(CouponUsage.objects.exists())

    def test_per_user_limit_rechecked_at_write(self):
        coupon = make_coupon('ONCE')
        second_order = make_order(self.users[0], 'ORD251019LEDG99')

        UsageLedger.record_redemption(coupon.pk, self.users[0].pk, self.orders[0].pk, 50000)
        with self.assertRaises(CouponValidationError) as ctx:
            UsageLedger.record_redemption(coupon.pk, self.users[0].pk, second_order.pk, 50000)

        self.assertEqual(ctx.exception.code, CouponErrorCode.USER_USAGE_LIMIT_REACHED)
        coupon.refresh_from_db()
        self.assertEqual(coupon.used_count, 1)

    def test_count_user_redemptions(self):
        coupon = make_coupon('MULTI', usage_limit_per_user=3)
        UsageLedger.record_redemption(coupon.pk, self.users[0].pk, self.orders[0].pk, 50000)

        self.assertEqual(UsageLedger.count_user_redemptions(coupon.pk, self.users[0].pk), 1)
        self.assertEqual(UsageLedger.count_user_redemptions(coupon.pk, self.users[1].pk), 0)
        self.assertEqual(UsageLedger.count_user_redemptions(coupon.pk, None), 0)

    def test_ledger_rows_are_immutable(self):
        coupon = make_coupon('LOCKED')
        usage = UsageLedger.record_redemption(coupon.pk, self.users[0].pk, self.orders[0].pk, 50000)

        usage.discount_amount = Decimal('1')
        with self.assertRaises(TypeError):
            usage.save()
        with self.assertRaises(TypeError):
            usage.delete()
        with self.assertRaises(TypeError):
            CouponUsage.objects.filter(pk=usage.pk).update(discount_amount=0)
        with self.assertRaises(TypeError):
            CouponUsage.objects.all().delete()


@skipUnlessDBFeature('has_select_for_update')
class UsageLedgerConcurrencyTests(TransactionTestCase):

    def test_parallel_redemptions_stop_at_limit(self):
        coupon = make_coupon('RACE', usage_limit=2)
        users = [
            User.objects.create_user(email=f'race{i}@example.com', password='pass12345') for i in range(5)
        ]
        orders = [make_order(user, f'ORD251019RACE{i:02d}') for i, user in enumerate(users)]
        barrier = threading.Barrier(len(users))
        outcomes = []

        def redeem(user, order):
            try:
                barrier.wait()
                UsageLedger.record_redemption(coupon.pk, user.pk, order.pk, 50000)
                outcomes.append('redeemed')
            except CouponValidationError as exc:
                outcomes.append(exc.code)
            finally:
                connection.close()

        threads = [threading.Thread(target=redeem, args=pair) for pair in zip(users, orders)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(outcomes.count('redeemed'), 2)
        self.assertEqual(outcomes.count(CouponErrorCode.USAGE_LIMIT_REACHED), 3)
        coupon.refresh_from_db()
        self.assertEqual(coupon.used_count, 2)
        self.assertEqual(CouponUsage.objects.filter(coupon=coupon).count(), 2)


class CouponServiceTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='service@example.com', password='pass12345')
        self.category = Category.objects.create(name='Áo', slug='ao')

    def test_validate_coupon_prices_discount(self):
        make_coupon('SALE20', discount_type=Coupon.DiscountType.PERCENTAGE,
                    discount_value=Decimal('20'), max_discount=Decimal('100000'))

        result = CouponService.validate_coupon('sale20', self.user, order_value=Decimal('1000000'))

        self.assertTrue(result['eligible'])
        self.assertEqual(result['discount'], Decimal('100000'))
        self.assertEqual(result['final_amount'], Decimal('900000'))
        self.assertEqual(result['remaining_uses'], 1)

    def test_check_availability_flags(self):
        make_coupon('GONE', usage_limit=1, used_count=1)

        result = CouponService.check_availability('gone', self.user)

        self.assertFalse(result['available'])
        self.assertFalse(result['reasons']['has_global_limit'])
        self.assertTrue(result['reasons']['is_active'])

    def test_listings(self):
        now = timezone.now()
        featured = make_coupon('FEAT', visibility=Coupon.Visibility.FEATURED)
        landing = make_coupon('LAND', visibility=Coupon.Visibility.LANDING_PAGE)
        soon = make_coupon('SOON', end_date=now + timedelta(days=2))
        make_coupon('PRIV', type=Coupon.Type.PRIVATE)
        make_coupon('FULL', usage_limit=1, used_count=1)
        make_coupon('OLD', start_date=now - timedelta(days=10), end_date=now - timedelta(days=1))

        self.assertEqual(set(CouponService.active_coupons()), {featured, landing, soon})
        self.assertEqual(list(CouponService.featured_coupons()), [featured])
        self.assertEqual(list(CouponService.landing_page_coupons()), [landing])
        self.assertEqual(list(CouponService.expiring_soon()), [soon])

    def test_coupons_for_category_and_product(self):
        other = Category.objects.create(name='Quần', slug='quan')
        product = Product.objects.create(
            name='Áo sơ mi', slug='ao-so-mi', sku='SM-01', category=self.category,
            price=Decimal('300000'), stock_quantity=4, status=Product.Status.PUBLISHED
        )
        everything = make_coupon('ALL')
        shirts = make_coupon('SHIRTS', apply_type=Coupon.ApplyType.CATEGORY)
        shirts.applicable_categories.set([self.category])
        pants = make_coupon('PANTS', apply_type=Coupon.ApplyType.CATEGORY)
        pants.applicable_categories.set([other])

        self.assertEqual(set(CouponService.coupons_for_category(self.category.pk)), {everything, shirts})
        self.assertEqual(set(CouponService.coupons_for_product(product)), {everything, shirts})

    def test_apply_coupon_records_usage(self):
        coupon = make_coupon('GIAM50K')
        order = make_order(self.user, 'ORD251019APPL01')

        usage = CouponService.apply_coupon(self.user, coupon.pk, order.pk, Decimal('50000'))

        self.assertEqual(usage.order, order)
        order.refresh_from_db()
        self.assertEqual(order.coupon_code, 'GIAM50K')

    def test_delete_coupon_with_usages_deactivates(self):
        coupon = make_coupon('USED')
        UsageLedger.record_redemption(coupon.pk, self.user.pk, make_order(self.user, 'ORD251019DEL001').pk, 1)

        self.assertFalse(CouponService.delete_coupon(coupon))
        coupon.refresh_from_db()
        self.assertFalse(coupon.is_active)

        self.assertTrue(CouponService.delete_coupon(make_coupon('UNUSED')))
        self.assertFalse(Coupon.objects.filter(code='UNUSED').exists())


class CouponBuilderTests(TestCase):

    def setUp(self):
        self.start = timezone.now()
        self.end = self.start + timedelta(days=7)

    def test_builds_percentage_coupon_for_categories(self):
        category = Category.objects.create(name='Áo', slug='ao')

        coupon = (
            CouponBuilder()
            .with_code(' sale20 ')
            .with_name('Sale 20%')
            .as_percentage_discount(20, max_discount=100000)
            .with_date_range(self.start, self.end)
            .for_categories([category])
            .as_flash_sale(100)
            .build()
        )

        self.assertEqual(coupon.code, 'SALE20')
        self.assertEqual(coupon.apply_type, Coupon.ApplyType.CATEGORY)
        self.assertEqual(coupon.usage_limit, 100)
        self.assertEqual(coupon.max_discount, Decimal('100000'))

    def test_private_preset(self):
        user = User.objects.create_user(email='vip@example.com', password='pass12345')

        coupon = (
            CouponBuilder().with_code('VIP').with_name('VIP')
            .as_fixed_discount(50000).with_date_range(self.start, self.end)
            .as_private_for_users([user]).build()
        )

        self.assertEqual(coupon.type, Coupon.Type.PRIVATE)
        self.assertEqual(list(coupon.assigned_users.all()), [user])

    def test_rejects_invalid_percentage(self):
        builder = (
            CouponBuilder().with_code('BAD').with_name('Bad')
            .as_percentage_discount(150).with_date_range(self.start, self.end)
        )
        with self.assertRaises(ValidationError):
            builder.build()

    def test_rejects_duplicate_code(self):
        make_coupon('DUP')
        builder = (
            CouponBuilder().with_code('dup').with_name('Dup')
            .as_fixed_discount(10000).with_date_range(self.start, self.end)
        )
        with self.assertRaises(ValidationError) as ctx:
            builder.build()
        self.assertEqual(ctx.exception.code, 'duplicate_code')


class CouponApiTests(APITestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='api-coupon@example.com', password='pass12345')
        self.staff = User.objects.create_user(email='admin@example.com', password='pass12345', is_staff=True)
        self.category = Category.objects.create(name='Áo', slug='ao')

    def test_validate_eligible(self):
        make_coupon('GIAM50K')

        response = self.client.post('/api/v1/coupons/validate/', {
            'code': 'giam50k', 'order_value': '30000'
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['data']['eligible'])
        self.assertEqual(response.data['data']['discount'], '30000')
        self.assertEqual(Decimal(response.data['data']['final_amount']), 0)

    def test_validate_reports_reason_code(self):
        make_coupon('VIP', type=Coupon.Type.PRIVATE)

        response = self.client.post('/api/v1/coupons/validate/', {
            'code': 'VIP', 'order_value': '300000'
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['data']['eligible'])
        self.assertEqual(response.data['data']['reason'], 'AUTH_REQUIRED_FOR_PRIVATE_COUPON')

    def test_validate_scope_with_category_ids(self):
        make_coupon('SHIRTS', apply_type=Coupon.ApplyType.CATEGORY).applicable_categories.set([self.category])

        response = self.client.post('/api/v1/coupons/validate/', {
            'code': 'SHIRTS', 'order_value': '300000', 'category_ids': [str(self.category.pk)]
        }, format='json')

        self.assertTrue(response.data['data']['eligible'])

    def test_active_listing_is_public(self):
        make_coupon('PUBLIC')
        make_coupon('SECRET', type=Coupon.Type.PRIVATE)

        response = self.client.get('/api/v1/coupons/active/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['code'] for item in response.data['results']], ['PUBLIC'])

    def test_private_coupon_by_code_hidden_from_anonymous(self):
        make_coupon('VIP', type=Coupon.Type.PRIVATE)

        self.assertEqual(self.client.get('/api/v1/coupons/code/vip/').status_code, status.HTTP_404_NOT_FOUND)

        self.client.force_authenticate(self.user)
        self.assertEqual(self.client.get('/api/v1/coupons/code/vip/').status_code, status.HTTP_200_OK)

    def test_check_endpoint(self):
        make_coupon('GIAM50K')

        response = self.client.get('/api/v1/coupons/check/GIAM50K/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['data']['available'])

    def test_apply_and_history(self):
        coupon = make_coupon('GIAM50K')
        order = make_order(self.user, 'ORD251019HIST01')
        self.client.force_authenticate(self.user)

        response = self.client.post('/api/v1/coupons/apply/', {
            'coupon_id': str(coupon.pk), 'order_id': str(order.pk), 'discount_amount': '50000'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.get('/api/v1/coupons/history/me/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['coupon_code'], 'GIAM50K')

    def test_apply_to_someone_elses_order(self):
        coupon = make_coupon('GIAM50K')
        order = make_order(self.staff, 'ORD251019HIST02')
        self.client.force_authenticate(self.user)

        response = self.client.post('/api/v1/coupons/apply/', {
            'coupon_id': str(coupon.pk), 'order_id': str(order.pk), 'discount_amount': '50000'
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_create_requires_staff(self):
        payload = {
            'code': 'new10',
            'name': 'Khách mới',
            'discount_type': 'percentage',
            'discount_value': '10',
            'start_date': timezone.now().isoformat(),
            'end_date': (timezone.now() + timedelta(days=30)).isoformat(),
            'presets': ['new_customer'],
        }

        self.client.force_authenticate(self.user)
        self.assertEqual(
            self.client.post('/api/v1/coupons/admin/', payload, format='json').status_code,
            status.HTTP_403_FORBIDDEN
        )

        self.client.force_authenticate(self.staff)
        response = self.client.post('/api/v1/coupons/admin/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['code'], 'NEW10')

    def test_admin_update_rejects_negative_max_discount(self):
        coupon = make_coupon('CAP', discount_type=Coupon.DiscountType.PERCENTAGE, discount_value=Decimal('10'))
        self.client.force_authenticate(self.staff)

        response = self.client.patch(
            f'/api/v1/coupons/admin/{coupon.pk}/', {'max_discount': '-1000'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('max_discount', response.data['error']['details'])
        coupon.refresh_from_db()
        self.assertIsNone(coupon.max_discount)

    def test_admin_flash_sale_requires_usage_limit(self):
        self.client.force_authenticate(self.staff)

        response = self.client.post('/api/v1/coupons/admin/', {
            'code': 'flash',
            'name': 'Flash',
            'discount_type': 'percentage',
            'discount_value': '30',
            'start_date': timezone.now().isoformat(),
            'end_date': (timezone.now() + timedelta(days=1)).isoformat(),
            'presets': ['flash_sale'],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('usage_limit', response.data['error']['details'])
        self.assertFalse(Coupon.objects.filter(code='FLASH').exists())

    def test_admin_delete_used_coupon_deactivates(self):
        coupon = make_coupon('USED')
        UsageLedger.record_redemption(coupon.pk, self.user.pk, make_order(self.user, 'ORD251019ADM001').pk, 1)
        self.client.force_authenticate(self.staff)

        response = self.client.delete(f'/api/v1/coupons/admin/{coupon.pk}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['data']['deleted'])
