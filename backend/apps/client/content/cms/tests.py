"""
CMS Sync Tests for the Clothing Store backend
=============================================
"""

from datetime import timedelta
from decimal import Decimal
from unittest import mock
from django.test import TestCase, SimpleTestCase, override_settings
from django.conf import settings
from django.utils import timezone
import requests

from apps.business.commerce.products.models import Category
from apps.client.experience.coupons.models import Coupon
from .client import StrapiClient, CMSClientError
from .services import CMSSyncService, coupon_payload
from .tasks import sync_backend_data_task


def fake_response(payload=None, status_code=200):
    response = mock.Mock(status_code=status_code)
    response.json.return_value = payload if payload is not None else {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f'{status_code} Error', response=response)
    else:
        response.raise_for_status.return_value = None
    return response


class StrapiClientTests(SimpleTestCase):

    def setUp(self):
        self.session = mock.Mock()
        self.session.headers = {}
        self.client = StrapiClient(session=self.session)

    def test_uses_bearer_token_and_timeout(self):
        self.assertEqual(self.session.headers['Authorization'], 'Bearer test-strapi-token')
        self.assertEqual(self.client.timeout, 30)

    def test_find_by_backend_id(self):
        self.session.request.return_value = fake_response({'data': [{'documentId': 'abc', 'name': 'Áo'}]})

        entry = self.client.find_by_backend_id('categories', 7)

        self.assertEqual(entry['documentId'], 'abc')
        self.session.request.assert_called_once_with(
            'GET', 'http://cms.test/api/categories',
            timeout=30, params={'filters[backend_id][$eq]': '7'}
        )

    def test_find_returns_none_when_missing(self):
        self.session.request.return_value = fake_response({'data': []})
        self.assertIsNone(self.client.find_by_backend_id('categories', 7))

    def test_create_and_update_wrap_data(self):
        self.session.request.return_value = fake_response({'data': {'id': 1}})

        self.client.create('coupons', {'code': 'SALE'})
        self.client.update('coupons', 'doc-1', {'code': 'SALE'})

        self.assertEqual(self.session.request.call_args_list, [
            mock.call('POST', 'http://cms.test/api/coupons', timeout=30, json={'data': {'code': 'SALE'}}),
            mock.call('PUT', 'http://cms.test/api/coupons/doc-1', timeout=30, json={'data': {'code': 'SALE'}}),
        ])

    def test_error_status_raises_with_cms_message(self):
        self.session.request.return_value = fake_response(
            {'error': {'status': 400, 'message': 'This attribute must be unique'}}, status_code=400
        )

        with self.assertRaises(CMSClientError) as ctx:
            self.client.create('coupons', {'code': 'SALE'})
        self.assertIn('This attribute must be unique', str(ctx.exception))

    def test_connection_error_raises(self):
        self.session.request.side_effect = requests.ConnectionError('refused')

        with self.assertRaises(CMSClientError):
            self.client.find_by_backend_id('coupons', 1)


class CMSSyncServiceTests(TestCase):

    def setUp(self):
        self.client = mock.Mock(spec=StrapiClient)
        self.service = CMSSyncService(client=self.client)
        now = timezone.now()
        self.coupon_dates = {'start_date': now - timedelta(days=1), 'end_date': now + timedelta(days=10)}

    def test_categories_upsert_by_backend_id(self):
        shirts = Category.objects.create(name='Áo', slug='ao', order=1)
        pants = Category.objects.create(name='Quần', slug='quan', order=2)
        Category.objects.create(name='Ẩn', slug='an', is_active=False)
        self.client.find_by_backend_id.side_effect = (
            lambda collection, backend_id: {'documentId': 'doc-ao'} if backend_id == str(shirts.pk) else None
        )

        summary = self.service.sync_categories()

        self.assertEqual(summary, {'created': 1, 'updated': 1, 'errors': 0})
        self.client.update.assert_called_once()
        collection, doc_id, data = self.client.update.call_args.args
        self.assertEqual((collection, doc_id, data['backend_id']), ('categories', 'doc-ao', str(shirts.pk)))
        created = self.client.create.call_args.args[1]
        self.assertEqual((created['name'], created['slug']), ('Quần', 'quan'))
        self.assertEqual(created['backend_id'], str(pants.pk))

    def test_failed_record_does_not_stop_the_run(self):
        Category.objects.create(name='Áo', slug='ao', order=1)
        Category.objects.create(name='Quần', slug='quan', order=2)
        self.client.find_by_backend_id.return_value = None
        self.client.create.side_effect = [CMSClientError('boom'), {'id': 2}]

        with self.assertLogs('apps.client.content.cms.services', level='ERROR'):
            summary = self.service.sync_categories()

        self.assertEqual(summary, {'created': 1, 'updated': 0, 'errors': 1})
        self.assertEqual(self.client.create.call_count, 2)

    def test_only_active_public_coupons_are_synced(self):
        Coupon.objects.create(code='PUBLIC', name='Public', discount_type='fixed',
                              discount_value=Decimal('50000'), **self.coupon_dates)
        Coupon.objects.create(code='PRIVATE', name='Private', type=Coupon.Type.PRIVATE, discount_type='fixed',
                              discount_value=Decimal('50000'), **self.coupon_dates)
        Coupon.objects.create(code='OFF', name='Off', is_active=False, discount_type='fixed',
                              discount_value=Decimal('50000'), **self.coupon_dates)
        self.client.find_by_backend_id.return_value = None

        summary = self.service.sync_coupons()

        self.assertEqual(summary, {'created': 1, 'updated': 0, 'errors': 0})
        self.assertEqual(self.client.create.call_args.args[1]['code'], 'PUBLIC')

    def test_coupon_payload_fields(self):
        coupon = Coupon.objects.create(
            code='SALE20', name='Sale 20%', discount_type='percentage',
            discount_value=Decimal('20'), max_discount=Decimal('100000'),
            visibility=Coupon.Visibility.FEATURED, **self.coupon_dates
        )

        data = coupon_payload(coupon)

        self.assertEqual(data['code'], 'SALE20')
        self.assertEqual(data['discount_value'], 20.0)
        self.assertEqual(data['max_discount'], 100000.0)
        self.assertEqual(data['min_order_value'], 0.0)
        self.assertEqual(data['apply_type'], 'all')
        self.assertEqual(data['visibility'], 'featured')
        self.assertEqual(data['backend_id'], str(coupon.pk))

    def test_sync_all_reports_per_collection(self):
        self.client.find_by_backend_id.return_value = None

        self.assertEqual(self.service.sync_all(), {
            'categories': {'created': 0, 'updated': 0, 'errors': 0},
            'coupons': {'created': 0, 'updated': 0, 'errors': 0},
        })


class SyncTaskTests(SimpleTestCase):

    @mock.patch('apps.client.content.cms.tasks.CMSSyncService')
    def test_runs_sync_when_enabled(self, service_class):
        service_class.return_value.sync_all.return_value = {'categories': {}, 'coupons': {}}

        result = sync_backend_data_task()

        self.assertEqual(result, {'categories': {}, 'coupons': {}})
        service_class.return_value.sync_all.assert_called_once_with()

    @mock.patch('apps.client.content.cms.tasks.CMSSyncService')
    def test_skipped_when_disabled(self, service_class):
        with override_settings(CMS_SYNC_CONFIG={**settings.CMS_SYNC_CONFIG, 'ENABLED': False}):
            result = sync_backend_data_task()

        self.assertEqual(result, {'skipped': True})
        service_class.assert_not_called()

    @mock.patch('apps.client.content.cms.tasks.CMSSyncService')
    def test_skipped_without_token(self, service_class):
        with override_settings(CMS_SYNC_CONFIG={**settings.CMS_SYNC_CONFIG, 'API_TOKEN': ''}):
            result = sync_backend_data_task()

        self.assertEqual(result, {'skipped': True})
        service_class.assert_not_called()
