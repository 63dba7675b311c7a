"""
Payment Tests for the Clothing Store backend
============================================
"""

import hashlib
import hmac
import json
from datetime import timedelta
from decimal import Decimal
from django.conf import settings
from django.test import TestCase, SimpleTestCase
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase
from rest_framework import status

from apps.base.core.system.exceptions import ConflictError, NotFoundError, PaymentError
from apps.business.commerce.orders.models import Order
from .models import Payment
from .monitor import CancellationToken, MonitorResult, PaymentMonitor
from .services import PaymentService, SepayGateway, WebhookResult, order_number_from_code
from .tasks import expire_stale_payments_task

User = get_user_model()

WEBHOOK_URL = '/api/v1/payments/webhook/sepay/'


def make_order(user, order_number='ORD251019TEST01', method=Order.PaymentMethod.SEPAY, total=Decimal('350000')):
    return Order.objects.create(
        order_number=order_number,
        user=user,
        email=user.email,
        payment_method=method,
        subtotal=total,
        total=total,
        shipping_name='Nguyễn Văn A',
        shipping_phone='0901234567',
        shipping_street='1 Tràng Tiền',
        shipping_province='Thành phố Hà Nội',
        shipping_address_line='1 Tràng Tiền, Thành phố Hà Nội',
    )


def webhook_payload(order, amount=None, **overrides):
    payload = {
        'id': 92704,
        'gateway': 'MBBank',
        'transactionDate': '2025-10-19 10:15:00',
        'accountNumber': '0123456789',
        'code': None,
        'content': f'DH{order.order_number}',
        'transferType': 'in',
        'transferAmount': int(amount if amount is not None else order.total),
        'referenceCode': 'FT25292000001',
        'description': '',
    }
    payload.update(overrides)
    return payload


class SepayGatewayTests(TestCase):

    def setUp(self):
        self.gateway = SepayGateway()
        self.user = User.objects.create_user(email='qr@example.com', password='pass12345')
        self.order = make_order(self.user)

    def test_create_qr_uses_order_transfer_content(self):
        qr = self.gateway.create_qr(self.order, Decimal('350000.00'))

        self.assertEqual(qr['transfer_content'], 'DHORD251019TEST01')
        self.assertIn('acc=0123456789', qr['qr_url'])
        self.assertIn('amount=350000', qr['qr_url'])
        self.assertIn('des=DHORD251019TEST01', qr['qr_url'])
        self.assertEqual(qr['bank_info']['account_name'], 'CLOTHING STORE')
        self.assertGreater(qr['expires_at'], timezone.now() + timedelta(minutes=14))

    def test_bank_names(self):
        self.assertEqual(SepayGateway.get_bank_name('VCB'), 'Vietcombank')
        self.assertEqual(SepayGateway.get_bank_name('mb'), 'MB Bank')
        self.assertEqual(SepayGateway.get_bank_name('ACB'), 'ACB')

    def test_extract_transaction_code(self):
        cases = [
            ('DHORD251019ABC123', 'DHORD251019ABC123'),
            ('MBVCB.123.DHORD251019ABC123_1760868000.CT', 'DHORD251019ABC123_1760868000'),
            ('dh ord251019abc123', 'DHORD251019ABC123'),
            ('Thanh toan ORD251019ABC123', 'DHORD251019ABC123'),
            ('chuyen tien', None),
            ('', None),
        ]
        for content, expected in cases:
            with self.subTest(content=content):
                self.assertEqual(SepayGateway.extract_transaction_code(content), expected)

    def test_order_number_from_code(self):
        self.assertEqual(order_number_from_code('DHORD251019ABC123_1760868000'), 'ORD251019ABC123')
        self.assertEqual(order_number_from_code('DHORD251019ABC123'), 'ORD251019ABC123')

    def test_verify_webhook_api_key(self):
        self.assertTrue(self.gateway.verify_webhook(b'{}', {'Authorization': 'Apikey test-sepay-api-key'}))
        self.assertFalse(self.gateway.verify_webhook(b'{}', {'Authorization': 'Apikey wrong'}))
        self.assertFalse(self.gateway.verify_webhook(b'{}', {}))

    def test_verify_webhook_signature(self):
        body = b'{"id": 1, "transferType": "in"}'
        signature = hmac.new(b'test-sepay-secret', body, hashlib.sha256).hexdigest()

        self.assertTrue(self.gateway.verify_webhook(body, {'X-Sepay-Signature': signature}))
        self.assertFalse(self.gateway.verify_webhook(body + b' ', {'X-Sepay-Signature': signature}))


class PaymentServiceTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='payer@example.com', password='pass12345')
        self.order = make_order(self.user)

    def test_create_payment_snapshot(self):
        payment = PaymentService.create_sepay_payment(self.order.order_number, self.user)

        self.assertEqual(payment.status, Payment.Status.PENDING)
        self.assertEqual(payment.amount, Decimal('350000'))
        self.assertEqual(payment.transaction_code, 'DHORD251019TEST01')
        self.assertEqual(payment.bank_id, settings.SEPAY_CONFIG['BANK_ID'])
        self.assertEqual(payment.account_number, '0123456789')

    def test_live_pending_payment_is_reused(self):
        first = PaymentService.create_sepay_payment(self.order.order_number, self.user)
        second = PaymentService.create_sepay_payment(self.order.order_number, self.user)

        self.assertEqual(first.pk, second.pk)

    def test_expired_payment_is_replaced(self):
        first = PaymentService.create_sepay_payment(self.order.order_number, self.user)
        Payment.objects.filter(pk=first.pk).update(expires_at=timezone.now() - timedelta(seconds=1))

        second = PaymentService.create_sepay_payment(self.order.order_number, self.user)

        self.assertNotEqual(first.pk, second.pk)
        first.refresh_from_db()
        self.assertEqual(first.status, Payment.Status.EXPIRED)

    def test_cod_order_rejected(self):
        cod_order = make_order(self.user, order_number='ORD251019COD001', method=Order.PaymentMethod.COD)
        with self.assertRaises(PaymentError):
            PaymentService.create_sepay_payment(cod_order.order_number, self.user)

    def test_paid_order_rejected(self):
        self.order.mark_paid()
        with self.assertRaises(ConflictError):
            PaymentService.create_sepay_payment(self.order.order_number, self.user)

    def test_other_users_order_not_found(self):
        stranger = User.objects.create_user(email='stranger@example.com', password='pass12345')
        with self.assertRaises(NotFoundError):
            PaymentService.create_sepay_payment(self.order.order_number, stranger)

    def test_check_status_marks_expired(self):
        payment = PaymentService.create_sepay_payment(self.order.order_number, self.user)

        result = PaymentService.check_status(self.order.order_number, self.user)
        self.assertEqual(result['status'], Payment.Status.PENDING)
        self.assertGreater(result['seconds_left'], 0)

        result = PaymentService.check_status(
            self.order.order_number, self.user, now=payment.expires_at + timedelta(seconds=1)
        )
        self.assertEqual(result['status'], Payment.Status.EXPIRED)
        self.assertEqual(result['seconds_left'], 0)

    def test_check_status_without_payment(self):
        with self.assertRaises(NotFoundError):
            PaymentService.check_status(self.order.order_number, self.user)

    def test_cancel_payment(self):
        PaymentService.create_sepay_payment(self.order.order_number, self.user)

        payment = PaymentService.cancel_payment(self.order.order_number, self.user)
        self.assertEqual(payment.status, Payment.Status.CANCELLED)

        with self.assertRaises(PaymentError):
            PaymentService.cancel_payment(self.order.order_number, self.user)

    def test_expire_stale_payments_task(self):
        payment = PaymentService.create_sepay_payment(self.order.order_number, self.user)
        Payment.objects.filter(pk=payment.pk).update(expires_at=timezone.now() - timedelta(minutes=1))

        self.assertEqual(expire_stale_payments_task(), {'expired': 1})
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.EXPIRED)


class SepayWebhookProcessingTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='hook@example.com', password='pass12345')
        self.order = make_order(self.user)

    def test_matching_transfer_pays_order(self):
        payment = PaymentService.create_sepay_payment(self.order.order_number, self.user)

        result = PaymentService.process_sepay_webhook(webhook_payload(self.order))

        self.assertTrue(result['processed'])
        self.assertEqual(result['order_number'], self.order.order_number)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PaymentStatus.PAID)
        self.assertEqual(self.order.status, Order.Status.CONFIRMED)
        self.assertEqual(self.order.status_history.first().note, 'Thanh toán thành công qua Sepay QR')
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.COMPLETED)
        self.assertEqual(payment.received_amount, Decimal('350000'))
        self.assertEqual(payment.gateway_transaction_id, '92704')

    def test_transfer_without_qr_creates_payment(self):
        result = PaymentService.process_sepay_webhook(webhook_payload(self.order))

        self.assertTrue(result['processed'])
        self.assertEqual(self.order.payments.get().status, Payment.Status.COMPLETED)

    def test_amount_within_tolerance(self):
        result = PaymentService.process_sepay_webhook(webhook_payload(self.order, amount=349500))
        self.assertTrue(result['processed'])

    def test_amount_mismatch_ignored(self):
        result = PaymentService.process_sepay_webhook(webhook_payload(self.order, amount=300000))

        self.assertEqual(result, {'processed': False, 'reason': WebhookResult.AMOUNT_MISMATCH})
        self.order.refresh_from_db()
        self.assertFalse(self.order.is_paid)

    def test_ignored_notifications(self):
        cases = [
            (webhook_payload(self.order, transferType='out'), WebhookResult.NOT_INCOMING),
            (webhook_payload(self.order, amount=0), WebhookResult.INVALID_AMOUNT),
            (webhook_payload(self.order, transferAmount='abc'), WebhookResult.INVALID_AMOUNT),
            (webhook_payload(self.order, content='chuyen tien'), WebhookResult.NO_TRANSACTION_CODE),
            (webhook_payload(self.order, content='DHORD000000NOPE00'), WebhookResult.ORDER_NOT_FOUND),
        ]
        for payload, reason in cases:
            with self.subTest(reason=reason):
                result = PaymentService.process_sepay_webhook(payload)
                self.assertFalse(result['processed'])
                self.assertEqual(result['reason'], reason)

    def test_repeated_notification_pays_once(self):
        PaymentService.process_sepay_webhook(webhook_payload(self.order))
        result = PaymentService.process_sepay_webhook(webhook_payload(self.order))

        self.assertEqual(result['reason'], WebhookResult.ALREADY_PAID)
        self.assertEqual(self.order.payments.filter(status=Payment.Status.COMPLETED).count(), 1)

    def test_description_used_when_content_empty(self):
        payload = webhook_payload(self.order, content='', description=f'dh {self.order.order_number.lower()}')
        self.assertTrue(PaymentService.process_sepay_webhook(payload)['processed'])


class PaymentMonitorTests(SimpleTestCase):

    def test_stops_on_completion(self):
        statuses = iter(['pending', 'pending', 'completed'])
        monitor = PaymentMonitor(
            'ORD1', lambda order_number: {'status': next(statuses)},
            poll_interval=0, timeout=900, clock=lambda: 0.0
        )

        result = monitor.run()

        self.assertEqual(result, MonitorResult('completed', 3, 900))
        self.assertTrue(monitor.token.cancelled)

    def test_countdown_expires(self):
        now = [0.0]

        def fetcher(order_number):
            now[0] += 5
            return {'status': 'pending'}

        monitor = PaymentMonitor('ORD1', fetcher, poll_interval=0, timeout=15, clock=lambda: now[0])

        self.assertEqual(monitor.run(), MonitorResult('expired', 3, 0))
        self.assertEqual(monitor.token.reason, 'expired')

    def test_poll_failure_waits_for_next_poll(self):
        responses = iter([NotFoundError('gone'), {'status': 'completed'}])

        def fetcher(order_number):
            response = next(responses)
            if isinstance(response, Exception):
                raise response
            return response

        monitor = PaymentMonitor('ORD1', fetcher, poll_interval=0, timeout=60, clock=lambda: 0.0)
        with self.assertLogs('apps.business.commerce.payments.monitor', level='WARNING'):
            result = monitor.run()

        self.assertEqual(result.state, 'completed')
        self.assertEqual(result.polls, 2)

    def test_close_stops_polling(self):
        monitor = None

        def fetcher(order_number):
            monitor.close()
            return {'status': 'pending'}

        monitor = PaymentMonitor('ORD1', fetcher, poll_interval=0, timeout=60, clock=lambda: 0.0)

        self.assertEqual(monitor.run(), MonitorResult('closed', 1, 60))

    def test_cancelled_token_never_polls(self):
        token = CancellationToken()
        token.cancel()
        calls = []
        monitor = PaymentMonitor('ORD1', calls.append, timeout=60, clock=lambda: 0.0, token=token)

        self.assertEqual(monitor.run().state, 'closed')
        self.assertEqual(calls, [])

    def test_retry_is_single_check(self):
        calls = []

        def fetcher(order_number):
            calls.append(order_number)
            return {'status': 'completed'}

        monitor = PaymentMonitor('ORD1', fetcher, poll_interval=0, timeout=60, clock=lambda: 0.0)

        self.assertEqual(monitor.retry(), 'completed')
        self.assertEqual(calls, ['ORD1'])
        self.assertTrue(monitor.token.cancelled)

    def test_defaults_from_settings(self):
        monitor = PaymentMonitor('ORD1', lambda order_number: {'status': 'pending'})

        self.assertEqual(monitor.poll_interval, 5)
        self.assertEqual(monitor.timeout, 15 * 60)


class PaymentApiTests(APITestCase):

    def setUp(self):
        self.user = User.objects.create_user(email='api-pay@example.com', password='pass12345')
        self.order = make_order(self.user)
        self.client.force_authenticate(self.user)

    def test_create_qr_and_poll_status(self):
        response = self.client.post(
            '/api/v1/payments/sepay/create-qr/', {'order_number': self.order.order_number}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['transfer_content'], 'DHORD251019TEST01')
        self.assertEqual(response.data['data']['bank_info']['account_number'], '0123456789')

        response = self.client.get(f'/api/v1/payments/sepay/{self.order.order_number}/status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'pending')
        self.assertEqual(response.data['data']['payment_status'], 'pending')

    def test_cancel_endpoint(self):
        PaymentService.create_sepay_payment(self.order.order_number, self.user)

        response = self.client.post(f'/api/v1/payments/sepay/{self.order.order_number}/cancel/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'cancelled')

    def test_status_of_unknown_order(self):
        response = self.client.get('/api/v1/payments/sepay/ORD000000NOPE00/status/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error']['code'], 'order_not_found')

    def test_webhook_with_api_key(self):
        self.client.force_authenticate(None)
        response = self.client.post(
            WEBHOOK_URL, webhook_payload(self.order), format='json',
            HTTP_AUTHORIZATION='Apikey test-sepay-api-key'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['data']['processed'])
        self.order.refresh_from_db()
        self.assertTrue(self.order.is_paid)

    def test_webhook_with_signature(self):
        self.client.force_authenticate(None)
        body = json.dumps(webhook_payload(self.order)).encode('utf-8')
        signature = hmac.new(b'test-sepay-secret', body, hashlib.sha256).hexdigest()

        response = self.client.post(
            WEBHOOK_URL, data=body, content_type='application/json',
            HTTP_X_SEPAY_SIGNATURE=signature
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['data']['processed'])

    def test_webhook_rejects_bad_credentials(self):
        self.client.force_authenticate(None)
        response = self.client.post(
            WEBHOOK_URL, webhook_payload(self.order), format='json',
            HTTP_AUTHORIZATION='Apikey not-the-key'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error']['code'], 'invalid_signature')
        self.order.refresh_from_db()
        self.assertFalse(self.order.is_paid)

    def test_unmatched_transfer_acknowledged(self):
        self.client.force_authenticate(None)
        response = self.client.post(
            WEBHOOK_URL, webhook_payload(self.order, transferType='out'), format='json',
            HTTP_AUTHORIZATION='Apikey test-sepay-api-key'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['data']['processed'])
