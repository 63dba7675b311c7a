"""
Payment Service for the Clothing Store backend
==============================================
Sepay QR payments: QR generation, webhook verification and processing,
status checks and expiry.
"""

from __future__ import annotations

import hashlib
import hmac
import re
from abc import ABC, abstractmethod
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Optional, Dict, Any, Mapping
from urllib.parse import urlencode
from django.db import transaction
from django.conf import settings
from django.utils import timezone
from rest_framework import status
import logging

from apps.base.core.system.exceptions import (
    StoreBaseException,
    ConflictError,
    NotFoundError,
    OrderError,
    PaymentError,
    ErrorMessages,
)

if TYPE_CHECKING:
    from .models import Payment
    from apps.business.commerce.orders.models import Order

logger = logging.getLogger(__name__)

TRANSFER_PREFIX = 'DH'
SEPAY_PAID_NOTE = 'Thanh toán thành công qua Sepay QR'

BANK_NAMES = {
    'MB': 'MB Bank',
    'MBBANK': 'MB Bank',
    'VCB': 'Vietcombank',
    'TCB': 'Techcombank',
    'BIDV': 'BIDV',
    'VIB': 'VIB',
    'TPB': 'TPBank',
    'STB': 'Sacombank',
}

# Tried in order; banks may rewrite the case of the transfer content
TRANSACTION_CODE_PATTERNS = [
    (re.compile(r'DH\w+_\d+', re.IGNORECASE), lambda match: match.group(0)),
    (re.compile(r'DH\s+(\w+)', re.IGNORECASE), lambda match: TRANSFER_PREFIX + match.group(1)),
    (re.compile(r'DH\w+', re.IGNORECASE), lambda match: match.group(0)),
    (re.compile(r'ORD\w+', re.IGNORECASE), lambda match: TRANSFER_PREFIX + match.group(0)),
]

SENSITIVE_FIELDS = {
    'signature', 'x-sepay-signature', 'authorization',
    'apikey', 'api_key', 'secretkey', 'secret_key', 'secret',
    'token', 'password', 'pin', 'otp',
}


class PaymentGatewayError(StoreBaseException):
    """Gateway is misconfigured or returned something unusable."""
    default_message = "Cổng thanh toán tạm thời không khả dụng"
    default_code = "gateway_error"
    status_code = status.HTTP_502_BAD_GATEWAY


class WebhookResult:
    """Reasons a verified webhook is acknowledged without changing anything."""
    NOT_INCOMING = 'Not an incoming transfer'
    INVALID_AMOUNT = 'Invalid amount'
    NO_TRANSACTION_CODE = 'No transaction code'
    ORDER_NOT_FOUND = 'Order not found'
    ALREADY_PAID = 'Already paid'
    ORDER_CANCELLED = 'Order cancelled'
    AMOUNT_MISMATCH = 'Amount mismatch'


def sanitize_payload(payload):
    """
    Remove sensitive fields from a gateway payload before storing or logging.
    """
    if not isinstance(payload, dict):
        return payload

    sanitized = {}
    for key, value in payload.items():
        if str(key).lower() in SENSITIVE_FIELDS:
            sanitized[key] = '[REDACTED]'
        elif isinstance(value, dict):
            sanitized[key] = sanitize_payload(value)
        else:
            sanitized[key] = value
    return sanitized


def order_number_from_code(transaction_code: str) -> str:
    """``DHORD251019A3B5C9_1700000000`` -> ``ORD251019A3B5C9``."""
    code = transaction_code.upper()
    if code.startswith(TRANSFER_PREFIX):
        code = code[len(TRANSFER_PREFIX):]
    return code.split('_', 1)[0]


# =============================================================================
# PAYMENT GATEWAY ADAPTERS (Strategy Pattern)
# =============================================================================

class PaymentGatewayAdapter(ABC):
    """
    Abstract base class for payment gateway adapters.
    """

    def __init__(self, config: Dict[str, Any] = None):
        self.config = config or {}

    @abstractmethod
    def create_qr(self, order: 'Order', amount: Decimal, info: str = None) -> Dict[str, Any]:
        """
        Prepare a QR payment on the gateway.

        Returns:
            dict with qr_url, bank_info, transfer_content, amount and expires_at
        """

    @abstractmethod
    def verify_webhook(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        """Check that a webhook really comes from the gateway."""


class SepayGateway(PaymentGatewayAdapter):
    """
    Sepay VietQR bank transfers.

    The customer scans a QR whose transfer content is ``DH<order_number>``;
    Sepay then calls the webhook for every incoming transfer.
    """

    def __init__(self, config: Dict[str, Any] = None):
        super().__init__(config or settings.SEPAY_CONFIG)
        self.bank_id = self.config.get('BANK_ID', '')
        self.account_number = self.config.get('ACCOUNT_NUMBER', '')
        self.account_name = self.config.get('ACCOUNT_NAME', '')
        self.template = self.config.get('TEMPLATE', 'compact2')
        self.qr_base_url = self.config.get('QR_BASE_URL', 'https://qr.sepay.vn/img')
        self.api_key = self.config.get('API_KEY', '')
        self.secret_key = self.config.get('SECRET_KEY', '')

    @staticmethod
    def get_bank_name(bank_id: str) -> str:
        return BANK_NAMES.get((bank_id or '').upper(), bank_id)

    @staticmethod
    def extract_transaction_code(content: str) -> Optional[str]:
        """
        Find the ``DH...`` code in a bank transfer description.

        Returns:
            str: upper-cased code, or None when the content has none
        """
        if not content:
            return None
        for pattern, build in TRANSACTION_CODE_PATTERNS:
            match = pattern.search(content)
            if match:
                return build(match).upper()
        return None

    def create_qr(self, order: 'Order', amount: Decimal, info: str = None) -> Dict[str, Any]:
        if not self.account_number or not self.bank_id:
            logger.error("Sepay is not configured: bank or account number missing")
            raise PaymentGatewayError()

        transfer_content = info or f'{TRANSFER_PREFIX}{order.order_number}'
        query = urlencode({
            'acc': self.account_number,
            'bank': self.bank_id,
            'amount': int(amount),
            'des': transfer_content,
            'template': self.template,
        })
        timeout_minutes = settings.STORE_CONFIG.get('QR_PAYMENT_TIMEOUT_MINUTES', 15)

        return {
            'qr_url': f'{self.qr_base_url}?{query}',
            'bank_info': {
                'bank_id': self.bank_id,
                'bank_name': self.get_bank_name(self.bank_id),
                'account_number': self.account_number,
                'account_name': self.account_name,
            },
            'transfer_content': transfer_content,
            'amount': amount,
            'expires_at': timezone.now() + timedelta(minutes=timeout_minutes),
        }

    def verify_webhook(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        """
        Accept ``Authorization: Apikey <key>`` or an ``X-Sepay-Signature``
        HMAC-SHA256 of the raw body.
        """
        headers = {str(key).lower(): value for key, value in headers.items()}

        authorization = headers.get('authorization', '')
        if self.api_key and authorization:
            scheme, _, key = authorization.partition(' ')
            if scheme.lower() == 'apikey' and hmac.compare_digest(key.strip(), self.api_key):
                return True

        signature = headers.get('x-sepay-signature', '')
        if self.secret_key and signature:
            expected = hmac.new(
                self.secret_key.encode('utf-8'),
                payload or b'',
                hashlib.sha256
            ).hexdigest()
            return hmac.compare_digest(expected, signature.strip().lower())

        return False


# =============================================================================
# GATEWAY FACTORY
# =============================================================================

class PaymentGatewayFactory:
    """
    Factory for creating payment gateway adapters.
    """

    _adapters = {
        'sepay': SepayGateway,
    }

    @classmethod
    def create(cls, gateway_code: str, config: Dict[str, Any] = None) -> PaymentGatewayAdapter:
        """
        Raises:
            ValueError: If gateway not supported
        """
        adapter_class = cls._adapters.get(gateway_code)

        if not adapter_class:
            raise ValueError(f'Unsupported payment gateway: {gateway_code}')

        return adapter_class(config)


# =============================================================================
# PAYMENT SERVICE
# =============================================================================

class PaymentService:
    """
    Sepay payment lifecycle for orders.
    """

    @staticmethod
    def _order_for(order_number: str, user=None, lock: bool = False) -> 'Order':
        from apps.business.commerce.orders.models import Order

        queryset = Order.objects.select_for_update() if lock else Order.objects
        queryset = queryset.filter(order_number=order_number)
        if user is not None:
            queryset = queryset.filter(user=user)
        order = queryset.first()
        if order is None:
            raise NotFoundError(ErrorMessages.ORDER_NOT_FOUND, code='order_not_found')
        return order

    @staticmethod
    def _expire(queryset, now) -> int:
        from .models import Payment

        return queryset.filter(
            status=Payment.Status.PENDING,
            expires_at__lte=now
        ).update(status=Payment.Status.EXPIRED, updated_at=now)

    @classmethod
    @transaction.atomic
    def create_sepay_payment(cls, order_number: str, user) -> 'Payment':
        """
        QR payment for a pending Sepay order.

        A pending payment whose window is still open is returned as is, so
        reopening the payment page shows the same QR.

        Raises:
            NotFoundError: order does not exist for this user
            PaymentError: order is not paid by Sepay
            ConflictError: order is already paid
            OrderError: order is cancelled
            PaymentGatewayError: Sepay is not configured
        """
        from .models import Payment

        order = cls._order_for(order_number, user, lock=True)
        if order.payment_method != order.PaymentMethod.SEPAY:
            raise PaymentError(ErrorMessages.PAYMENT_METHOD_MISMATCH, code='payment_method_mismatch')
        if order.is_paid:
            raise ConflictError(ErrorMessages.ORDER_ALREADY_PAID, code='order_already_paid')
        if order.status == order.Status.CANCELLED:
            raise OrderError('Đơn hàng đã bị hủy', code='order_cancelled')

        now = timezone.now()
        cls._expire(order.payments.all(), now)

        payment = order.payments.filter(
            gateway=Payment.Gateway.SEPAY,
            status=Payment.Status.PENDING
        ).order_by('-created_at').first()
        if payment is not None:
            return payment

        gateway = PaymentGatewayFactory.create(Payment.Gateway.SEPAY)
        qr = gateway.create_qr(order, order.total)
        payment = Payment.objects.create(
            order=order,
            user=order.user,
            gateway=Payment.Gateway.SEPAY,
            currency=order.currency,
            amount=qr['amount'],
            transaction_code=qr['transfer_content'],
            transfer_content=qr['transfer_content'],
            qr_url=qr['qr_url'],
            expires_at=qr['expires_at'],
            **qr['bank_info']
        )

        logger.info(
            f"Sepay QR created for order {order.order_number}: "
            f"amount={payment.amount} expires_at={payment.expires_at.isoformat()}"
        )
        return payment

    @classmethod
    def check_status(cls, order_number: str, user=None, now=None) -> Dict[str, Any]:
        """
        Current state of the latest Sepay payment of an order.

        A pending payment past its window is marked expired here as well as
        by the periodic task.

        Raises:
            NotFoundError: unknown order or no Sepay payment yet
        """
        from .models import Payment

        now = now or timezone.now()
        order = cls._order_for(order_number, user)
        payment = order.payments.filter(gateway=Payment.Gateway.SEPAY).order_by('-created_at').first()
        if payment is None:
            raise NotFoundError(ErrorMessages.PAYMENT_NOT_FOUND, code='payment_not_found')

        if payment.is_expired(now) and cls._expire(Payment.objects.filter(pk=payment.pk), now):
            payment.refresh_from_db()

        return {
            'order_number': order.order_number,
            'status': payment.status,
            'payment_status': order.payment_status,
            'amount': payment.amount,
            'expires_at': payment.expires_at,
            'seconds_left': payment.seconds_left(now),
        }

    @classmethod
    @transaction.atomic
    def cancel_payment(cls, order_number: str, user) -> 'Payment':
        """
        Close the open QR payment. The order itself stays pending.

        Raises:
            PaymentError: there is no pending payment to cancel
        """
        from .models import Payment

        order = cls._order_for(order_number, user)
        payment = order.payments.select_for_update().filter(
            gateway=Payment.Gateway.SEPAY,
            status=Payment.Status.PENDING
        ).order_by('-created_at').first()
        if payment is None:
            raise PaymentError(ErrorMessages.PAYMENT_NOT_PENDING, code='payment_not_pending')

        payment.status = Payment.Status.CANCELLED
        payment.save(update_fields=['status', 'updated_at'])

        logger.info(f"Sepay payment cancelled for order {order.order_number}")
        return payment

    @staticmethod
    def _ignored(reason: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.warning(f"Sepay webhook {payload.get('id')} ignored: {reason}")
        return {'processed': False, 'reason': reason}

    @classmethod
    def process_sepay_webhook(cls, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a verified Sepay transfer notification.

        Transfers that cannot be matched to an unpaid order are acknowledged
        with a reason; the order row is locked so a repeated notification
        never pays an order twice.

        Returns:
            dict: {processed, reason} or {processed, order_number, transaction_code, amount}
        """
        from apps.business.commerce.orders.models import Order
        from .models import Payment

        if payload.get('transferType') != 'in':
            return cls._ignored(WebhookResult.NOT_INCOMING, payload)

        try:
            amount = Decimal(str(payload.get('transferAmount')))
        except (InvalidOperation, ValueError):
            return cls._ignored(WebhookResult.INVALID_AMOUNT, payload)
        if not amount.is_finite() or amount <= 0:
            return cls._ignored(WebhookResult.INVALID_AMOUNT, payload)

        transaction_code = SepayGateway.extract_transaction_code(
            payload.get('content') or payload.get('description') or ''
        )
        if not transaction_code:
            return cls._ignored(WebhookResult.NO_TRANSACTION_CODE, payload)

        tolerance = Decimal(str(settings.STORE_CONFIG.get('PAYMENT_AMOUNT_TOLERANCE', 1000)))

        with transaction.atomic():
            order = Order.objects.select_for_update().filter(
                order_number=order_number_from_code(transaction_code)
            ).first()
            if order is None:
                return cls._ignored(WebhookResult.ORDER_NOT_FOUND, payload)
            if order.is_paid:
                return cls._ignored(WebhookResult.ALREADY_PAID, payload)
            if order.status == Order.Status.CANCELLED:
                return cls._ignored(WebhookResult.ORDER_CANCELLED, payload)
            if abs(amount - order.total) > tolerance:
                logger.warning(
                    f"Sepay amount mismatch for order {order.order_number}: "
                    f"expected {order.total}, received {amount}"
                )
                return cls._ignored(WebhookResult.AMOUNT_MISMATCH, payload)

            payment = order.payments.select_for_update().filter(
                gateway=Payment.Gateway.SEPAY
            ).exclude(status=Payment.Status.COMPLETED).order_by('-created_at').first()
            if payment is None:
                # Transfer made without opening the QR page
                payment = Payment(
                    order=order,
                    user=order.user,
                    gateway=Payment.Gateway.SEPAY,
                    currency=order.currency,
                    amount=order.total,
                    transaction_code=f'{TRANSFER_PREFIX}{order.order_number}',
                    transfer_content=f'{TRANSFER_PREFIX}{order.order_number}',
                )

            now = timezone.now()
            payment.status = Payment.Status.COMPLETED
            payment.received_amount = amount
            payment.gateway_transaction_id = str(payload.get('id', ''))
            payment.gateway_response = sanitize_payload(payload)
            payment.paid_at = now
            payment.save()

            order.mark_paid(note=SEPAY_PAID_NOTE)

        logger.info(
            f"Sepay payment completed for order {order.order_number}: "
            f"received={amount} reference={payload.get('referenceCode', '-')}"
        )
        return {
            'processed': True,
            'order_number': order.order_number,
            'transaction_code': transaction_code,
            'amount': str(amount),
        }

    @classmethod
    def expire_stale_payments(cls, now=None) -> int:
        """Mark every pending payment past its window as expired."""
        from .models import Payment

        return cls._expire(Payment.objects.all(), now or timezone.now())
