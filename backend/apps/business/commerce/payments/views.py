"""
Payment Views for the Clothing Store backend
============================================
"""

from rest_framework import status, permissions
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiResponse
import logging

from apps.base.core.system.exceptions import PermissionDeniedError
from apps.base.core.system.network import get_client_ip
from .models import Payment
from .serializers import (
    SepayPaymentSerializer, CreateSepayPaymentSerializer,
    PaymentStatusSerializer, SepayWebhookSerializer
)
from .services import PaymentGatewayFactory, PaymentService, sanitize_payload

logger = logging.getLogger(__name__)


@extend_schema(
    tags=['Payments'],
    request=CreateSepayPaymentSerializer,
    responses={
        201: SepayPaymentSerializer,
        404: OpenApiResponse(description='Order not found'),
        409: OpenApiResponse(description='Order already paid')
    }
)
class CreateSepayQRView(APIView):
    """Create (or reopen) the Sepay QR for an order."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = CreateSepayPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        payment = PaymentService.create_sepay_payment(
            serializer.validated_data['order_number'],
            request.user
        )

        return Response({
            'success': True,
            'data': SepayPaymentSerializer(payment).data
        }, status=status.HTTP_201_CREATED)


@extend_schema(tags=['Payments'], responses={200: PaymentStatusSerializer})
class SepayPaymentStatusView(APIView):
    """Polled by the payment page every few seconds."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, order_number):
        result = PaymentService.check_status(order_number, request.user)
        return Response({
            'success': True,
            'data': PaymentStatusSerializer(result).data
        })


@extend_schema(tags=['Payments'], request=None, responses={200: SepayPaymentSerializer})
class CancelSepayPaymentView(APIView):
    """Close the open QR payment."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, order_number):
        payment = PaymentService.cancel_payment(order_number, request.user)
        return Response({
            'success': True,
            'message': 'Đã hủy giao dịch thanh toán',
            'data': SepayPaymentSerializer(payment).data
        })


@extend_schema(tags=['Payments'], request=SepayWebhookSerializer)
class SepayWebhookView(APIView):
    """
    Incoming transfer notifications from Sepay.

    Verified by API key or body signature. Unmatched transfers are still
    acknowledged with 200 so Sepay does not resend them.
    """

    permission_classes = [permissions.AllowAny]
    authentication_classes = []  # No auth for webhooks

    def post(self, request):
        # Read the raw body before DRF parses it; the signature covers these bytes
        raw_body = request.body
        client_ip = get_client_ip(request)

        gateway = PaymentGatewayFactory.create(Payment.Gateway.SEPAY)
        if not gateway.verify_webhook(raw_body, request.headers):
            logger.warning(f"Rejected Sepay webhook from {client_ip}: invalid credentials")
            raise PermissionDeniedError('Invalid webhook credentials', code='invalid_signature')

        payload = dict(request.data) if isinstance(request.data, dict) else {}
        logger.info(f"Sepay webhook from {client_ip}: {sanitize_payload(payload)}")

        result = PaymentService.process_sepay_webhook(payload)
        return Response({'success': True, 'data': result})
