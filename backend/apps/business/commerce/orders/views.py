"""
Order Views for the Clothing Store backend
==========================================
"""

from rest_framework import generics, status, permissions
from rest_framework.views import APIView
from rest_framework.response import Response
from django.core.cache import cache
from django.shortcuts import get_object_or_404
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiResponse

from apps.base.core.system.exceptions import ConflictError, OrderError, ErrorMessages
from apps.base.core.system.network import get_client_ip
from .models import Order
from .serializers import (
    OrderListSerializer, OrderDetailSerializer,
    ReviewOrderSerializer, CheckoutSerializer,
    CancelOrderSerializer, UpdateOrderStatusSerializer
)
from .services import CheckoutService, OrderService

IDEMPOTENCY_TIMEOUT = 86400


@extend_schema(tags=['Orders'])
class OrderReviewView(APIView):
    """
    Preview checkout totals.

    GET uses a saved address (``?address_id=`` or the default address);
    POST accepts a saved address id or an inline address.
    """

    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(parameters=[OpenApiParameter('address_id', int, required=False)])
    def get(self, request):
        address_id = request.query_params.get('address_id')
        result = CheckoutService.review_order(
            request.user,
            address_id=int(address_id) if address_id and address_id.isdigit() else None
        )
        return Response({'success': True, 'data': result})

    @extend_schema(request=ReviewOrderSerializer)
    def post(self, request):
        serializer = ReviewOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = CheckoutService.review_order(
            request.user,
            address_id=serializer.validated_data.get('address_id'),
            address=serializer.validated_data.get('address')
        )
        return Response({'success': True, 'data': result})


@extend_schema(tags=['Orders'], request=CheckoutSerializer, responses={201: OrderDetailSerializer})
class CheckoutView(APIView):
    """
    Create order from cart.

    An idempotency key is required so double submits return the first order.
    """

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = request.user
        cache_key = f"order_idempotency:{user.id}:{data['idempotency_key']}"

        # cache.add is atomic: only the first request acquires the key
        if not cache.add(cache_key, 'processing', timeout=IDEMPOTENCY_TIMEOUT):
            existing_value = cache.get(cache_key)
            existing_order = None
            if existing_value and existing_value != 'processing':
                existing_order = Order.objects.filter(id=existing_value, user=user).first()
            if existing_order is None:
                raise ConflictError(ErrorMessages.REQUEST_IN_PROGRESS, code='request_in_progress')
            return Response({
                'success': True,
                'message': 'Đơn hàng đã được tạo trước đó',
                'duplicate': True,
                'data': OrderDetailSerializer(existing_order).data
            }, status=status.HTTP_200_OK)

        try:
            order = CheckoutService.checkout(
                user,
                payment_method=data['payment_method'],
                address_id=data.get('address_id'),
                address=data.get('address'),
                customer_note=data.get('customer_note', ''),
                ip_address=get_client_ip(request)
            )
        except Exception:
            cache.delete(cache_key)
            raise

        cache.set(cache_key, str(order.id), timeout=IDEMPOTENCY_TIMEOUT)

        return Response({
            'success': True,
            'message': 'Đặt hàng thành công',
            'data': OrderDetailSerializer(order).data
        }, status=status.HTTP_201_CREATED)


@extend_schema(tags=['Orders'])
class OrderListView(generics.ListAPIView):
    """List user's orders."""

    serializer_class = OrderListSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return Order.objects.none()
        queryset = Order.objects.filter(user=self.request.user).prefetch_related('items')
        order_status = self.request.query_params.get('status')
        if order_status:
            queryset = queryset.filter(status=order_status)
        return queryset.order_by('-created_at')


@extend_schema(tags=['Orders'])
class OrderDetailView(generics.RetrieveAPIView):
    """Get order details."""

    serializer_class = OrderDetailSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_field = 'order_number'

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return Order.objects.none()
        return Order.objects.filter(
            user=self.request.user
        ).prefetch_related('items', 'status_history')

    def retrieve(self, request, *args, **kwargs):
        return Response({
            'success': True,
            'data': self.get_serializer(self.get_object()).data
        })


@extend_schema(
    tags=['Orders'],
    request=CancelOrderSerializer,
    responses={
        200: OrderDetailSerializer,
        404: OpenApiResponse(description='Order not found'),
        400: OpenApiResponse(description='Order cannot be cancelled')
    }
)
class CancelOrderView(APIView):
    """Cancel an order."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, order_number):
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = get_object_or_404(Order, order_number=order_number, user=request.user)

        order_service = OrderService(order)
        if not order_service.cancel_order(
            reason=serializer.validated_data['reason'],
            changed_by=request.user
        ):
            raise OrderError(ErrorMessages.ORDER_CANNOT_BE_CANCELLED, code='cannot_cancel')

        return Response({
            'success': True,
            'message': 'Đã hủy đơn hàng',
            'data': OrderDetailSerializer(order_service.order).data
        })


@extend_schema(tags=['Orders'], request=None, responses={200: OrderDetailSerializer})
class ConfirmCodPaymentView(APIView):
    """Staff confirms a cash-on-delivery payment."""

    permission_classes = [permissions.IsAdminUser]

    def post(self, request, order_number):
        order = get_object_or_404(Order, order_number=order_number)
        order = OrderService(order).confirm_cod_payment(changed_by=request.user)

        return Response({
            'success': True,
            'message': 'Đã xác nhận thanh toán COD',
            'data': OrderDetailSerializer(order).data
        })


@extend_schema(tags=['Orders'], request=UpdateOrderStatusSerializer, responses={200: OrderDetailSerializer})
class UpdateOrderStatusView(APIView):
    """Staff moves an order along its lifecycle."""

    permission_classes = [permissions.IsAdminUser]

    def post(self, request, order_number):
        serializer = UpdateOrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = get_object_or_404(Order, order_number=order_number)
        order = OrderService(order).update_status(
            serializer.validated_data['status'],
            note=serializer.validated_data['note'],
            changed_by=request.user
        )

        return Response({
            'success': True,
            'data': OrderDetailSerializer(order).data
        })
