"""
Coupons Views for the Clothing Store backend
============================================
"""

import logging
from rest_framework import generics, status, permissions
from rest_framework.views import APIView
from rest_framework.response import Response
from django.db.models import Q
from django.shortcuts import get_object_or_404
from drf_spectacular.utils import extend_schema, OpenApiResponse

from apps.business.commerce.products.models import Product
from .builders import CouponBuilder
from .models import Coupon, CouponUsage
from .serializers import (
    CouponSerializer,
    CouponAdminSerializer,
    CouponCreateSerializer,
    ValidateCouponSerializer,
    ApplyCouponSerializer,
    CouponUsageSerializer,
)
from .services import CouponService

logger = logging.getLogger(__name__)


def _validation_payload(result):
    """Make a validate_coupon result JSON-friendly."""
    if not result['eligible']:
        payload = {
            'eligible': False,
            'reason': result['reason'],
            'message': result['message'],
        }
        if 'details' in result:
            payload['details'] = result['details']
        return payload

    return {
        'eligible': True,
        'coupon': CouponSerializer(result['coupon']).data,
        'coupon_id': str(result['coupon_id']),
        'code': result['code'],
        'discount': str(result['discount']),
        'final_amount': str(result['final_amount']),
        'remaining_uses': result['remaining_uses'],
    }


class CouponListView(generics.ListAPIView):
    """Base class for public coupon listings."""

    serializer_class = CouponSerializer
    permission_classes = [permissions.AllowAny]

    def list(self, request, *args, **kwargs):
        page = self.paginate_queryset(self.get_queryset())
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response({
            'success': True,
            'data': self.get_serializer(self.get_queryset(), many=True).data
        })


@extend_schema(tags=['Coupons'])
class ActiveCouponsView(CouponListView):
    """Public, active coupons that still have capacity."""

    def get_queryset(self):
        queryset = CouponService.active_coupons()
        if self.request.query_params.get('expiring') == 'true':
            queryset = CouponService.expiring_soon()
        return queryset


@extend_schema(tags=['Coupons'])
class FeaturedCouponsView(CouponListView):

    def get_queryset(self):
        return CouponService.featured_coupons()


@extend_schema(tags=['Coupons'])
class LandingPageCouponsView(CouponListView):

    def get_queryset(self):
        return CouponService.landing_page_coupons()


@extend_schema(tags=['Coupons'])
class CategoryCouponsView(CouponListView):
    """Coupons usable on a category."""

    def get_queryset(self):
        return CouponService.coupons_for_category(self.kwargs['category_id'])


@extend_schema(tags=['Coupons'])
class ProductCouponsView(CouponListView):
    """Coupons usable on a product, directly or through its category."""

    def get_queryset(self):
        product = get_object_or_404(Product, pk=self.kwargs['product_id'])
        return CouponService.coupons_for_product(product)


@extend_schema(tags=['Coupons'])
class CouponByCodeView(APIView):
    """
    Look up a coupon by code.
    Private coupons are only shown to the users they are meant for.
    """

    permission_classes = [permissions.AllowAny]

    def get(self, request, code):
        coupon = get_object_or_404(Coupon, code=Coupon.normalize_code(code), is_active=True)
        if coupon.type == Coupon.Type.PRIVATE:
            user = request.user
            allowed = user.is_authenticated and (
                not coupon.assigned_users.exists()
                or coupon.assigned_users.filter(pk=user.pk).exists()
            )
            if not allowed:
                return Response({
                    'success': False,
                    'error': {'code': 'not_found', 'message': 'Mã giảm giá không tồn tại', 'details': None}
                }, status=status.HTTP_404_NOT_FOUND)

        return Response({
            'success': True,
            'data': CouponSerializer(coupon).data
        })


@extend_schema(
    tags=['Coupons'],
    request=ValidateCouponSerializer,
    responses={200: OpenApiResponse(description='Eligibility result with reason code or discount')}
)
class ValidateCouponView(APIView):
    """
    Check a coupon against an order value and the cart's categories/products.

    Rejections are returned with ``eligible: false`` and a stable ``reason`` code.
    """

    permission_classes = [permissions.AllowAny]
    throttle_scope = 'coupon_validate'

    def post(self, request):
        serializer = ValidateCouponSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = CouponService.validate_coupon(
            code=data['code'],
            user=request.user,
            order_value=data['order_value'],
            category_ids=data['category_ids'],
            product_ids=data['product_ids'],
        )
        return Response({
            'success': True,
            'data': _validation_payload(result)
        })


@extend_schema(
    tags=['Coupons'],
    request=ApplyCouponSerializer,
    responses={201: OpenApiResponse(description='Redemption recorded')}
)
class ApplyCouponView(APIView):
    """Record a coupon redemption for one of the user's orders."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = ApplyCouponSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        usage = CouponService.apply_coupon(
            user=request.user,
            coupon_id=serializer.validated_data['coupon_id'],
            order_id=serializer.validated_data['order_id'],
            discount_amount=serializer.validated_data['discount_amount'],
        )
        return Response({
            'success': True,
            'message': 'Đã ghi nhận sử dụng mã giảm giá',
            'data': CouponUsageSerializer(usage).data
        }, status=status.HTTP_201_CREATED)


@extend_schema(tags=['Coupons'])
class CheckCouponView(APIView):
    """Availability probe without cart context."""

    permission_classes = [permissions.AllowAny]

    def get(self, request, code):
        data = CouponService.check_availability(code, request.user)
        data['discount_value'] = str(data['discount_value'])
        data['min_order_value'] = str(data['min_order_value'])
        return Response({
            'success': True,
            'data': data
        })


@extend_schema(tags=['Coupons'])
class MyCouponHistoryView(generics.ListAPIView):
    """List current user's coupon usage history."""

    serializer_class = CouponUsageSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return CouponUsage.objects.none()
        return CouponService.user_history(self.request.user)


# ===== Admin =====

@extend_schema(tags=['Coupons'])
class CouponAdminListView(generics.ListCreateAPIView):
    """Staff coupon list and creation."""

    serializer_class = CouponAdminSerializer
    permission_classes = [permissions.IsAdminUser]

    def get_queryset(self):
        queryset = Coupon.objects.all().prefetch_related(
            'applicable_categories', 'applicable_products', 'assigned_users'
        )
        search = self.request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(Q(code__icontains=search) | Q(name__icontains=search))
        is_active = self.request.query_params.get('is_active')
        if is_active in ('true', 'false'):
            queryset = queryset.filter(is_active=is_active == 'true')
        return queryset

    @extend_schema(request=CouponCreateSerializer, responses={201: CouponAdminSerializer})
    def post(self, request, *args, **kwargs):
        serializer = CouponCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        builder = (
            CouponBuilder(created_by=request.user)
            .with_code(data['code'])
            .with_name(data['name'])
            .with_description(data['description'])
            .with_type(data['type'])
            .with_visibility(data['visibility'])
            .with_min_order_value(data['min_order_value'])
            .with_usage_limit_per_user(data['usage_limit_per_user'])
            .with_date_range(data['start_date'], data['end_date'])
            .with_is_active(data['is_active'])
            .for_categories(data.get('applicable_categories', []))
            .for_products(data.get('applicable_products', []))
            .with_assigned_users(data.get('assigned_users', []))
        )
        if data['discount_type'] == Coupon.DiscountType.PERCENTAGE:
            builder.as_percentage_discount(data['discount_value'], data.get('max_discount'))
        else:
            builder.as_fixed_discount(data['discount_value'])
        if data.get('usage_limit'):
            builder.with_usage_limit(data['usage_limit'])

        presets = data['presets']
        if 'flash_sale' in presets:
            builder.as_flash_sale(data['usage_limit'])
        if 'new_customer' in presets:
            builder.as_new_customer_coupon()
        if 'public_featured' in presets:
            builder.as_public_featured()
        if 'private_for_users' in presets:
            builder.as_private_for_users(data.get('assigned_users', []))

        coupon = builder.build()
        return Response({
            'success': True,
            'message': 'Tạo mã giảm giá thành công',
            'data': CouponAdminSerializer(coupon).data
        }, status=status.HTTP_201_CREATED)


@extend_schema(tags=['Coupons'])
class CouponAdminDetailView(generics.RetrieveUpdateDestroyAPIView):
    """Staff coupon detail, update and delete."""

    serializer_class = CouponAdminSerializer
    permission_classes = [permissions.IsAdminUser]
    queryset = Coupon.objects.all()

    def retrieve(self, request, *args, **kwargs):
        return Response({
            'success': True,
            'data': self.get_serializer(self.get_object()).data
        })

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        coupon = serializer.save()
        logger.info(f"Coupon {coupon.code} updated by {request.user.pk}")
        return Response({
            'success': True,
            'data': self.get_serializer(coupon).data
        })

    def destroy(self, request, *args, **kwargs):
        deleted = CouponService.delete_coupon(self.get_object())
        return Response({
            'success': True,
            'message': 'Đã xóa mã giảm giá' if deleted else 'Mã giảm giá đã có lượt sử dụng nên được vô hiệu hóa',
            'data': {'deleted': deleted}
        })
