"""
Cart Views for the Clothing Store backend
=========================================
"""

from rest_framework import status, permissions
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiResponse

from apps.base.core.system.exceptions import NotFoundError, ErrorMessages
from apps.business.commerce.products.models import Product
from .serializers import (
    CartSerializer, CartItemSerializer,
    AddToCartSerializer, UpdateCartItemSerializer, AttachCouponSerializer
)
from .services import CartService


def cart_payload(service, user):
    return {
        **CartSerializer(service.cart).data,
        'summary': service.get_summary(user),
    }


@extend_schema(tags=['Cart'], responses={200: CartSerializer})
class CartView(APIView):
    """Get current user's cart with a discount preview."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        service = CartService.for_user(request.user)
        return Response({
            'success': True,
            'data': cart_payload(service, request.user)
        })


@extend_schema(tags=['Cart'], request=AddToCartSerializer, responses={201: CartItemSerializer})
class AddToCartView(APIView):
    """Add item to cart."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = AddToCartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        product = Product.objects.filter(id=serializer.validated_data['product_id']).first()
        if product is None:
            raise NotFoundError(ErrorMessages.PRODUCT_NOT_FOUND)

        service = CartService.for_user(request.user)
        item = service.add_item(product, serializer.validated_data['quantity'])

        return Response({
            'success': True,
            'message': 'Đã thêm vào giỏ hàng',
            'data': {
                'item': CartItemSerializer(item).data,
                'cart': cart_payload(service, request.user),
            }
        }, status=status.HTTP_201_CREATED)


@extend_schema(tags=['Cart'])
class CartItemView(APIView):
    """Update or remove a cart line."""

    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(request=UpdateCartItemSerializer)
    def patch(self, request, pk):
        serializer = UpdateCartItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        service = CartService.for_user(request.user)
        service.update_item_quantity(pk, serializer.validated_data['quantity'])

        return Response({
            'success': True,
            'data': cart_payload(service, request.user)
        })

    def delete(self, request, pk):
        service = CartService.for_user(request.user)
        if not service.remove_item(pk):
            raise NotFoundError(ErrorMessages.CART_ITEM_NOT_FOUND)

        return Response({
            'success': True,
            'data': cart_payload(service, request.user)
        })


@extend_schema(
    tags=['Cart'],
    request=AttachCouponSerializer,
    responses={200: OpenApiResponse(description='Coupon attached; rejections carry the reason code')}
)
class CartCouponView(APIView):
    """Attach or detach the cart's coupon."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = AttachCouponSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        service = CartService.for_user(request.user)
        result = service.attach_coupon(serializer.validated_data['coupon_code'], request.user)

        return Response({
            'success': True,
            'message': 'Áp dụng mã giảm giá thành công',
            'data': {
                **result,
                'cart': cart_payload(service, request.user),
            }
        })

    def delete(self, request):
        service = CartService.for_user(request.user)
        service.detach_coupon()

        return Response({
            'success': True,
            'data': cart_payload(service, request.user)
        })
