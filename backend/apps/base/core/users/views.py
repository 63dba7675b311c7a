"""
User Views for the Clothing Store backend
=========================================
Authentication, profile and address endpoints.
"""

import logging
from rest_framework import generics, status, permissions
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.exceptions import TokenError, InvalidToken
from django.contrib.auth import get_user_model
from django.db import transaction
from drf_spectacular.utils import extend_schema, OpenApiResponse, inline_serializer
from rest_framework import serializers as drf_serializers
from .serializers import (
    UserRegistrationSerializer,
    CustomTokenObtainPairSerializer,
    UserSerializer,
    UserProfileUpdateSerializer,
    UserAddressSerializer,
)
from .models import UserAddress

logger = logging.getLogger(__name__)

User = get_user_model()


@extend_schema(tags=['Auth'])
class RegisterView(generics.CreateAPIView):
    """User registration endpoint."""

    queryset = User.objects.all()
    permission_classes = [permissions.AllowAny]
    serializer_class = UserRegistrationSerializer
    throttle_scope = 'register'

    @transaction.atomic
    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        refresh = RefreshToken.for_user(user)

        return Response({
            'success': True,
            'message': 'Đăng ký thành công',
            'data': {
                'user': UserSerializer(user).data,
                'tokens': {
                    'refresh': str(refresh),
                    'access': str(refresh.access_token),
                }
            }
        }, status=status.HTTP_201_CREATED)


@extend_schema(tags=['Auth'])
class LoginView(TokenObtainPairView):
    """User login endpoint."""

    serializer_class = CustomTokenObtainPairSerializer
    throttle_scope = 'login'

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        if response.status_code == 200:
            response.data = {
                'success': True,
                'message': 'Đăng nhập thành công',
                'data': response.data
            }
        return response


@extend_schema(
    tags=['Auth'],
    request=inline_serializer(
        name='LogoutRequest',
        fields={'refresh': drf_serializers.CharField()}
    ),
    responses={200: OpenApiResponse(description='Logout successful')}
)
class LogoutView(APIView):
    """User logout endpoint - blacklists the refresh token."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        refresh_token = request.data.get('refresh')

        if not refresh_token:
            return Response({
                'success': False,
                'error': {'code': 'validation_error', 'message': 'Refresh token is required', 'details': None}
            }, status=status.HTTP_400_BAD_REQUEST)

        try:
            RefreshToken(refresh_token).blacklist()
        except (TokenError, InvalidToken):
            return Response({
                'success': False,
                'error': {'code': 'token_not_valid', 'message': 'Invalid or expired token', 'details': None}
            }, status=status.HTTP_400_BAD_REQUEST)

        logger.info(f"User {request.user.id} logged out")
        return Response({
            'success': True,
            'message': 'Đăng xuất thành công'
        })


@extend_schema(tags=['Auth'])
class UserProfileView(generics.RetrieveUpdateAPIView):
    """User profile endpoint."""

    permission_classes = [permissions.IsAuthenticated]

    def get_serializer_class(self):
        if self.request.method == 'GET':
            return UserSerializer
        return UserProfileUpdateSerializer

    def get_object(self):
        return self.request.user

    def retrieve(self, request, *args, **kwargs):
        serializer = self.get_serializer(request.user)
        return Response({
            'success': True,
            'data': serializer.data
        })

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(
            request.user, data=request.data, partial=partial
        )
        serializer.is_valid(raise_exception=True)
        serializer.save()

        return Response({
            'success': True,
            'message': 'Cập nhật thông tin thành công',
            'data': UserSerializer(request.user).data
        })


@extend_schema(tags=['Auth'])
class UserAddressListView(generics.ListCreateAPIView):
    """User addresses endpoint."""

    serializer_class = UserAddressSerializer
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = None

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return UserAddress.objects.none()
        return UserAddress.objects.filter(
            user=self.request.user,
            is_active=True
        ).select_related('province', 'ward')

    def perform_create(self, serializer):
        user = self.request.user
        # First address becomes the default one
        is_first = not UserAddress.objects.filter(user=user, is_active=True).exists()
        if is_first:
            serializer.save(user=user, is_default=True)
        else:
            serializer.save(user=user)

    def list(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_queryset(), many=True)
        return Response({
            'success': True,
            'data': serializer.data
        })

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)
        return Response({
            'success': True,
            'data': serializer.data
        }, status=status.HTTP_201_CREATED)


@extend_schema(tags=['Auth'])
class UserAddressDetailView(generics.RetrieveUpdateDestroyAPIView):
    """User address detail endpoint."""

    serializer_class = UserAddressSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return UserAddress.objects.none()
        return UserAddress.objects.filter(user=self.request.user, is_active=True)

    def retrieve(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_object())
        return Response({
            'success': True,
            'data': serializer.data
        })

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response({
            'success': True,
            'data': serializer.data
        })

    def destroy(self, request, *args, **kwargs):
        # Soft delete keeps order snapshots traceable
        instance = self.get_object()
        instance.is_active = False
        instance.is_default = False
        instance.save(update_fields=['is_active', 'is_default', 'updated_at'])
        return Response({
            'success': True,
            'message': 'Đã xóa địa chỉ'
        }, status=status.HTTP_200_OK)
