"""
User Serializers for the Clothing Store backend
===============================================
"""

from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.utils.translation import gettext_lazy as _
from drf_spectacular.utils import extend_schema_field
from apps.base.core.locations.models import Province, Ward
from .models import UserAddress

User = get_user_model()


class UserRegistrationSerializer(serializers.ModelSerializer):
    """Serializer for user registration."""

    password = serializers.CharField(
        write_only=True,
        required=True,
        validators=[validate_password],
        style={'input_type': 'password'}
    )
    password_confirm = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )

    class Meta:
        model = User
        fields = [
            'email', 'password', 'password_confirm',
            'first_name', 'last_name', 'phone_number'
        ]

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({
                'password_confirm': _('Passwords do not match.')
            })
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        return User.objects.create_user(**validated_data)


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """JWT token serializer that also returns the user summary."""

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['role'] = user.role
        return token

    def validate(self, attrs):
        data = super().validate(attrs)
        data['user'] = {
            'id': str(self.user.id),
            'email': self.user.email,
            'full_name': self.user.full_name,
            'role': self.user.role,
        }
        return data


class UserSerializer(serializers.ModelSerializer):
    """User detail serializer."""

    full_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'full_name',
            'phone_number', 'role', 'created_at'
        ]
        read_only_fields = ['id', 'email', 'role', 'created_at']

    @extend_schema_field(str)
    def get_full_name(self, obj) -> str:
        return obj.full_name or ''


class UserProfileUpdateSerializer(serializers.ModelSerializer):
    """Serializer for updating user profile."""

    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'phone_number']


class UserAddressSerializer(serializers.ModelSerializer):
    """User address serializer."""

    province = serializers.SlugRelatedField(
        slug_field='code', queryset=Province.objects.filter(is_active=True)
    )
    ward = serializers.SlugRelatedField(
        slug_field='code', queryset=Ward.objects.filter(is_active=True),
        required=False, allow_null=True
    )
    province_name = serializers.CharField(source='province.name', read_only=True)
    ward_name = serializers.CharField(read_only=True)
    full_address = serializers.SerializerMethodField()

    class Meta:
        model = UserAddress
        fields = [
            'id', 'recipient_name', 'phone_number', 'street_address',
            'ward', 'ward_name', 'province', 'province_name',
            'is_default', 'full_address', 'created_at'
        ]
        read_only_fields = ['id', 'created_at']

    def validate(self, attrs):
        province = attrs.get('province') or getattr(self.instance, 'province', None)
        ward = attrs.get('ward')
        if ward is not None and province is not None and ward.province_id != province.pk:
            raise serializers.ValidationError({
                'ward': _('Phường/xã không thuộc tỉnh/thành đã chọn.')
            })
        return attrs

    @extend_schema_field(str)
    def get_full_address(self, obj) -> str:
        return obj.full_address or ''
