"""
User Tests for the Clothing Store backend
=========================================
Unit and integration tests for authentication, profile and addresses.
"""

from django.test import TestCase
from django.contrib.auth import get_user_model
from rest_framework.test import APITestCase, APIClient
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken
from apps.base.core.locations.models import Province, Ward
from .models import UserAddress
import uuid

User = get_user_model()


class UserModelTests(TestCase):
    """Tests for the User model."""

    def test_create_user_with_email(self):
        user = User.objects.create_user(email='test@example.com', password='TestPass123!')

        self.assertEqual(user.email, 'test@example.com')
        self.assertTrue(user.check_password('TestPass123!'))
        self.assertFalse(user.is_staff)
        self.assertEqual(user.role, User.Role.CUSTOMER)
        self.assertIsInstance(user.id, uuid.UUID)

    def test_create_user_without_email_raises_error(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email='', password='test123')

    def test_create_superuser(self):
        user = User.objects.create_superuser(email='admin@example.com', password='AdminPass123!')

        self.assertTrue(user.is_staff)
        self.assertTrue(user.is_superuser)
        self.assertEqual(user.role, User.Role.ADMIN)
        self.assertTrue(user.is_admin)

    def test_email_is_normalized(self):
        user = User.objects.create_user(email='test@EXAMPLE.COM', password='test123')
        self.assertEqual(user.email, 'test@example.com')

    def test_full_name_falls_back_to_email(self):
        user = User.objects.create_user(email='name@example.com', password='test123')
        self.assertEqual(user.full_name, 'name@example.com')

        user.first_name, user.last_name = 'Nguyen', 'An'
        self.assertEqual(user.full_name, 'Nguyen An')


class UserAddressModelTests(TestCase):
    """Tests for default handling and formatting of addresses."""

    def setUp(self):
        self.user = User.objects.create_user(email='addr@example.com', password='test123')
        self.province = Province.objects.create(code='01', name='Hà Nội')
        self.ward = Ward.objects.create(code='00004', province=self.province, name='Phường Ba Đình')

    def _address(self, **kwargs):
        data = {
            'user': self.user,
            'recipient_name': 'Nguyen An',
            'phone_number': '0912345678',
            'street_address': '12 Phan Đình Phùng',
            'ward': self.ward,
            'province': self.province,
        }
        data.update(kwargs)
        return UserAddress.objects.create(**data)

    def test_full_address(self):
        address = self._address()
        self.assertEqual(address.full_address, '12 Phan Đình Phùng, Phường Ba Đình, Hà Nội')

    def test_only_one_default_address(self):
        first = self._address(is_default=True)
        second = self._address(is_default=True)

        first.refresh_from_db()
        self.assertFalse(first.is_default)
        self.assertTrue(second.is_default)


class UserRegistrationTests(APITestCase):
    """Tests for user registration endpoint."""

    def setUp(self):
        self.client = APIClient()
        self.register_url = '/api/v1/auth/register/'
        self.valid_payload = {
            'email': 'newuser@example.com',
            'password': 'SecurePass123!',
            'password_confirm': 'SecurePass123!',
            'first_name': 'Test',
            'last_name': 'User'
        }

    def test_register_user_success(self):
        response = self.client.post(self.register_url, self.valid_payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        self.assertIn('access', response.data['data']['tokens'])
        self.assertIn('refresh', response.data['data']['tokens'])
        self.assertTrue(User.objects.filter(email='newuser@example.com').exists())

    def test_register_duplicate_email(self):
        User.objects.create_user(email='existing@example.com', password='test123')
        payload = dict(self.valid_payload, email='existing@example.com')

        response = self.client.post(self.register_url, payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])

    def test_register_password_mismatch(self):
        payload = dict(self.valid_payload, password_confirm='DifferentPass123!')
        response = self.client.post(self.register_url, payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_register_weak_password(self):
        payload = dict(self.valid_payload, password='123', password_confirm='123')
        response = self.client.post(self.register_url, payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class UserLoginTests(APITestCase):
    """Tests for user login endpoint."""

    def setUp(self):
        self.client = APIClient()
        self.login_url = '/api/v1/auth/login/'
        self.user = User.objects.create_user(email='login@example.com', password='SecurePass123!')

    def test_login_success(self):
        response = self.client.post(
            self.login_url,
            {'email': 'login@example.com', 'password': 'SecurePass123!'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertIn('access', response.data['data'])
        self.assertEqual(response.data['data']['user']['email'], 'login@example.com')

    def test_login_wrong_password(self):
        response = self.client.post(
            self.login_url,
            {'email': 'login@example.com', 'password': 'WrongPass123!'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_inactive_user(self):
        self.user.is_active = False
        self.user.save()

        response = self.client.post(
            self.login_url,
            {'email': 'login@example.com', 'password': 'SecurePass123!'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class UserLogoutTests(APITestCase):
    """Tests for logout and refresh token blacklisting."""

    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email='logout@example.com', password='SecurePass123!')
        self.refresh = RefreshToken.for_user(self.user)
        self.access = self.refresh.access_token

    def test_logout_success(self):
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {str(self.access)}')
        response = self.client.post('/api/v1/auth/logout/', {'refresh': str(self.refresh)}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])

    def test_logout_without_refresh_token(self):
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {str(self.access)}')
        response = self.client.post('/api/v1/auth/logout/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_logout_unauthenticated(self):
        response = self.client.post('/api/v1/auth/logout/', {'refresh': str(self.refresh)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_blacklisted_token_rejected(self):
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {str(self.access)}')
        self.client.post('/api/v1/auth/logout/', {'refresh': str(self.refresh)}, format='json')

        response = self.client.post('/api/v1/auth/token/refresh/', {'refresh': str(self.refresh)}, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class UserProfileTests(APITestCase):
    """Tests for user profile endpoint."""

    def setUp(self):
        self.client = APIClient()
        self.profile_url = '/api/v1/auth/profile/'
        self.user = User.objects.create_user(
            email='profile@example.com',
            password='SecurePass123!',
            first_name='Original',
            last_name='Name'
        )
        self.client.force_authenticate(user=self.user)

    def test_get_profile(self):
        response = self.client.get(self.profile_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['email'], 'profile@example.com')

    def test_update_profile(self):
        response = self.client.patch(self.profile_url, {'first_name': 'Updated'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.first_name, 'Updated')

    def test_profile_unauthenticated(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(self.profile_url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class UserAddressApiTests(APITestCase):
    """Tests for user address management."""

    def setUp(self):
        self.client = APIClient()
        self.addresses_url = '/api/v1/auth/addresses/'
        self.user = User.objects.create_user(email='address@example.com', password='SecurePass123!')
        self.client.force_authenticate(user=self.user)
        self.province = Province.objects.create(code='79', name='TP. Hồ Chí Minh')
        self.ward = Ward.objects.create(code='26734', province=self.province, name='Phường Bến Nghé')
        self.other_province = Province.objects.create(code='48', name='Đà Nẵng')

    def _payload(self, **kwargs):
        payload = {
            'recipient_name': 'Tran Binh',
            'phone_number': '0912345678',
            'street_address': '1 Lê Duẩn',
            'province': '79',
            'ward': '26734',
        }
        payload.update(kwargs)
        return payload

    def test_create_address(self):
        response = self.client.post(self.addresses_url, self._payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['data']['is_default'])
        self.assertEqual(response.data['data']['province_name'], 'TP. Hồ Chí Minh')

    def test_ward_must_belong_to_province(self):
        response = self.client.post(self.addresses_url, self._payload(province='48'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_only_own_addresses(self):
        other = User.objects.create_user(email='other@example.com', password='x')
        UserAddress.objects.create(
            user=other, recipient_name='Other', phone_number='0900000000',
            street_address='2 Nguyễn Huệ', province=self.province
        )
        UserAddress.objects.create(
            user=self.user, recipient_name='Mine', phone_number='0900000001',
            street_address='3 Nguyễn Huệ', province=self.province
        )

        response = self.client.get(self.addresses_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['data']), 1)
        self.assertEqual(response.data['data'][0]['recipient_name'], 'Mine')

    def test_delete_address_is_soft(self):
        address = UserAddress.objects.create(
            user=self.user, recipient_name='Mine', phone_number='0900000001',
            street_address='3 Nguyễn Huệ', province=self.province
        )

        response = self.client.delete(f'{self.addresses_url}{address.pk}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        address.refresh_from_db()
        self.assertFalse(address.is_active)
