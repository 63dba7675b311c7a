"""
Location Tests for the Clothing Store backend
=============================================
"""

from rest_framework.test import APITestCase
from rest_framework import status
from .models import Province, Ward


class LocationApiTests(APITestCase):
    """Province and ward listing is public."""

    def setUp(self):
        self.hanoi = Province.objects.create(code='01', name='Hà Nội')
        self.hcm = Province.objects.create(code='79', name='TP. Hồ Chí Minh')
        Province.objects.create(code='99', name='Tỉnh cũ', is_active=False)
        Ward.objects.create(code='00004', province=self.hanoi, name='Phường Ba Đình')
        Ward.objects.create(code='00008', province=self.hanoi, name='Phường Ngọc Hà')
        Ward.objects.create(code='26734', province=self.hcm, name='Phường Bến Nghé')

    def test_list_active_provinces(self):
        response = self.client.get('/api/v1/locations/provinces/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        codes = [p['code'] for p in response.data]
        self.assertEqual(sorted(codes), ['01', '79'])

    def test_search_provinces(self):
        response = self.client.get('/api/v1/locations/provinces/', {'q': 'Hà'})
        self.assertEqual([p['code'] for p in response.data], ['01'])

    def test_list_wards_of_province(self):
        response = self.client.get('/api/v1/locations/provinces/01/wards/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_unknown_province_returns_404(self):
        response = self.client.get('/api/v1/locations/provinces/00/wards/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
