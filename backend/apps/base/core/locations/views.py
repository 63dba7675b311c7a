"""
Location Views for the Clothing Store backend
=============================================
"""

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from django.shortcuts import get_object_or_404
from drf_spectacular.utils import extend_schema
from .models import Province, Ward
from .serializers import ProvinceSerializer, WardSerializer


@extend_schema(tags=['Locations'])
class ProvinceListView(APIView):
    """List all active provinces."""
    permission_classes = [AllowAny]

    def get(self, request):
        provinces = Province.objects.filter(is_active=True).order_by('name')
        search = request.query_params.get('q', '').strip()
        if search:
            provinces = provinces.filter(name__icontains=search)
        serializer = ProvinceSerializer(provinces, many=True)
        return Response(serializer.data)


@extend_schema(tags=['Locations'])
class WardListView(APIView):
    """List wards for a province."""
    permission_classes = [AllowAny]

    def get(self, request, code):
        province = get_object_or_404(Province, code=code, is_active=True)
        wards = Ward.objects.filter(province=province, is_active=True).order_by('name')
        serializer = WardSerializer(wards, many=True)
        return Response(serializer.data)
