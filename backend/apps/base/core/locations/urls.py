"""
Location URLs for the Clothing Store backend
============================================
"""

from django.urls import path
from . import views

app_name = 'locations'

urlpatterns = [
    path('provinces/', views.ProvinceListView.as_view(), name='province-list'),
    path('provinces/<str:code>/wards/', views.WardListView.as_view(), name='ward-list'),
]
