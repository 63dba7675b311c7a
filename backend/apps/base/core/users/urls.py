"""
User URL Configuration
======================
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView
from . import views

app_name = 'users'

urlpatterns = [
    # Authentication
    path('register/', views.RegisterView.as_view(), name='register'),
    path('login/', views.LoginView.as_view(), name='login'),
    path('logout/', views.LogoutView.as_view(), name='logout'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),

    # Profile
    path('profile/', views.UserProfileView.as_view(), name='profile'),

    # Addresses
    path('addresses/', views.UserAddressListView.as_view(), name='address-list'),
    path('addresses/<int:pk>/', views.UserAddressDetailView.as_view(), name='address-detail'),
]
