"""
Cart URL Configuration
======================
"""

from django.urls import path
from . import views

app_name = 'cart'

urlpatterns = [
    path('', views.CartView.as_view(), name='cart'),
    path('items/', views.AddToCartView.as_view(), name='add-to-cart'),
    path('items/<int:pk>/', views.CartItemView.as_view(), name='cart-item'),
    path('coupon/', views.CartCouponView.as_view(), name='cart-coupon'),
]
