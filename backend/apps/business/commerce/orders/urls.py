"""
Order URL Configuration
=======================
"""

from django.urls import path
from . import views

app_name = 'orders'

urlpatterns = [
    path('', views.OrderListView.as_view(), name='order-list'),
    path('review/', views.OrderReviewView.as_view(), name='review-order'),
    path('checkout/', views.CheckoutView.as_view(), name='checkout'),
    path('<str:order_number>/', views.OrderDetailView.as_view(), name='order-detail'),
    path('<str:order_number>/cancel/', views.CancelOrderView.as_view(), name='cancel-order'),
    path('<str:order_number>/confirm-cod/', views.ConfirmCodPaymentView.as_view(), name='confirm-cod'),
    path('<str:order_number>/status/', views.UpdateOrderStatusView.as_view(), name='update-status'),
]
