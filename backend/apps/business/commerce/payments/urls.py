"""
Payment URL Configuration
=========================
"""

from django.urls import path
from . import views

app_name = 'payments'

urlpatterns = [
    path('sepay/create-qr/', views.CreateSepayQRView.as_view(), name='sepay-create-qr'),
    path('sepay/<str:order_number>/status/', views.SepayPaymentStatusView.as_view(), name='sepay-status'),
    path('sepay/<str:order_number>/cancel/', views.CancelSepayPaymentView.as_view(), name='sepay-cancel'),
    path('webhook/sepay/', views.SepayWebhookView.as_view(), name='sepay-webhook'),
]
