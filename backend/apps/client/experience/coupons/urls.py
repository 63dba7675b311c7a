"""
Coupons URLs for the Clothing Store backend
===========================================
"""

from django.urls import path
from . import views

app_name = 'coupons'

urlpatterns = [
    # Eligibility and redemption
    path('validate/', views.ValidateCouponView.as_view(), name='validate-coupon'),
    path('apply/', views.ApplyCouponView.as_view(), name='apply-coupon'),
    path('check/<str:code>/', views.CheckCouponView.as_view(), name='check-coupon'),

    # Public listings
    path('active/', views.ActiveCouponsView.as_view(), name='active-coupons'),
    path('featured/', views.FeaturedCouponsView.as_view(), name='featured-coupons'),
    path('landing/', views.LandingPageCouponsView.as_view(), name='landing-coupons'),
    path('category/<int:category_id>/', views.CategoryCouponsView.as_view(), name='category-coupons'),
    path('product/<uuid:product_id>/', views.ProductCouponsView.as_view(), name='product-coupons'),
    path('code/<str:code>/', views.CouponByCodeView.as_view(), name='coupon-by-code'),

    # User's coupon history
    path('history/me/', views.MyCouponHistoryView.as_view(), name='my-coupon-history'),

    # Staff management
    path('admin/', views.CouponAdminListView.as_view(), name='admin-coupon-list'),
    path('admin/<uuid:pk>/', views.CouponAdminDetailView.as_view(), name='admin-coupon-detail'),
]
