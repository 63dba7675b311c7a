"""
URL Configuration for the Clothing Store backend
================================================
API routing with versioning and documentation.
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularSwaggerView,
    SpectacularRedocView
)

# API v1 URLs
api_v1_patterns = [
    # Accounts & addresses
    path('auth/', include('apps.base.core.users.urls')),
    path('locations/', include('apps.base.core.locations.urls')),

    # Commerce
    path('products/', include('apps.business.commerce.products.urls')),
    path('cart/', include('apps.business.commerce.cart.urls')),
    path('orders/', include('apps.business.commerce.orders.urls')),
    path('payments/', include('apps.business.commerce.payments.urls')),

    # Client Experience
    path('coupons/', include('apps.client.experience.coupons.urls')),
]

urlpatterns = [
    path('admin/', admin.site.urls),

    path('api/v1/', include((api_v1_patterns, 'api-v1'))),

    # API Documentation
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]

admin.site.site_header = 'Clothing Store Admin'
admin.site.site_title = 'Clothing Store Admin Portal'
admin.site.index_title = 'Store Management'
