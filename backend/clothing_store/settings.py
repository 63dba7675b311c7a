"""
Django settings for the Clothing Store backend.
===============================================
Storefront API: catalogue, cart, coupons, checkout and Sepay QR payments.
"""

from pathlib import Path
from datetime import timedelta
import os
import environ
from celery.schedules import crontab

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, ['localhost', '127.0.0.1']),
    SECRET_KEY=(str, 'django-insecure-change-me'),
    DATABASE_URL=(str, 'sqlite:///db.sqlite3'),
    REDIS_URL=(str, 'redis://localhost:6379/0'),
    CELERY_BROKER_URL=(str, 'redis://localhost:6379/1'),
)

BASE_DIR = Path(__file__).resolve().parent.parent
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))

# =============================================================================
# CORE SETTINGS
# =============================================================================
SECRET_KEY = env('SECRET_KEY')
DEBUG = env('DEBUG')
ALLOWED_HOSTS = env.list('ALLOWED_HOSTS')

FRONTEND_URL = env('FRONTEND_URL', default='http://localhost:5173')

# =============================================================================
# APPLICATION DEFINITION
# =============================================================================
DJANGO_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
]

THIRD_PARTY_APPS = [
    # REST Framework & Authentication
    'rest_framework',
    'rest_framework_simplejwt',
    'rest_framework_simplejwt.token_blacklist',
    'corsheaders',
    'django_filters',

    # Task Queue & Caching
    'django_celery_beat',
    'django_celery_results',

    # Documentation
    'drf_spectacular',
    'drf_spectacular_sidecar',

    # Security
    'axes',
]

LOCAL_APPS = [
    # -------------------------------------------------------------------------
    # 1. BASE PILLAR - Core Infrastructure
    # -------------------------------------------------------------------------
    'apps.base.core.system.apps.SystemConfig',
    'apps.base.core.users.apps.UsersConfig',
    'apps.base.core.locations.apps.LocationsConfig',

    # -------------------------------------------------------------------------
    # 2. BUSINESS PILLAR - Commerce & Partners
    # -------------------------------------------------------------------------
    'apps.business.commerce.products.apps.ProductsConfig',
    'apps.business.commerce.cart.apps.CartConfig',
    'apps.business.commerce.orders.apps.OrdersConfig',
    'apps.business.commerce.payments.apps.PaymentsConfig',
    'apps.business.partners.shipping.apps.ShippingConfig',

    # -------------------------------------------------------------------------
    # 3. CLIENT PILLAR - Customer Experience & Content
    # -------------------------------------------------------------------------
    'apps.client.experience.coupons.apps.CouponsConfig',
    'apps.client.content.cms.apps.CmsConfig',
]

INSTALLED_APPS = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

# =============================================================================
# MIDDLEWARE CONFIGURATION
# =============================================================================
MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.locale.LocaleMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'axes.middleware.AxesMiddleware',
]

ROOT_URLCONF = 'clothing_store.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'clothing_store.wsgi.application'

# =============================================================================
# DATABASE CONFIGURATION
# =============================================================================
DATABASES = {
    'default': env.db(),
}

if not DEBUG:
    DATABASES['default']['CONN_MAX_AGE'] = 60
    DATABASES['default']['CONN_HEALTH_CHECKS'] = True

# =============================================================================
# CACHING CONFIGURATION
# =============================================================================
REDIS_URL = env('REDIS_URL')


def is_redis_available():
    """Check if Redis server is running."""
    try:
        import redis
        r = redis.from_url(REDIS_URL, socket_timeout=1)
        r.ping()
        return True
    except Exception:
        return False


if is_redis_available():
    CACHES = {
        'default': {
            'BACKEND': 'django_redis.cache.RedisCache',
            'LOCATION': REDIS_URL,
            'OPTIONS': {
                'CLIENT_CLASS': 'django_redis.client.DefaultClient',
                'IGNORE_EXCEPTIONS': True,
                'SOCKET_CONNECT_TIMEOUT': 5,
                'SOCKET_TIMEOUT': 5,
            },
            'KEY_PREFIX': 'clothing_store',
            'TIMEOUT': 300,
        }
    }
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'clothing-store-cache',
        }
    }

# =============================================================================
# AUTHENTICATION CONFIGURATION
# =============================================================================
AUTH_USER_MODEL = 'users.User'

AUTHENTICATION_BACKENDS = [
    'axes.backends.AxesStandaloneBackend',
    'django.contrib.auth.backends.ModelBackend',
]

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator', 'OPTIONS': {'min_length': 8}},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

# =============================================================================
# REST FRAMEWORK CONFIGURATION
# =============================================================================
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework_simplejwt.authentication.JWTAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_THROTTLE_CLASSES': [
        'rest_framework.throttling.AnonRateThrottle',
        'rest_framework.throttling.UserRateThrottle',
        'rest_framework.throttling.ScopedRateThrottle',
    ],
    'DEFAULT_THROTTLE_RATES': {
        'anon': '100/hour',
        'user': '1000/hour',
        'login': '5/minute',
        'register': '3/minute',
        'coupon_validate': '30/minute',
    },
    'DEFAULT_FILTER_BACKENDS': [
        'django_filters.rest_framework.DjangoFilterBackend',
        'rest_framework.filters.SearchFilter',
        'rest_framework.filters.OrderingFilter',
    ],
    'DEFAULT_PAGINATION_CLASS': 'rest_framework.pagination.PageNumberPagination',
    'PAGE_SIZE': 20,
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
        'rest_framework.parsers.FormParser',
    ],
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    'EXCEPTION_HANDLER': 'apps.base.core.system.exceptions.custom_exception_handler',
}

# =============================================================================
# JWT CONFIGURATION
# =============================================================================
SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=30),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=7),
    'ROTATE_REFRESH_TOKENS': True,
    'BLACKLIST_AFTER_ROTATION': True,
    'UPDATE_LAST_LOGIN': True,
    'ALGORITHM': 'HS256',
    'SIGNING_KEY': SECRET_KEY,
    'AUTH_HEADER_TYPES': ('Bearer',),
    'USER_ID_FIELD': 'id',
    'USER_ID_CLAIM': 'user_id',
}

# =============================================================================
# SPECTACULAR (API DOCUMENTATION) CONFIGURATION
# =============================================================================
SPECTACULAR_SETTINGS = {
    'TITLE': 'Clothing Store API',
    'DESCRIPTION': 'Storefront API: catalogue, cart, coupons, checkout and payments',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
    'SWAGGER_UI_DIST': 'SIDECAR',
    'SWAGGER_UI_FAVICON_HREF': 'SIDECAR',
    'REDOC_DIST': 'SIDECAR',
    'COMPONENT_SPLIT_REQUEST': True,
    'SCHEMA_PATH_PREFIX': r'/api/v[0-9]',
    'TAGS': [
        {'name': 'Auth', 'description': 'Authentication & Addresses'},
        {'name': 'Locations', 'description': 'Provinces & Wards'},
        {'name': 'Products', 'description': 'Product Catalogue'},
        {'name': 'Cart', 'description': 'Shopping Cart'},
        {'name': 'Coupons', 'description': 'Coupon Validation & Redemption'},
        {'name': 'Orders', 'description': 'Checkout & Orders'},
        {'name': 'Payments', 'description': 'Sepay QR Payments'},
    ],
    'ENUM_NAME_OVERRIDES': {
        'OrderStatusEnum': 'apps.business.commerce.orders.models.Order.Status',
        'PaymentStatusEnum': 'apps.business.commerce.payments.models.Payment.Status',
        'ProductStatusEnum': 'apps.business.commerce.products.models.Product.Status',
        'CouponTypeEnum': 'apps.client.experience.coupons.models.Coupon.Type',
    },
}

# =============================================================================
# INTERNATIONALIZATION
# =============================================================================
LANGUAGE_CODE = env('LANGUAGE_CODE', default='vi')
TIME_ZONE = env('TIME_ZONE', default='Asia/Ho_Chi_Minh')
USE_I18N = True
USE_TZ = True

# =============================================================================
# STATIC FILES
# =============================================================================
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'whitenoise.storage.CompressedManifestStaticFilesStorage',
    },
}

# =============================================================================
# CORS CONFIGURATION
# =============================================================================
if DEBUG:
    CORS_ALLOW_ALL_ORIGINS = True
else:
    CORS_ALLOWED_ORIGINS = env.list('CORS_ALLOWED_ORIGINS', default=[FRONTEND_URL])

CORS_ALLOW_CREDENTIALS = True

# =============================================================================
# SECURITY SETTINGS (Production)
# =============================================================================
if not DEBUG:
    SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_CONTENT_TYPE_NOSNIFF = True
    X_FRAME_OPTIONS = 'DENY'

# =============================================================================
# AXES CONFIGURATION (Brute Force Protection)
# =============================================================================
AXES_FAILURE_LIMIT = 5
AXES_COOLOFF_TIME = timedelta(minutes=30)
AXES_RESET_ON_SUCCESS = False
AXES_LOCKOUT_PARAMETERS = ['username', 'ip_address']
AXES_HANDLER = 'axes.handlers.cache.AxesCacheHandler'

# =============================================================================
# CELERY CONFIGURATION (Background Tasks)
# =============================================================================
CELERY_BROKER_URL = env('CELERY_BROKER_URL')
CELERY_RESULT_BACKEND = 'django-db'
CELERY_CACHE_BACKEND = 'django-cache'
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 30 * 60
CELERY_BEAT_SCHEDULER = 'django_celery_beat.schedulers:DatabaseScheduler'

CELERY_BEAT_SCHEDULE = {
    # Push categories and coupons to the CMS every 2 hours
    'cms-sync-backend-data': {
        'task': 'cms.sync_backend_data',
        'schedule': crontab(minute=0, hour='*/2'),
        'options': {'queue': 'maintenance'},
    },
    # Expire QR payments whose window has elapsed
    'expire-stale-payments': {
        'task': 'payments.expire_stale_payments',
        'schedule': crontab(minute='*/5'),
        'options': {'queue': 'maintenance'},
    },
}

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================
LOG_DIR = BASE_DIR / 'logs'
LOG_DIR.mkdir(exist_ok=True)

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
            'style': '{',
        },
    },
    'filters': {
        'require_debug_true': {
            '()': 'django.utils.log.RequireDebugTrue',
        },
    },
    'handlers': {
        'console': {
            'level': 'INFO',
            'filters': ['require_debug_true'],
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
        'file': {
            'level': 'WARNING',
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': LOG_DIR / 'clothing_store.log',
            'maxBytes': 1024 * 1024 * 5,  # 5 MB
            'backupCount': 5,
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'django': {
            'handlers': ['console', 'file'],
            'level': 'INFO',
            'propagate': False,
        },
        'django.request': {
            'handlers': ['file'],
            'level': 'ERROR',
            'propagate': False,
        },
        'apps': {
            'handlers': ['console', 'file'],
            'level': 'DEBUG' if DEBUG else 'INFO',
            'propagate': False,
        },
    },
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# =============================================================================
# CUSTOM SETTINGS - CLOTHING STORE
# =============================================================================
STORE_CONFIG = {
    'ORDER_ID_PREFIX': 'ORD',
    'MAX_CART_ITEMS': 50,
    # Checkout
    'SHIPPING_FEE_CALCULATOR': env(
        'SHIPPING_FEE_CALCULATOR',
        default='apps.business.partners.shipping.services.FlatZeroShippingCalculator'
    ),
    'FAST_DELIVERY_PROVINCES': ['Hà Nội', 'TP. Hồ Chí Minh', 'Hồ Chí Minh'],
    'FAST_DELIVERY_DAYS': 2,
    'DEFAULT_DELIVERY_DAYS': 3,
    # QR payments
    'QR_PAYMENT_TIMEOUT_MINUTES': 15,
    'QR_POLL_INTERVAL_SECONDS': 5,
    'PAYMENT_AMOUNT_TOLERANCE': 1000,  # VND
    # Coupons
    'COUPON_EXPIRING_SOON_DAYS': 7,
}

# =============================================================================
# PAYMENT GATEWAYS CONFIGURATION
# =============================================================================
SEPAY_CONFIG = {
    'BANK_ID': env('SEPAY_BANK_ID', default='MBBank'),
    'ACCOUNT_NUMBER': env('SEPAY_ACCOUNT_NUMBER', default=''),
    'ACCOUNT_NAME': env('SEPAY_ACCOUNT_NAME', default=''),
    'TEMPLATE': env('SEPAY_TEMPLATE', default='compact2'),
    'QR_BASE_URL': env('SEPAY_QR_BASE_URL', default='https://qr.sepay.vn/img'),
    'API_KEY': env('SEPAY_API_KEY', default=''),
    'SECRET_KEY': env('SEPAY_SECRET_KEY', default=''),
}

# =============================================================================
# CMS (STRAPI) SYNC CONFIGURATION
# =============================================================================
CMS_SYNC_CONFIG = {
    'ENABLED': env.bool('CMS_SYNC_ENABLED', default=False),
    'BASE_URL': env('STRAPI_URL', default='http://localhost:1337/api'),
    'API_TOKEN': env('STRAPI_API_TOKEN', default=''),
    'TIMEOUT': env.int('STRAPI_TIMEOUT', default=30),
}
