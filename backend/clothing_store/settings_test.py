"""
Test settings for the Clothing Store backend.
"""

from .settings import *  # noqa: F401,F403

DEBUG = False
SECRET_KEY = 'test-secret-key-for-testing-only'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'clothing-store-tests',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}

SIMPLE_JWT = {
    **SIMPLE_JWT,  # noqa: F405
    'SIGNING_KEY': SECRET_KEY,
}

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    'DEFAULT_THROTTLE_CLASSES': [],
}

AXES_ENABLED = False

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

SEPAY_CONFIG = {
    **SEPAY_CONFIG,  # noqa: F405
    'ACCOUNT_NUMBER': '0123456789',
    'ACCOUNT_NAME': 'CLOTHING STORE',
    'API_KEY': 'test-sepay-api-key',
    'SECRET_KEY': 'test-sepay-secret',
}

CMS_SYNC_CONFIG = {
    **CMS_SYNC_CONFIG,  # noqa: F405
    'ENABLED': True,
    'BASE_URL': 'http://cms.test/api',
    'API_TOKEN': 'test-strapi-token',
}
