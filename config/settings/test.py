"""
Stockroom — Test Settings

In-memory SQLite, eager Celery, Stockit disabled. Activated by pytest
through pyproject.toml.

@file config/settings/test.py
"""

from .base import *  # noqa: F401, F403

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    },
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    },
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = []  # noqa: F405

STOCKIT_ENABLED = False
STOCKIT_BASE_URL = 'http://stockit.test'
STOCKIT_API_TOKEN = 'test-token'
STOCKIT_TIMEOUT_SECONDS = 2.0
STOCKIT_SYNC_MAX_RETRIES = 2

LOGGING['loggers']['stockroom']['level'] = 'WARNING'  # noqa: F405
