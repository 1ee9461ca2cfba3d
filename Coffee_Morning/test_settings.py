"""
Settings used by the test suite.
"""
import os

os.environ.setdefault('DEBUG', 'True')

from .settings import *  # noqa: E402,F401,F403

SECRET_KEY = 'test-secret-key-not-for-production'
DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
DEFAULT_FROM_EMAIL = 'coffee@yspi.ie'

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}

STRIPE_PUBLISHABLE_KEY = 'pk_test_coffee'
STRIPE_SECRET_KEY = 'sk_test_coffee'
STRIPE_WEBHOOK_SECRET = 'whsec_test_coffee'
STRIPE_WEBHOOK_ALLOW_UNVERIFIED = False

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'
