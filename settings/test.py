"""
Test settings: in-memory database, cache and storage.
"""
from .base import *
import copy

LOGGING = copy.deepcopy(LOGGING)

DEBUG = False
SECRET_KEY = 'cadenza-test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'cadenza-tests',
    }
}

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.InMemoryStorage',
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = []


class DisableMigrations:
    """Build test tables straight from the models."""

    def __contains__(self, item):
        return True

    def __getitem__(self, item):
        return None


MIGRATION_MODULES = DisableMigrations()

LOGGING['root']['level'] = 'WARNING'
for app_logger in ('core', 'users', 'lessons', 'billing', 'bulk_uploads'):
    LOGGING['loggers'][app_logger]['level'] = 'WARNING'
