"""
Development settings for the Cadenza backend.
"""
from .base import *
import copy

LOGGING = copy.deepcopy(LOGGING)

# Debug settings
DEBUG = True
ALLOWED_HOSTS = ['localhost', '127.0.0.1', '0.0.0.0']

DATABASES['default'].update({
    'ATOMIC_REQUESTS': True,
})

EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'

# Ensure logs directory exists
(BASE_DIR / 'logs').mkdir(exist_ok=True)

LOGGING['formatters']['verbose'] = {
    'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
    'style': '{',
}

LOGGING['handlers']['console']['level'] = 'DEBUG'

LOGGING['handlers']['file'] = {
    'level': 'DEBUG',
    'class': 'logging.FileHandler',
    'filename': BASE_DIR / 'logs' / 'development.log',
    'formatter': 'verbose',
}

LOGGING['handlers']['billing_file'] = {
    'level': 'DEBUG',
    'class': 'logging.FileHandler',
    'filename': BASE_DIR / 'logs' / 'billing_development.log',
    'formatter': 'verbose',
}

LOGGING['loggers']['django']['handlers'] = ['console', 'file']

for app_logger in ('core', 'users', 'lessons', 'bulk_uploads'):
    LOGGING['loggers'][app_logger]['handlers'] = ['console', 'file']
    LOGGING['loggers'][app_logger]['level'] = 'DEBUG'

LOGGING['loggers']['billing'] = {
    'handlers': ['console', 'billing_file'],
    'level': 'DEBUG',
    'propagate': False,
}

# Disable security settings for development
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False
SECURE_SSL_REDIRECT = False

CORS_ALLOWED_ORIGINS += [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
]
