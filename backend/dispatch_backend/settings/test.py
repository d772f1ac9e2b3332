import os

from .settings import *

DEBUG = False

# Postgres when POSTGRES_DB is set (needed for the concurrent accept tests)
if not os.getenv("POSTGRES_DB"):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': ':memory:',
        }
    }

CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels.layers.InMemoryChannelLayer",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

IDENTITY_LOOKUP_URL_TEMPLATE = ""
WALLET_SERVICE_URL = ""

LOGGING['root']['level'] = 'WARNING'
