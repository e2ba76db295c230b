"""
Test settings for Tier Bot.

In-memory database and cache, eager Celery, no external services.
"""

from .base import *  # noqa: F403

SECRET_KEY = "django-insecure-tierbot-test-key"

DEBUG = False

ALLOWED_HOSTS = ["testserver", "localhost"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "tierbot-tests",
    }
}

CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"
CELERY_TASK_ALWAYS_EAGER = True

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

TIER_TABLE = [
    {"name": "Dolphin", "emoji": "🐬", "min_balance": "100", "role_ref": "role-dolphin"},
    {"name": "Shark", "emoji": "🦈", "min_balance": "1000", "role_ref": "role-shark"},
    {"name": "Whale", "emoji": "🐳", "min_balance": "10000", "role_ref": "role-whale"},
]

DISCORD_CONFIG = {
    **DISCORD_CONFIG,  # noqa: F405
    "BOT_TOKEN": "test-bot-token",
    "GUILD_ID": "guild-1",
}

RECONCILIATION_CONFIG = {
    **RECONCILIATION_CONFIG,  # noqa: F405
    "INTER_USER_DELAY": 0.0,
    "RUN_GUARD": "local",
}
