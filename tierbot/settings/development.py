"""
Development settings for Tier Bot.

This configuration is optimized for local development with debugging enabled.
"""

import logging.config
import os
import sys

from .base import *  # noqa: F403

# ================================================================================
# DEVELOPMENT SETTINGS
# ================================================================================

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.environ.get("SECRET_KEY", "django-insecure-tierbot-development-key")

DEBUG = os.environ.get("DEBUG", "True").lower() in ("true", "1", "yes", "on")

_default_hosts = "127.0.0.1,localhost,testserver"
_allowed_hosts_raw = os.environ.get("ALLOWED_HOSTS")
if _allowed_hosts_raw and _allowed_hosts_raw.strip():
    ALLOWED_HOSTS = [h.strip() for h in _allowed_hosts_raw.split(",") if h.strip()]
else:
    ALLOWED_HOSTS = [h.strip() for h in _default_hosts.split(",") if h.strip()]

# ================================================================================
# DATABASE CONFIGURATION (DEVELOPMENT)
# ================================================================================

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# ================================================================================
# CACHE CONFIGURATION (DEVELOPMENT)
# ================================================================================

REDIS_URL = os.environ.get("REDIS_URL", "redis://127.0.0.1:6379/1")

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.redis.RedisCache",
        "LOCATION": REDIS_URL,
        "KEY_PREFIX": "tierbot_cache",
        "VERSION": 1,
        "TIMEOUT": 300,
    }
}

# ================================================================================
# CELERY CONFIGURATION (DEVELOPMENT)
# ================================================================================

CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://127.0.0.1:6379/2")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", "redis://127.0.0.1:6379/3")

CELERY_TASK_ALWAYS_EAGER = os.environ.get("CELERY_TASK_ALWAYS_EAGER", "False").lower() == "true"
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_WORKER_MAX_TASKS_PER_CHILD = 50

CELERY_TASK_ROUTES = {
    "membership.tasks.*": {"queue": "membership"},
}

# ================================================================================
# DEVELOPMENT LOGGING
# ================================================================================

from services.core.logging import get_development_logging  # noqa: E402

LOGGING = get_development_logging()
logging.config.dictConfig(LOGGING)

if "runserver" in sys.argv and os.environ.get("RUN_MAIN") == "true":
    print("Development settings loaded")
    print(f"Database: SQLite at {DATABASES['default']['NAME']}")
    print(f"Redis: {REDIS_URL}")
