"""
Production settings for Tier Bot.

Secrets come from environment variables. The shared cache-backed run guard is
the default here because beat and manual triggers may land on different
Celery worker processes.
"""

import copy
import os
from pathlib import Path

from services.core.logging import LOGGING as BASE_LOGGING  # noqa: E402

from .base import *  # noqa: F403

# ================================================================================
# PRODUCTION SECURITY SETTINGS
# ================================================================================

SECRET_KEY = os.environ.get("SECRET_KEY")
if not SECRET_KEY:
    raise ValueError("SECRET_KEY must be set in production")

DEBUG = False
ALLOWED_HOSTS = [
    host.strip() for host in os.environ.get("ALLOWED_HOSTS", "").split(",") if host.strip()
] + [
    "localhost",
    "127.0.0.1",
]  # Add localhost for health checks

CSRF_COOKIE_SECURE = True
SESSION_COOKIE_SECURE = True
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

CONTAINER_MODE = os.environ.get("CONTAINER_MODE", "false").lower() == "true"

# ================================================================================
# DATABASE CONFIGURATION
# ================================================================================

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.environ.get("DB_NAME", "tierbot"),
        "USER": os.environ.get("DB_USER", "tierbot"),
        "PASSWORD": os.environ.get("DB_PASSWORD"),
        "HOST": os.environ.get("DB_HOST", "localhost"),
        "PORT": os.environ.get("DB_PORT", "5432"),
        "OPTIONS": {
            "sslmode": "disable" if CONTAINER_MODE else "require",
            "connect_timeout": 10,
        },
        "CONN_MAX_AGE": 60,
    }
}

if not DATABASES["default"]["PASSWORD"]:
    raise ValueError("DB_PASSWORD must be set in production")

# ================================================================================
# CACHE CONFIGURATION (REDIS)
# ================================================================================

REDIS_URL = os.environ.get("REDIS_URL")
if not REDIS_URL:
    raise ValueError("REDIS_URL environment variable must be set in production")

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
# CELERY CONFIGURATION (PRODUCTION)
# ================================================================================

CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND")

if not CELERY_BROKER_URL or not CELERY_RESULT_BACKEND:
    raise ValueError("CELERY_BROKER_URL and CELERY_RESULT_BACKEND must be set in production")

CELERY_TASK_ALWAYS_EAGER = False
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_WORKER_MAX_TASKS_PER_CHILD = 100

CELERY_TASK_SOFT_TIME_LIMIT = 300
CELERY_TASK_TIME_LIMIT = 600

CELERY_TASK_ROUTES = {
    "membership.tasks.*": {"queue": "membership"},
}

RECONCILIATION_CONFIG = {
    **RECONCILIATION_CONFIG,  # noqa: F405
    "RUN_GUARD": os.environ.get("TIER_RUN_GUARD", "cache"),
}

# ================================================================================
# LOGGING CONFIGURATION (PRODUCTION)
# ================================================================================

LOGGING = copy.deepcopy(BASE_LOGGING)

if CONTAINER_MODE:
    # Container mode: stdout/stderr only
    LOGGING["handlers"]["console"]["formatter"] = "console_journald"
    LOGGING["loggers"]["services"]["handlers"] = ["console"]
    LOGGING["loggers"]["membership"]["handlers"] = ["console"]
    LOGGING["loggers"]["accounts"]["handlers"] = ["console"]
    LOGGING["loggers"]["django"]["handlers"] = ["console"]
    LOGGING["root"]["handlers"] = ["console"]
    LOGGING["root"]["level"] = "INFO"
else:
    PRODUCTION_LOG_DIR = Path("/var/log/tierbot")
    PRODUCTION_LOG_DIR.mkdir(parents=True, exist_ok=True)

    LOGGING["handlers"]["file_structured"]["filename"] = PRODUCTION_LOG_DIR / "application.log"
    LOGGING["handlers"]["file_structured"]["maxBytes"] = 50 * 1024 * 1024
    LOGGING["handlers"]["file_structured"]["backupCount"] = 10

    LOGGING["handlers"]["error_file"]["filename"] = PRODUCTION_LOG_DIR / "errors.log"

    LOGGING["handlers"]["reconciliation_file"]["filename"] = (
        PRODUCTION_LOG_DIR / "reconciliation.log"
    )
    LOGGING["handlers"]["reconciliation_file"]["maxBytes"] = 100 * 1024 * 1024
    LOGGING["handlers"]["reconciliation_file"]["backupCount"] = 20

    LOGGING["handlers"]["console"]["level"] = "WARNING"
    LOGGING["root"]["handlers"] = ["file_structured", "error_file"]
    LOGGING["root"]["level"] = "WARNING"
