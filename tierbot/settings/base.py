"""
Base settings for Tier Bot.

This contains common configuration shared between development and production.
"""

import os
from pathlib import Path

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# ================================================================================
# APPLICATION DEFINITION
# ================================================================================

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Local apps
    "accounts",
    "membership",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "tierbot.urls"
WSGI_APPLICATION = "tierbot.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# ================================================================================
# AUTHENTICATION
# ================================================================================

AUTH_USER_MODEL = "accounts.User"

# ================================================================================
# INTERNATIONALIZATION
# ================================================================================

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

STATIC_URL = "/static/"

# ================================================================================
# DEFAULT CELERY SETTINGS (will be overridden in production)
# ================================================================================

CELERY_TASK_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = "UTC"
CELERY_ENABLE_UTC = True

# ================================================================================
# TIER TABLE
# ================================================================================

# Ordered by strictly increasing min_balance; role ids come from the guild.
TIER_TABLE = [
    {
        "name": "Dolphin",
        "emoji": "🐬",
        "min_balance": "100",
        "role_ref": os.environ.get("DOLPHIN_ROLE_ID", ""),
    },
    {
        "name": "Shark",
        "emoji": "🦈",
        "min_balance": "1000",
        "role_ref": os.environ.get("SHARK_ROLE_ID", ""),
    },
    {
        "name": "Whale",
        "emoji": "🐳",
        "min_balance": "10000",
        "role_ref": os.environ.get("WHALE_ROLE_ID", ""),
    },
]

# ================================================================================
# LEDGER (SUI JSON-RPC)
# ================================================================================

LEDGER_CONFIG = {
    "RPC_URL": os.environ.get("SUI_RPC_URL", "https://fullnode.mainnet.sui.io:443"),
    "ASSET_TYPE": os.environ.get(
        "TIER_ASSET_TYPE",
        "0xa8ad8c2720f064676856f4999894974a129e3d15386b3d0a27f3a7f85811c64a::tr_wal::TR_WAL",
    ),
    "ASSET_DECIMALS": int(os.environ.get("TIER_ASSET_DECIMALS", "9")),
    "PAGE_LIMIT": int(os.environ.get("SUI_PAGE_LIMIT", "50")),
}

# ================================================================================
# ROLE PLATFORM (DISCORD)
# ================================================================================

DISCORD_CONFIG = {
    "API_BASE_URL": os.environ.get("DISCORD_API_BASE_URL", "https://discord.com/api/v10"),
    "BOT_TOKEN": os.environ.get("DISCORD_BOT_TOKEN", ""),
    "GUILD_ID": os.environ.get("DISCORD_GUILD_ID", ""),
    "AUDIT_LOG_REASON": "Tier reconciliation",
}

# ================================================================================
# RECONCILIATION
# ================================================================================

RECONCILIATION_CONFIG = {
    # Five-field cron string, evaluated in UTC
    "SCHEDULE_SPEC": os.environ.get("TIER_RECONCILE_SCHEDULE", "0 0 * * *"),
    "INTER_USER_DELAY": float(os.environ.get("TIER_INTER_USER_DELAY", "0.2")),
    "ADDRESS_CONCURRENCY_LIMIT": int(os.environ.get("TIER_ADDRESS_CONCURRENCY", "5")),
    "RATE_LIMIT_RETRIES": int(os.environ.get("TIER_RATE_LIMIT_RETRIES", "3")),
    "MAX_RETRY_AFTER": float(os.environ.get("TIER_MAX_RETRY_AFTER", "30")),
    # "local" (per-process flag) or "cache" (shared across Celery workers)
    "RUN_GUARD": os.environ.get("TIER_RUN_GUARD", "local"),
    "RUN_GUARD_TTL": int(os.environ.get("TIER_RUN_GUARD_TTL", "3600")),
}

# Beat scheduler for tasks. The reconciliation entry is derived from
# RECONCILIATION_CONFIG["SCHEDULE_SPEC"] in tierbot.celery.
CELERY_BEAT_SCHEDULE = {
    "cleanup-old-reconciliation-runs": {
        "task": "membership.tasks.cleanup_old_runs_task",
        "schedule": 86400.0,  # Daily
    },
}

# Days of run history kept by cleanup_old_runs_task
RECONCILIATION_RUN_RETENTION_DAYS = int(os.environ.get("TIER_RUN_RETENTION_DAYS", "30"))
