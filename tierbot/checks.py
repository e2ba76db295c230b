"""
Django system checks for Tier Bot.

Validate the tier table, ledger and reconciliation settings at startup so a
misconfiguration fails `manage.py check` instead of the first nightly pass.
"""

from django.conf import settings
from django.core.checks import Error, Tags, Warning, register

from services.core.exceptions import ConfigurationError


@register()
def check_tier_table(app_configs, **kwargs):
    """Tier table must parse, be strictly increasing and have distinct role ids."""
    from services.tiers.table import TierTable  # noqa: PLC0415

    errors = []

    entries = getattr(settings, "TIER_TABLE", None)
    if not entries:
        errors.append(
            Error(
                "TIER_TABLE is not configured",
                hint="Define TIER_TABLE in settings with at least one tier",
                obj=settings,
                id="tierbot.E001",
            )
        )
        return errors

    try:
        TierTable.from_config(entries)
    except ConfigurationError as e:
        errors.append(
            Error(
                str(e),
                hint=(
                    "Each tier needs name, min_balance and role_ref; min_balance must be "
                    "strictly increasing and role_ref unique (DOLPHIN_ROLE_ID, SHARK_ROLE_ID, "
                    "WHALE_ROLE_ID)"
                ),
                obj=settings,
                id="tierbot.E002",
            )
        )

    return errors


@register()
def check_ledger_configuration(app_configs, **kwargs):
    """Ledger RPC URL and asset type must be usable."""
    from services.ledger.client import get_config  # noqa: PLC0415

    errors = []
    try:
        get_config()
    except ConfigurationError as e:
        errors.append(
            Error(
                str(e),
                hint="Set SUI_RPC_URL and TIER_ASSET_TYPE environment variables",
                obj=settings,
                id="tierbot.E003",
            )
        )
    return errors


@register()
def check_reconciliation_configuration(app_configs, **kwargs):
    """Schedule spec and pacing values must be valid."""
    from services.reconciliation.config import get_config  # noqa: PLC0415

    errors = []
    try:
        config = get_config()
    except (ConfigurationError, ValueError) as e:
        errors.append(
            Error(
                f"Invalid RECONCILIATION_CONFIG: {e}",
                hint="Check TIER_RECONCILE_SCHEDULE (5-field cron) and TIER_* pacing variables",
                obj=settings,
                id="tierbot.E004",
            )
        )
        return errors

    if config.run_guard == "local" and not settings.DEBUG and not getattr(
        settings, "CELERY_TASK_ALWAYS_EAGER", False
    ):
        errors.append(
            Warning(
                "Run guard is process-local",
                hint=(
                    "With several Celery worker processes set TIER_RUN_GUARD=cache so "
                    "passes cannot overlap across workers"
                ),
                id="tierbot.W001",
            )
        )

    return errors


@register()
def check_discord_configuration(app_configs, **kwargs):
    """Bot token and guild id are required to change roles."""
    cfg = getattr(settings, "DISCORD_CONFIG", {})
    errors = []

    for field, env_var in (("BOT_TOKEN", "DISCORD_BOT_TOKEN"), ("GUILD_ID", "DISCORD_GUILD_ID")):
        if not cfg.get(field):
            errors.append(
                Warning(
                    f"DISCORD_CONFIG['{field}'] is not configured",
                    hint=f"Set the {env_var} environment variable; role sync will fail without it",
                    obj=settings,
                    id=f"tierbot.W00{2 + ('BOT_TOKEN', 'GUILD_ID').index(field)}",
                )
            )

    return errors


@register(Tags.caches)
def check_run_guard_cache(app_configs, **kwargs):
    """A shared run guard needs a working cache; write and read a probe key."""
    from django.core.cache import cache  # noqa: PLC0415

    cfg = getattr(settings, "RECONCILIATION_CONFIG", {})
    if cfg.get("RUN_GUARD", "local") != "cache":
        return []

    errors = []
    test_key = "startup_health_check"
    try:
        cache.set(test_key, "ok", timeout=10)
        if cache.get(test_key) != "ok":
            raise ValueError("write/read test failed")
        cache.delete(test_key)
    except Exception as e:
        errors.append(
            Error(
                f"Cache unavailable for the shared run guard: {e}",
                hint="Check REDIS_URL and Redis server status, or set TIER_RUN_GUARD=local",
                obj=settings,
                id="tierbot.E005",
            )
        )
    return errors
