"""
Reconciliation configuration.

Built from ``settings.RECONCILIATION_CONFIG`` so the schedule, pacing and
concurrency of a pass are supplied at construction rather than hardcoded.
"""

from dataclasses import dataclass

from django.conf import settings

from celery.schedules import ParseException, crontab

from services.core.constants import (
    DEFAULT_ADDRESS_CONCURRENCY_LIMIT,
    DEFAULT_INTER_USER_DELAY,
    DEFAULT_MAX_RETRY_AFTER,
    DEFAULT_RATE_LIMIT_RETRIES,
    DEFAULT_RUN_GUARD_TTL,
    DEFAULT_SCHEDULE_SPEC,
)
from services.core.exceptions import ConfigurationError

RUN_GUARD_BACKENDS = ("local", "cache")


@dataclass(frozen=True)
class ReconciliationConfig:
    schedule_spec: str = DEFAULT_SCHEDULE_SPEC
    inter_user_delay: float = DEFAULT_INTER_USER_DELAY
    address_concurrency_limit: int = DEFAULT_ADDRESS_CONCURRENCY_LIMIT
    rate_limit_retries: int = DEFAULT_RATE_LIMIT_RETRIES
    max_retry_after: float = DEFAULT_MAX_RETRY_AFTER
    run_guard: str = "local"
    run_guard_ttl: int = DEFAULT_RUN_GUARD_TTL

    def __post_init__(self):
        if self.inter_user_delay < 0:
            raise ConfigurationError("inter_user_delay must not be negative")
        if self.address_concurrency_limit < 1:
            raise ConfigurationError("address_concurrency_limit must be at least 1")
        if self.rate_limit_retries < 0:
            raise ConfigurationError("rate_limit_retries must not be negative")
        if self.run_guard not in RUN_GUARD_BACKENDS:
            raise ConfigurationError(
                f"run_guard must be one of {RUN_GUARD_BACKENDS}, got '{self.run_guard}'"
            )
        # Fails fast on a malformed schedule
        crontab_from_spec(self.schedule_spec)


def get_config() -> ReconciliationConfig:
    cfg = getattr(settings, "RECONCILIATION_CONFIG", {})
    return ReconciliationConfig(
        schedule_spec=cfg.get("SCHEDULE_SPEC", DEFAULT_SCHEDULE_SPEC),
        inter_user_delay=float(cfg.get("INTER_USER_DELAY", DEFAULT_INTER_USER_DELAY)),
        address_concurrency_limit=int(
            cfg.get("ADDRESS_CONCURRENCY_LIMIT", DEFAULT_ADDRESS_CONCURRENCY_LIMIT)
        ),
        rate_limit_retries=int(cfg.get("RATE_LIMIT_RETRIES", DEFAULT_RATE_LIMIT_RETRIES)),
        max_retry_after=float(cfg.get("MAX_RETRY_AFTER", DEFAULT_MAX_RETRY_AFTER)),
        run_guard=cfg.get("RUN_GUARD", "local"),
        run_guard_ttl=int(cfg.get("RUN_GUARD_TTL", DEFAULT_RUN_GUARD_TTL)),
    )


def crontab_from_spec(spec: str) -> crontab:
    """
    Parse a five-field cron string into a Celery ``crontab``.

    Fields are ``minute hour day_of_month month_of_year day_of_week``.

    Raises:
        ConfigurationError: If the spec does not have exactly five fields
            or Celery rejects a field
    """
    fields = spec.split()
    if len(fields) != 5:
        raise ConfigurationError(
            f"Schedule spec must have 5 fields (minute hour day month weekday), got '{spec}'"
        )
    minute, hour, day_of_month, month_of_year, day_of_week = fields
    try:
        return crontab(
            minute=minute,
            hour=hour,
            day_of_month=day_of_month,
            month_of_year=month_of_year,
            day_of_week=day_of_week,
        )
    except (ParseException, ValueError) as e:
        raise ConfigurationError(f"Invalid schedule spec '{spec}': {e}") from e


SCHEDULED_TASK_NAME = "membership.tasks.scheduled_reconciliation_task"


def beat_entry(config: ReconciliationConfig) -> dict:
    """Celery beat schedule entry for the calendar trigger (UTC)."""
    return {
        "task": SCHEDULED_TASK_NAME,
        "schedule": crontab_from_spec(config.schedule_spec),
        # A pass missed by more than an hour is dropped, not run late
        "options": {"expires": 3600},
    }
