import logging
import os
import sys

from celery import Celery
from celery.signals import setup_logging, worker_ready


def _resolve_default_settings_module() -> str:
    """Return the default settings module respecting ENVIRONMENT."""
    env = os.environ.get("ENVIRONMENT")
    if env == "production":
        return "tierbot.settings.production"
    return "tierbot.settings.development"


# Ensure Celery loads the correct settings module BEFORE importing Django settings
if (
    not os.environ.get("DJANGO_SETTINGS_MODULE")
    or os.environ["DJANGO_SETTINGS_MODULE"] == "tierbot.settings"
):
    os.environ["DJANGO_SETTINGS_MODULE"] = _resolve_default_settings_module()

# Import Django settings AFTER setting DJANGO_SETTINGS_MODULE
from django.conf import settings  # noqa: E402

app = Celery("tierbot")
# Broker, result backend and routes come from the CELERY_* settings
app.config_from_object("django.conf:settings", namespace="CELERY")

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Crontab schedules are evaluated in UTC
    timezone="UTC",
    enable_utc=True,
    result_expires=3600,
    task_track_started=True,
    task_acks_late=True,
)

app.autodiscover_tasks(lambda: settings.INSTALLED_APPS)


@app.on_after_configure.connect
def add_reconciliation_schedule(sender, **kwargs):
    """Register the calendar trigger built from RECONCILIATION_CONFIG['SCHEDULE_SPEC']."""
    from services.reconciliation.config import beat_entry, get_config  # noqa: PLC0415

    sender.conf.beat_schedule["tier-reconciliation"] = beat_entry(get_config())


@worker_ready.connect
def clear_stale_run_guard(sender=None, **kwargs):
    """Drop a shared run guard left behind by a worker that died mid-pass."""
    from services.reconciliation.config import get_config  # noqa: PLC0415
    from services.reconciliation.guard import CacheRunGuard  # noqa: PLC0415
    from services.reconciliation.scheduler import make_guard  # noqa: PLC0415

    guard = make_guard(get_config())
    if not isinstance(guard, CacheRunGuard):
        return False
    return guard.clear_stale()


@setup_logging.connect
def config_loggers(*args, **kwargs):
    """Configure Celery logging to match application format."""
    root_logger = logging.getLogger()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)-8s] %(name)-30s "
        "PID:%(process)d TID:%(thread)d %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler.setFormatter(formatter)

    if not any(isinstance(h, logging.StreamHandler) for h in root_logger.handlers):
        root_logger.addHandler(console_handler)

    logging.getLogger("membership").setLevel(logging.INFO)
    logging.getLogger("services").setLevel(logging.INFO)
    logging.getLogger("celery").setLevel(logging.INFO)
