"""
Membership Tasks - Celery entry points for tier reconciliation.

The scheduled task is registered in Celery beat from
RECONCILIATION_CONFIG["SCHEDULE_SPEC"] (daily at 00:00 UTC by default).
"""

from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from celery import shared_task

from membership.models import ReconciliationRun
from services.core.logging import get_logger
from services.core.utils.async_utils import run_async
from services.monitoring.task_metrics import monitor_task

logger = get_logger(__name__)


@shared_task(
    bind=True,
    soft_time_limit=3300,  # 55 minutes
    time_limit=3600,  # Matches the cache run guard TTL
    acks_late=True,
    reject_on_worker_lost=True,
)
@monitor_task
def scheduled_reconciliation_task(self):
    """
    Nightly tier reconciliation over every user with a linked address.

    Not retried: a failed pass is simply repeated at the next scheduled time,
    and a skipped one means another pass is already doing the work.
    """
    from services.reconciliation.scheduler import get_scheduler  # noqa: PLC0415

    logger.info("=== Starting scheduled tier reconciliation ===")
    record = run_async(get_scheduler().run_scheduled())

    logger.info(
        f"=== Tier reconciliation {record.status.value}: {record.users_updated}/"
        f"{record.users_processed} users updated in {record.duration_seconds}s ==="
    )
    return record.to_dict()


@shared_task(
    bind=True,
    soft_time_limit=3300,
    time_limit=3600,
    acks_late=True,
    reject_on_worker_lost=True,
)
@monitor_task
def manual_reconciliation_task(self, user_id: int | None = None):
    """
    On-demand reconciliation, for all candidates or a single user.

    Args:
        user_id: Primary key of the user to reconcile; None reconciles everyone
    """
    from services.reconciliation.scheduler import get_scheduler  # noqa: PLC0415

    scope = f"user {user_id}" if user_id is not None else "all users"
    logger.info(f"Manual tier reconciliation requested for {scope}")

    record = run_async(get_scheduler().trigger_manual(user_id))
    return record.to_dict()


@shared_task
@monitor_task
def cleanup_old_runs_task():
    """Delete reconciliation run history older than RECONCILIATION_RUN_RETENTION_DAYS."""
    days = getattr(settings, "RECONCILIATION_RUN_RETENTION_DAYS", 30)
    cutoff_date = timezone.now() - timedelta(days=days)

    deleted, _ = ReconciliationRun.objects.filter(started_at__lt=cutoff_date).delete()
    if deleted:
        logger.info(
            f"Deleted {deleted} old reconciliation runs",
            extra={"record_type": "reconciliation_runs", "deleted_count": deleted, "days": days},
        )
    else:
        logger.debug("No old reconciliation runs to delete")

    return {"status": "success", "deleted": deleted}
