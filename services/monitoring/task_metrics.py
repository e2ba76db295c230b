"""
Task monitoring decorator for Celery tasks.

Logs start, completion and failure of background tasks with their duration.
Tasks that return a run summary (``RunRecord.to_dict()``) also get the
summary counters attached to the completion log line.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import Any

from services.core.logging import get_logger

logger = get_logger(__name__)

SUMMARY_FIELDS = ("status", "trigger", "users_processed", "users_updated", "users_errored")


def _summary_extra(result: Any) -> dict:
    if not isinstance(result, dict):
        return {}
    return {f"run_{key}": result[key] for key in SUMMARY_FIELDS if key in result}


def monitor_task(func: Callable) -> Callable:
    """
    Decorator to monitor Celery task execution.

    A run that finishes as ``failed`` is logged at error level, one that was
    ``skipped`` (another pass held the guard) at warning level.

    Example:
        @shared_task(bind=True)
        @monitor_task
        def scheduled_reconciliation_task(self):
            return run_async(get_scheduler().run_scheduled()).to_dict()
    """

    @wraps(func)
    def wrapper(*args, **kwargs) -> Any:
        task_name = func.__name__
        start_time = time.time()

        try:
            logger.info(f"Task started: {task_name}")
            result = func(*args, **kwargs)
        except Exception as e:
            duration = time.time() - start_time

            logger.error(
                f"Task failed: {task_name}",
                extra={
                    "task_name": task_name,
                    "duration": duration,
                    "status": "failure",
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )

            raise

        duration = time.time() - start_time
        extra = {"task_name": task_name, "duration": duration, "status": "success"}
        extra.update(_summary_extra(result))

        run_status = extra.get("run_status")
        if run_status == "failed":
            logger.error(f"Task completed with failed run: {task_name}", extra=extra)
        elif run_status == "skipped":
            logger.warning(f"Task skipped, run already in progress: {task_name}", extra=extra)
        else:
            logger.info(f"Task completed: {task_name}", extra=extra)

        return result

    return wrapper
