"""Tests for task monitoring decorator."""

import time
from unittest.mock import patch

import pytest

from services.monitoring.task_metrics import monitor_task


class TestMonitorTask:
    """Test monitor_task decorator."""

    def test_successful_task_execution(self):
        @monitor_task
        def successful_task():
            return "result"

        with patch("services.monitoring.task_metrics.logger") as mock_logger:
            result = successful_task()

            assert result == "result"
            assert mock_logger.info.call_count == 2
            assert "Task started: successful_task" in str(mock_logger.info.call_args_list[0])
            assert "Task completed: successful_task" in str(mock_logger.info.call_args_list[1])

    def test_failed_task_execution(self):
        @monitor_task
        def failing_task():
            raise ValueError("Test error")

        with patch("services.monitoring.task_metrics.logger") as mock_logger:
            with pytest.raises(ValueError, match="Test error"):
                failing_task()

            assert mock_logger.info.call_count == 1
            error_call = mock_logger.error.call_args_list[0]
            assert "Task failed: failing_task" in str(error_call)
            extra = error_call[1]["extra"]
            assert extra["status"] == "failure"
            assert extra["error"] == "Test error"
            assert extra["error_type"] == "ValueError"

    def test_duration_tracking(self):
        @monitor_task
        def slow_task():
            time.sleep(0.1)
            return "done"

        with patch("services.monitoring.task_metrics.logger") as mock_logger:
            slow_task()

            extra = mock_logger.info.call_args_list[1][1]["extra"]
            assert extra["duration"] >= 0.1
            assert extra["status"] == "success"
            assert extra["task_name"] == "slow_task"

    def test_run_summary_attached_to_completion_log(self):
        @monitor_task
        def reconciliation_task():
            return {
                "status": "completed",
                "trigger": "scheduled",
                "users_processed": 4,
                "users_updated": 3,
                "users_errored": 1,
                "outcomes": [],
            }

        with patch("services.monitoring.task_metrics.logger") as mock_logger:
            reconciliation_task()

            extra = mock_logger.info.call_args_list[1][1]["extra"]
            assert extra["run_status"] == "completed"
            assert extra["run_users_processed"] == 4
            assert extra["run_users_errored"] == 1
            assert "run_outcomes" not in extra

    def test_failed_run_logged_as_error(self):
        @monitor_task
        def reconciliation_task():
            return {"status": "failed", "error": "database unavailable"}

        with patch("services.monitoring.task_metrics.logger") as mock_logger:
            result = reconciliation_task()

            assert result["status"] == "failed"
            assert "completed with failed run" in str(mock_logger.error.call_args_list[0])

    def test_skipped_run_logged_as_warning(self):
        @monitor_task
        def reconciliation_task():
            return {"status": "skipped"}

        with patch("services.monitoring.task_metrics.logger") as mock_logger:
            reconciliation_task()

            assert mock_logger.warning.call_count == 1
            assert mock_logger.info.call_count == 1

    def test_preserves_function_metadata(self):
        @monitor_task
        def my_task():
            """Task docstring."""

        assert my_task.__name__ == "my_task"
        assert my_task.__doc__ == "Task docstring."

    def test_handles_task_with_arguments(self):
        @monitor_task
        def task_with_args(x, y, z=3):
            return x + y + z

        assert task_with_args(1, 2, z=5) == 8
