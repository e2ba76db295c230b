"""Tests for reconciliation configuration and schedule parsing."""

import pytest

from services.core.exceptions import ConfigurationError
from services.reconciliation.config import (
    ReconciliationConfig,
    beat_entry,
    crontab_from_spec,
    get_config,
)


class TestCrontabFromSpec:
    def test_daily_midnight(self):
        schedule = crontab_from_spec("0 0 * * *")

        assert schedule.minute == {0}
        assert schedule.hour == {0}
        assert len(schedule.day_of_week) == 7

    def test_fields_map_in_cron_order(self):
        schedule = crontab_from_spec("30 6 1 */3 1")

        assert schedule.minute == {30}
        assert schedule.hour == {6}
        assert schedule.day_of_month == {1}
        assert schedule.month_of_year == {1, 4, 7, 10}
        assert schedule.day_of_week == {1}

    @pytest.mark.parametrize("spec", ["", "0 0 * *", "0 0 * * * *", "every day"])
    def test_wrong_field_count(self, spec):
        with pytest.raises(ConfigurationError, match="5 fields"):
            crontab_from_spec(spec)

    def test_invalid_field_value(self):
        with pytest.raises(ConfigurationError, match="Invalid schedule spec"):
            crontab_from_spec("99 0 * * *")


class TestReconciliationConfig:
    def test_defaults(self):
        config = ReconciliationConfig()

        assert config.schedule_spec == "0 0 * * *"
        assert config.inter_user_delay == 0.2
        assert config.run_guard == "local"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"inter_user_delay": -1},
            {"address_concurrency_limit": 0},
            {"rate_limit_retries": -1},
            {"run_guard": "zookeeper"},
            {"schedule_spec": "nightly"},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ConfigurationError):
            ReconciliationConfig(**kwargs)

    def test_get_config_reads_settings(self, settings):
        settings.RECONCILIATION_CONFIG = {
            "SCHEDULE_SPEC": "15 3 * * *",
            "INTER_USER_DELAY": "0.5",
            "ADDRESS_CONCURRENCY_LIMIT": "3",
            "RUN_GUARD": "cache",
            "RUN_GUARD_TTL": "120",
        }

        config = get_config()

        assert config.schedule_spec == "15 3 * * *"
        assert config.inter_user_delay == 0.5
        assert config.address_concurrency_limit == 3
        assert config.run_guard == "cache"
        assert config.run_guard_ttl == 120
        # Unset keys fall back to defaults
        assert config.rate_limit_retries == 3

    def test_beat_entry(self):
        entry = beat_entry(ReconciliationConfig(schedule_spec="0 12 * * *"))

        assert entry["task"] == "membership.tasks.scheduled_reconciliation_task"
        assert entry["schedule"].hour == {12}
