"""Tests for batch reconciliation passes."""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from services.balances.aggregator import BalanceAggregator
from services.core.exceptions import RunGuardUnavailableError
from services.reconciliation.guard import RunGuard
from services.reconciliation.records import OutcomeStatus, RunStatus, RunTrigger
from services.reconciliation.runner import BatchRunner
from services.roles.synchronizer import RoleSynchronizer
from tests.mocks.reconciliation_fakes import (
    FakeLedger,
    FakePlatform,
    FakeStore,
    RecordingDelay,
    make_user,
    units,
)

NOW = datetime(2026, 1, 1, tzinfo=UTC)


def make_runner(tiers, ledger, platform, store, guard=None, delay=None, inter_user_delay=0.2):
    delay = delay or RecordingDelay()
    synchronizer = RoleSynchronizer(platform, store, tiers, delay=delay)
    return BatchRunner(
        store,
        BalanceAggregator(ledger, "0x2::tr_wal::TR_WAL"),
        synchronizer,
        guard or RunGuard("test"),
        inter_user_delay=inter_user_delay,
        delay=delay,
        clock=lambda: NOW,
    )


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_upgrades_user_to_shark(self, tiers):
        """Three addresses holding 150, 900 and 0 put a Dolphin holder in Shark."""
        user = make_user(1, {"0xa", "0xb", "0xc"}, platform_user_id="42", balance="150")
        ledger = FakeLedger({"0xa": [units(150)], "0xb": [units(900)], "0xc": []})
        platform = FakePlatform({"42": {"role-dolphin", "member"}})
        store = FakeStore([user])

        record = await make_runner(tiers, ledger, platform, store).run_once()

        assert record.status == RunStatus.COMPLETED
        assert record.trigger == RunTrigger.SCHEDULED
        assert record.users_processed == 1
        assert record.users_updated == 1
        assert platform.members["42"] == {"role-shark", "member"}
        assert store.balances[1] == (Decimal("1050"), NOW)
        assert store.roles[1] == ({"role-shark"}, "Shark")
        assert record.outcomes[0].tier_name == "Shark"
        assert store.runs == [record]

    @pytest.mark.asyncio
    async def test_two_addresses_sum_to_dolphin(self, tiers):
        """60 and 45 on two addresses give 105, enough for Dolphin."""
        user = make_user(1, {"0xa", "0xb"}, platform_user_id="42")
        ledger = FakeLedger({"0xa": [units(60)], "0xb": [units(45)]})
        platform = FakePlatform({"42": {"member"}})
        store = FakeStore([user])

        record = await make_runner(tiers, ledger, platform, store).run_once()

        assert record.users_updated == 1
        assert record.outcomes[0].balance == Decimal("105")
        assert record.outcomes[0].tier_name == "Dolphin"
        assert platform.members["42"] == {"role-dolphin", "member"}
        assert store.balances[1] == (Decimal("105"), NOW)
        assert store.roles[1] == ({"role-dolphin"}, "Dolphin")

    @pytest.mark.asyncio
    async def test_failed_address_drops_user_below_every_tier(self, tiers):
        """An unreadable address counts as zero; the remaining 60 holds no tier."""
        user = make_user(1, {"0xa", "0xb"}, platform_user_id="42", balance="105")
        ledger = FakeLedger({"0xa": [units(60)], "0xb": [units(45)]}, failing={"0xb"})
        platform = FakePlatform({"42": {"role-shark", "role-dolphin", "member"}})
        store = FakeStore([user])

        record = await make_runner(tiers, ledger, platform, store).run_once()

        assert record.status == RunStatus.COMPLETED
        assert record.outcomes[0].status == OutcomeStatus.SUCCESS
        assert record.outcomes[0].tier_name is None
        assert platform.members["42"] == {"member"}
        assert platform.calls_for("add_roles") == []
        assert record.outcomes[0].balance == Decimal("60")
        assert store.balances[1] == (Decimal("60"), NOW)
        assert store.roles[1] == (set(), None)

    @pytest.mark.asyncio
    async def test_skips_when_guard_held(self, tiers, store, platform, ledger):
        guard = RunGuard("test")
        guard.try_acquire()
        runner = make_runner(tiers, ledger, platform, store, guard=guard)

        record = await runner.run_once(RunTrigger.MANUAL)

        assert record.status == RunStatus.SKIPPED
        assert record.users_processed == 0
        # No external calls of any kind
        assert store.candidate_calls == 0
        assert store.runs == []
        assert ledger.calls == []
        assert platform.calls == []
        # The held guard was not released by the skipped pass
        assert guard.is_held is True

    @pytest.mark.asyncio
    async def test_concurrent_trigger_is_skipped(self, tiers):
        """A manual trigger during a scheduled pass returns skipped."""
        entered = asyncio.Event()
        release = asyncio.Event()

        class BlockingLedger(FakeLedger):
            async def get_holdings(self, address, asset_id):
                entered.set()
                await release.wait()
                return await super().get_holdings(address, asset_id)

        store = FakeStore([make_user(1, {"0xa"})])
        runner = make_runner(tiers, BlockingLedger({"0xa": [units(5)]}), FakePlatform(), store)

        first = asyncio.create_task(runner.run_once(RunTrigger.SCHEDULED))
        await entered.wait()
        second = await runner.run_once(RunTrigger.MANUAL)
        release.set()
        first_record = await first

        assert second.status == RunStatus.SKIPPED
        assert first_record.status == RunStatus.COMPLETED
        assert runner.guard.is_held is False
        assert len(store.runs) == 1

    @pytest.mark.asyncio
    async def test_unreachable_guard_backend_fails_pass(self, tiers, ledger, platform):
        class UnreachableGuard(RunGuard):
            def try_acquire(self):
                raise RunGuardUnavailableError(self.name, "connection refused")

        store = FakeStore([make_user(1, {"0xa"})])
        runner = make_runner(tiers, ledger, platform, store, guard=UnreachableGuard("test"))

        record = await runner.run_once()

        assert record.status == RunStatus.FAILED
        assert "connection refused" in record.error
        assert store.candidate_calls == 0
        assert platform.calls == []
        assert store.runs == [record]

        single = await runner.run_for_user(1)
        assert single.status == RunStatus.FAILED

    @pytest.mark.asyncio
    async def test_candidate_fetch_failure_fails_pass(self, tiers, ledger, platform):
        store = FakeStore(fail_candidates=True)
        runner = make_runner(tiers, ledger, platform, store)

        record = await runner.run_once()

        assert record.status == RunStatus.FAILED
        assert "database unavailable" in record.error
        assert runner.guard.is_held is False
        assert platform.calls == []

    @pytest.mark.asyncio
    async def test_one_failing_user_does_not_stop_the_pass(self, tiers):
        users = [
            make_user(1, {"0xa"}, platform_user_id="u1"),
            make_user(2, {"0xb"}, platform_user_id="u2"),
            make_user(3, {"0xc"}, platform_user_id="u3"),
        ]
        ledger = FakeLedger({"0xa": [units(100)], "0xb": [units(1000)], "0xc": [units(10000)]})
        platform = FakePlatform({"u1": set(), "u3": set()}, missing={"u2"})
        store = FakeStore(users)

        record = await make_runner(tiers, ledger, platform, store).run_once()

        assert record.status == RunStatus.COMPLETED
        assert [o.status for o in record.outcomes] == [
            OutcomeStatus.SUCCESS,
            OutcomeStatus.SKIPPED,
            OutcomeStatus.SUCCESS,
        ]
        assert record.users_updated == 2
        assert record.users_skipped == 1
        assert platform.members["u1"] == {"role-dolphin"}
        assert platform.members["u3"] == {"role-whale"}
        assert 2 not in store.roles

    @pytest.mark.asyncio
    async def test_platform_error_recorded_per_user(self, tiers):
        users = [make_user(1, {"0xa"}, platform_user_id="u1"), make_user(2, {"0xb"}, platform_user_id="u2")]
        ledger = FakeLedger({"0xa": [units(100)], "0xb": [units(100)]})
        platform = FakePlatform({"u1": set(), "u2": set()}, fail_on={"list_member_roles"})
        store = FakeStore(users)

        record = await make_runner(tiers, ledger, platform, store).run_once()

        assert record.status == RunStatus.COMPLETED
        assert record.users_errored == 2
        assert store.balances == {}

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error_outcome(self, tiers):
        class ExplodingAggregator:
            async def total_balance(self, addresses):
                raise RuntimeError("unexpected")

        store = FakeStore([make_user(1, {"0xa"})])
        runner = make_runner(tiers, FakeLedger(), FakePlatform(), store)
        runner.aggregator = ExplodingAggregator()

        record = await runner.run_once()

        assert record.status == RunStatus.COMPLETED
        assert record.outcomes[0].status == OutcomeStatus.ERROR
        assert "unexpected" in record.outcomes[0].message

    @pytest.mark.asyncio
    async def test_delay_between_users_only(self, tiers):
        users = [make_user(i, {f"0x{i}"}) for i in range(1, 4)]
        delay = RecordingDelay()
        runner = make_runner(
            tiers, FakeLedger(), FakePlatform(), FakeStore(users), delay=delay, inter_user_delay=0.2
        )

        await runner.run_once()

        assert delay.calls == [0.2, 0.2]

    @pytest.mark.asyncio
    async def test_users_without_addresses_are_not_candidates(self, tiers):
        store = FakeStore([make_user(1, set()), make_user(2, {"0xb"})])
        platform = FakePlatform()

        record = await make_runner(tiers, FakeLedger(), platform, store).run_once()

        assert record.users_processed == 1
        assert record.outcomes[0].user_id == 2

    @pytest.mark.asyncio
    async def test_no_candidates_completes_empty(self, tiers, ledger, platform):
        record = await make_runner(tiers, ledger, platform, FakeStore()).run_once()

        assert record.status == RunStatus.COMPLETED
        assert record.users_processed == 0

    @pytest.mark.asyncio
    async def test_store_failure_recording_run_is_not_fatal(self, tiers, ledger, platform):
        store = FakeStore()

        async def broken_record_run(run):
            raise RuntimeError("history table locked")

        store.record_run = broken_record_run

        record = await make_runner(tiers, ledger, platform, store).run_once()

        assert record.status == RunStatus.COMPLETED


class TestRunForUser:
    @pytest.mark.asyncio
    async def test_reconciles_one_user(self, tiers):
        users = [make_user(1, {"0xa"}, platform_user_id="u1"), make_user(2, {"0xb"}, platform_user_id="u2")]
        ledger = FakeLedger({"0xa": [units(100)], "0xb": [units(100)]})
        platform = FakePlatform({"u1": set(), "u2": set()})

        record = await make_runner(tiers, ledger, platform, FakeStore(users)).run_for_user(2)

        assert record.trigger == RunTrigger.MANUAL
        assert record.users_processed == 1
        assert platform.members["u2"] == {"role-dolphin"}
        assert platform.members["u1"] == set()

    @pytest.mark.asyncio
    async def test_unknown_user_fails(self, tiers, ledger, platform):
        record = await make_runner(tiers, ledger, platform, FakeStore()).run_for_user(99)

        assert record.status == RunStatus.FAILED
        assert "99" in record.error

    @pytest.mark.asyncio
    async def test_shares_the_guard(self, tiers, ledger, platform):
        guard = RunGuard("test")
        guard.try_acquire()
        store = FakeStore([make_user(1, {"0xa"})])

        record = await make_runner(tiers, ledger, platform, store, guard=guard).run_for_user(1)

        assert record.status == RunStatus.SKIPPED
        assert store.candidate_calls == 0
