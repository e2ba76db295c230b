"""Tests for balance aggregation across linked addresses."""

import asyncio
from decimal import Decimal

import pytest

from services.balances.aggregator import BalanceAggregator
from services.ledger.client import Holding
from tests.mocks.reconciliation_fakes import FakeLedger, units

ASSET = "0x2::tr_wal::TR_WAL"


class TestBalanceAggregator:
    @pytest.mark.asyncio
    async def test_total_is_sum_of_all_holdings(self):
        ledger = FakeLedger({"0xa": [units(150)], "0xb": [units(500), units(400)], "0xc": []})
        aggregator = BalanceAggregator(ledger, ASSET)

        total = await aggregator.total_balance({"0xa", "0xb", "0xc"})

        assert total == Decimal("1050")
        assert {address for address, _ in ledger.calls} == {"0xa", "0xb", "0xc"}
        assert all(asset == ASSET for _, asset in ledger.calls)

    @pytest.mark.asyncio
    async def test_no_addresses_is_zero_without_queries(self):
        ledger = FakeLedger()
        aggregator = BalanceAggregator(ledger, ASSET)

        assert await aggregator.total_balance(set()) == Decimal("0")
        assert ledger.calls == []

    @pytest.mark.asyncio
    async def test_failed_address_counts_as_zero(self):
        """One failing address does not hide the others."""
        ledger = FakeLedger({"0xa": [units(150)], "0xb": [units(900)]}, failing={"0xb"})
        aggregator = BalanceAggregator(ledger, ASSET)

        total = await aggregator.total_balance({"0xa", "0xb"})

        assert total == Decimal("150")

    @pytest.mark.asyncio
    async def test_all_addresses_failing_is_zero(self):
        ledger = FakeLedger(failing={"0xa", "0xb"})
        aggregator = BalanceAggregator(ledger, ASSET)

        assert await aggregator.total_balance({"0xa", "0xb"}) == Decimal("0")

    @pytest.mark.asyncio
    async def test_unexpected_errors_count_as_zero(self):
        class BrokenLedger:
            async def get_holdings(self, address, asset_id):
                raise RuntimeError("boom")

        aggregator = BalanceAggregator(BrokenLedger(), ASSET)

        balances = await aggregator.address_balances(["0xa"])

        assert balances[0].balance == Decimal("0")
        assert balances[0].ok is False
        assert "boom" in balances[0].error

    @pytest.mark.asyncio
    async def test_address_balances_reports_each_address(self):
        ledger = FakeLedger({"0xa": [units("1.5")]}, failing={"0xb"})
        aggregator = BalanceAggregator(ledger, ASSET)

        balances = await aggregator.address_balances(["0xb", "0xa", "0xa"])

        assert [b.address for b in balances] == ["0xa", "0xb"]
        assert balances[0].balance == Decimal("1.5")
        assert balances[0].ok is True
        assert balances[1].ok is False

    @pytest.mark.asyncio
    async def test_respects_decimals(self):
        ledger = FakeLedger({"0xa": [1_234_567]})
        aggregator = BalanceAggregator(ledger, ASSET, decimals=6)

        assert await aggregator.total_balance({"0xa"}) == Decimal("1.234567")

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        in_flight = 0
        peak = 0

        class SlowLedger:
            async def get_holdings(self, address, asset_id):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return [Holding(amount=units(1))]

        aggregator = BalanceAggregator(SlowLedger(), ASSET, concurrency_limit=2)

        total = await aggregator.total_balance({f"0x{i}" for i in range(6)})

        assert total == Decimal("6")
        assert peak <= 2

    def test_concurrency_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            BalanceAggregator(FakeLedger(), ASSET, concurrency_limit=0)
