"""Tests for balance -> tier resolution."""

from decimal import Decimal

import pytest

from services.tiers.resolver import resolve


class TestResolve:
    @pytest.mark.parametrize(
        "balance,expected",
        [
            ("0", None),
            ("99.999999999", None),
            ("100", "Dolphin"),
            ("999.99", "Dolphin"),
            ("1000", "Shark"),
            ("9999.999999999", "Shark"),
            ("10000", "Whale"),
            ("2500000", "Whale"),
        ],
    )
    def test_thresholds_are_inclusive(self, tiers, balance, expected):
        result = resolve(Decimal(balance), tiers)
        assert (result.name if result else None) == expected

    def test_order_of_tiers_does_not_matter(self, tiers):
        shuffled = [tiers[2], tiers[0], tiers[1]]
        assert resolve(Decimal("1500"), shuffled).name == "Shark"

    def test_monotone_in_balance(self, tiers):
        """A higher balance never resolves to a lower tier."""
        order = {None: -1, "Dolphin": 0, "Shark": 1, "Whale": 2}
        balances = [Decimal(b) for b in ("0", "50", "100", "500", "1000", "1001", "10000", "1e6")]

        ranks = []
        for balance in balances:
            tier = resolve(balance, tiers)
            ranks.append(order[tier.name if tier else None])

        assert ranks == sorted(ranks)

    def test_scenario_three_addresses_resolve_to_shark(self, tiers):
        """150 + 900 + 0 across three addresses sums to 1050."""
        total = Decimal("150") + Decimal("900") + Decimal("0")

        assert resolve(total, tiers).name == "Shark"

    def test_empty_table_resolves_to_none(self):
        assert resolve(Decimal("1000000"), []) is None
