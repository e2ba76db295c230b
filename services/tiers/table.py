"""
Tier table - ordered definition of membership tiers and their thresholds.

The table is built once from ``settings.TIER_TABLE`` and validated at startup
(see ``tierbot.checks``). Downstream code can assume it is ordered by strictly
increasing ``min_balance`` and that role refs are unique.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.conf import settings

from services.core.exceptions import TierConfigurationError
from services.core.utils.decimal_utils import to_decimal


@dataclass(frozen=True)
class TierDefinition:
    """A named membership level, its minimum balance and its platform role."""

    name: str
    min_balance: Decimal
    role_ref: str
    emoji: str = ""

    @property
    def label(self) -> str:
        """Return display label, e.g. '🐬 Dolphin'."""
        return f"{self.emoji} {self.name}".strip()


class TierTable:
    """
    Immutable, validated sequence of tiers.

    Iterates in ascending ``min_balance`` order.
    """

    def __init__(self, tiers: Iterable[TierDefinition]):
        self._tiers = tuple(tiers)
        self._validate()

    def _validate(self) -> None:
        if not self._tiers:
            raise TierConfigurationError("at least one tier is required")

        seen_refs: set[str] = set()
        previous: TierDefinition | None = None
        for tier in self._tiers:
            if not tier.role_ref:
                raise TierConfigurationError(f"tier '{tier.name}' has no role_ref")
            if tier.role_ref in seen_refs:
                raise TierConfigurationError(f"duplicate role_ref '{tier.role_ref}'")
            seen_refs.add(tier.role_ref)

            if tier.min_balance < 0:
                raise TierConfigurationError(f"tier '{tier.name}' has a negative min_balance")
            if previous is not None and tier.min_balance <= previous.min_balance:
                raise TierConfigurationError(
                    f"tiers must have strictly increasing min_balance "
                    f"('{previous.name}' {previous.min_balance} >= "
                    f"'{tier.name}' {tier.min_balance})"
                )
            previous = tier

    def __iter__(self) -> Iterator[TierDefinition]:
        return iter(self._tiers)

    def __len__(self) -> int:
        return len(self._tiers)

    def __getitem__(self, index: int) -> TierDefinition:
        return self._tiers[index]

    @property
    def role_refs(self) -> frozenset[str]:
        """All role refs managed by the table."""
        return frozenset(tier.role_ref for tier in self._tiers)

    def by_role_ref(self, role_ref: str) -> TierDefinition | None:
        for tier in self._tiers:
            if tier.role_ref == role_ref:
                return tier
        return None

    @classmethod
    def from_config(cls, entries: Iterable[dict]) -> "TierTable":
        """
        Build a table from plain dicts as stored in settings.

        Args:
            entries: Dicts with ``name``, ``min_balance``, ``role_ref`` and
                optional ``emoji``

        Raises:
            TierConfigurationError: If an entry is malformed or the table is invalid
        """
        tiers = []
        for entry in entries:
            try:
                tiers.append(
                    TierDefinition(
                        name=entry["name"],
                        min_balance=to_decimal(entry["min_balance"]),
                        role_ref=str(entry.get("role_ref") or ""),
                        emoji=entry.get("emoji", ""),
                    )
                )
            except KeyError as e:
                raise TierConfigurationError(f"tier entry missing key {e}") from e
            except InvalidOperation as e:
                raise TierConfigurationError(
                    f"tier '{entry.get('name')}' has a non-numeric min_balance"
                ) from e
        return cls(tiers)


def get_tier_table() -> TierTable:
    """Build the tier table from ``settings.TIER_TABLE``."""
    return TierTable.from_config(getattr(settings, "TIER_TABLE", []))
