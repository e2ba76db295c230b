"""
Value types produced and consumed by the reconciliation engine.

Per-user and per-run results are explicit values: every error caught inside a
pass ends up as a ``UserOutcome`` collected into the ``RunRecord``.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class RunTrigger(str, Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"


class OutcomeStatus(str, Enum):
    """
    Result of reconciling one user.

    SUCCESS: roles synchronized and persisted
    WARNING: roles synchronized, but the store write failed
    ERROR: a role platform call failed; nothing persisted
    SKIPPED: user is not a member of the platform
    """

    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class UserAccount:
    """Snapshot of a user as loaded from the store at the start of a pass."""

    id: int
    platform_user_id: str
    linked_addresses: frozenset[str]
    current_balance: Decimal = Decimal("0")
    current_roles: frozenset[str] = frozenset()
    last_checked_at: datetime | None = None
    display_name: str = ""

    def __str__(self) -> str:
        return self.display_name or self.platform_user_id


@dataclass(frozen=True)
class RoleSyncOutcome:
    """Result of one strip-then-add role synchronization."""

    status: OutcomeStatus
    removed: frozenset[str] = frozenset()
    added: frozenset[str] = frozenset()
    roles: frozenset[str] = frozenset()
    error: str | None = None
    warning: str | None = None

    @property
    def synced(self) -> bool:
        """True if the platform now reflects the desired tier."""
        return self.status in (OutcomeStatus.SUCCESS, OutcomeStatus.WARNING)


@dataclass(frozen=True)
class UserOutcome:
    user_id: int
    platform_user_id: str
    status: OutcomeStatus
    balance: Decimal | None = None
    tier_name: str | None = None
    message: str | None = None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "platform_user_id": self.platform_user_id,
            "status": self.status.value,
            "balance": format(self.balance, "f") if self.balance is not None else None,
            "tier": self.tier_name,
            "message": self.message,
        }


@dataclass(frozen=True)
class RunRecord:
    """
    One reconciliation pass.

    Created with ``status=running`` when the guard is acquired and replaced by
    a finalized copy when the pass ends; instances are never mutated.
    """

    started_at: datetime
    status: RunStatus
    trigger: RunTrigger = RunTrigger.SCHEDULED
    users_processed: int = 0
    users_updated: int = 0
    users_errored: int = 0
    users_skipped: int = 0
    finished_at: datetime | None = None
    outcomes: tuple[UserOutcome, ...] = field(default_factory=tuple)
    error: str | None = None

    @classmethod
    def start(cls, trigger: RunTrigger, now: datetime) -> "RunRecord":
        return cls(started_at=now, status=RunStatus.RUNNING, trigger=trigger)

    @classmethod
    def skipped(cls, trigger: RunTrigger, now: datetime, reason: str) -> "RunRecord":
        return cls(
            started_at=now,
            status=RunStatus.SKIPPED,
            trigger=trigger,
            finished_at=now,
            error=reason,
        )

    def finalize(
        self,
        status: RunStatus,
        finished_at: datetime,
        outcomes: list[UserOutcome] | tuple[UserOutcome, ...] = (),
        error: str | None = None,
    ) -> "RunRecord":
        outcomes = tuple(outcomes)
        return replace(
            self,
            status=status,
            finished_at=finished_at,
            outcomes=outcomes,
            error=error,
            users_processed=len(outcomes),
            users_updated=sum(
                1 for o in outcomes if o.status in (OutcomeStatus.SUCCESS, OutcomeStatus.WARNING)
            ),
            users_errored=sum(1 for o in outcomes if o.status == OutcomeStatus.ERROR),
            users_skipped=sum(1 for o in outcomes if o.status == OutcomeStatus.SKIPPED),
        )

    @property
    def is_final(self) -> bool:
        return self.status != RunStatus.RUNNING

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return round((self.finished_at - self.started_at).total_seconds(), 2)

    @property
    def warnings(self) -> int:
        return sum(1 for o in self.outcomes if o.status == OutcomeStatus.WARNING)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization (Celery results, commands)."""
        return {
            "status": self.status.value,
            "trigger": self.trigger.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "users_processed": self.users_processed,
            "users_updated": self.users_updated,
            "users_errored": self.users_errored,
            "users_skipped": self.users_skipped,
            "warnings": self.warnings,
            "error": self.error,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }
