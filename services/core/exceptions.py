"""Custom exception hierarchy for Tier Bot.

Every failure the reconciliation engine knows how to recover from has its own
exception type, so each boundary can catch exactly what it converts into an
outcome and let everything else surface.

Exception Hierarchy:
    TierBotError (base for all custom exceptions)
    ├── LedgerError (base for ledger/RPC errors)
    │   └── LedgerQueryError
    ├── RolePlatformError (base for role platform errors)
    │   ├── ExternalMemberNotFoundError
    │   └── RateLimitedError
    ├── PersistenceError
    │   └── CandidateFetchError
    ├── ReconciliationError
    │   └── RunAlreadyInProgressError
    └── ConfigurationError
        └── TierConfigurationError

Usage:
    from services.core.exceptions import RateLimitedError

    if response.status_code == 429:
        raise RateLimitedError(retry_after=payload["retry_after"])
"""

from typing import Any


class TierBotError(Exception):
    """Base exception for all Tier Bot custom exceptions."""

    pass


# =============================================================================
# Ledger Exceptions
# =============================================================================


class LedgerError(TierBotError):
    """Base exception for errors talking to the ledger."""

    pass


class LedgerQueryError(LedgerError):
    """Raised when holdings for one address cannot be fetched.

    Non-fatal: the aggregator counts the address as holding nothing.

    Attributes:
        address: Address whose query failed
        reason: Optional transport or RPC error description
    """

    def __init__(self, address: str, reason: str | None = None) -> None:
        self.address = address
        self.reason = reason
        message = f"Failed to query holdings for address {address}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


# =============================================================================
# Role Platform Exceptions
# =============================================================================


class RolePlatformError(TierBotError):
    """Raised when a role platform call fails.

    Attributes:
        user_id: Platform user id the call was made for
        status_code: HTTP status code, if the platform answered
    """

    def __init__(
        self,
        message: str,
        user_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.user_id = user_id
        self.status_code = status_code
        super().__init__(message)


class ExternalMemberNotFoundError(RolePlatformError):
    """Raised when the user is not a member of the guild.

    The user is skipped for this pass.
    """

    def __init__(self, user_id: str) -> None:
        super().__init__(
            f"Member {user_id} not found on the role platform",
            user_id=user_id,
            status_code=404,
        )


class RateLimitedError(RolePlatformError):
    """Raised when the role platform rejects a call with a rate limit.

    Attributes:
        retry_after: Seconds the platform asked us to wait before retrying
        is_global: True if the limit applies to the whole bot
    """

    def __init__(
        self,
        retry_after: float,
        user_id: str | None = None,
        is_global: bool = False,
    ) -> None:
        self.retry_after = retry_after
        self.is_global = is_global
        scope = "global" if is_global else "route"
        super().__init__(
            f"Rate limited by role platform ({scope}), retry after {retry_after:.2f}s",
            user_id=user_id,
            status_code=429,
        )


# =============================================================================
# Persistence Exceptions
# =============================================================================


class PersistenceError(TierBotError):
    """Raised when a write to the user store fails.

    Attributes:
        operation: Store operation that failed (e.g., "update_roles")
        user_id: Internal user id, if the write targeted one user
    """

    def __init__(self, operation: str, user_id: Any = None, reason: str | None = None) -> None:
        self.operation = operation
        self.user_id = user_id
        self.reason = reason
        message = f"User store operation '{operation}' failed"
        if user_id is not None:
            message += f" for user {user_id}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class CandidateFetchError(PersistenceError):
    """Raised when the list of users to reconcile cannot be loaded.

    Apart from an unreachable run guard backend, this is the only error that
    fails a whole reconciliation pass.
    """

    def __init__(self, reason: str | None = None) -> None:
        super().__init__("list_candidates", reason=reason)


# =============================================================================
# Reconciliation Exceptions
# =============================================================================


class ReconciliationError(TierBotError):
    """Base exception for reconciliation run control errors."""

    pass


class RunAlreadyInProgressError(ReconciliationError):
    """Raised when a pass is requested while another one holds the run guard."""

    def __init__(self, guard_name: str = "reconciliation") -> None:
        self.guard_name = guard_name
        super().__init__(f"A {guard_name} pass is already in progress")


class RunGuardUnavailableError(ReconciliationError):
    """Raised when the backend holding a shared run guard cannot be reached.

    Attributes:
        guard_name: Name of the guard
        reason: Backend error message
    """

    def __init__(self, guard_name: str, reason: str | None = None) -> None:
        self.guard_name = guard_name
        self.reason = reason
        message = f"Run guard {guard_name} unavailable"
        if reason:
            message += f": {reason}"
        super().__init__(message)


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigurationError(TierBotError):
    """Base exception for configuration/setup errors."""

    pass


class TierConfigurationError(ConfigurationError):
    """Raised when the tier table is invalid.

    Attributes:
        reason: What is wrong with the table
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid tier table: {reason}")
