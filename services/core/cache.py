"""
Cache key management for Tier Bot.

All cache keys use colon (:) as separators for consistency.
"""


class CacheManager:
    """Centralized cache key management."""

    RUN_GUARD_PREFIX = "run_guard"
    RECONCILIATION_PREFIX = "reconciliation"

    @staticmethod
    def run_guard(name: str) -> str:
        """Cache key for a shared single-flight run guard."""
        return f"{CacheManager.RUN_GUARD_PREFIX}:lock:{name}"

    @staticmethod
    def last_run_summary(name: str) -> str:
        """Cache key for the summary of the last finished pass."""
        return f"{CacheManager.RECONCILIATION_PREFIX}:last_run:{name}"
