"""
Service layer constants - API timeouts, retry counts, ledger paging.

Magic numbers used by the ledger and role platform clients live here so the
clients and their tests agree on them.
"""

# HTTP API Timeouts (seconds)
API_TIMEOUT = 30  # Standard HTTP request timeout (Sui JSON-RPC)
API_TIMEOUT_SHORT = 15  # Short timeout for role platform calls (Discord)

# Ledger
DEFAULT_ASSET_DECIMALS = 9
SUI_MAX_PAGE_LIMIT = 50  # Fullnodes cap suix_getCoins pages at 50 objects
SUI_MAX_PAGES = 100  # Stop following cursors after this many pages per address

# Role platform
DEFAULT_RATE_LIMIT_RETRIES = 3
DEFAULT_MAX_RETRY_AFTER = 30.0  # Never sleep longer than this on one 429

# Reconciliation
DEFAULT_INTER_USER_DELAY = 0.2  # Seconds between users
DEFAULT_ADDRESS_CONCURRENCY_LIMIT = 5
DEFAULT_SCHEDULE_SPEC = "0 0 * * *"  # Daily at 00:00 UTC
DEFAULT_RUN_GUARD_TTL = 3600  # Seconds a cache-backed guard may be held
