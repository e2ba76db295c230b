"""
Discord role platform client.

Talks to the Discord REST API with a bot token to read and change a guild
member's roles. Rate limits (HTTP 429) surface as ``RateLimitedError`` with
the ``retry_after`` hint Discord sends; retrying is the caller's decision.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from django.conf import settings

import httpx

from services.core.constants import API_TIMEOUT_SHORT
from services.core.exceptions import (
    ConfigurationError,
    ExternalMemberNotFoundError,
    RateLimitedError,
    RolePlatformError,
)
from services.core.logging import get_logger

logger = get_logger(__name__)

# Discord JSON error code for "Unknown Member"
UNKNOWN_MEMBER_CODE = 10007


@dataclass
class DiscordConfig:
    api_base_url: str
    bot_token: str
    guild_id: str
    audit_log_reason: str = ""


def get_config() -> DiscordConfig:
    cfg = getattr(settings, "DISCORD_CONFIG", {})

    if not cfg.get("BOT_TOKEN"):
        raise ConfigurationError("DISCORD_CONFIG['BOT_TOKEN'] is not configured")
    if not cfg.get("GUILD_ID"):
        raise ConfigurationError("DISCORD_CONFIG['GUILD_ID'] is not configured")

    return DiscordConfig(
        api_base_url=cfg.get("API_BASE_URL", "https://discord.com/api/v10").rstrip("/"),
        bot_token=cfg["BOT_TOKEN"],
        guild_id=str(cfg["GUILD_ID"]),
        audit_log_reason=cfg.get("AUDIT_LOG_REASON", ""),
    )


class DiscordRoleClient:
    """
    Async client for guild member roles.

    Usage:
        async with DiscordRoleClient() as roles:
            held = await roles.list_member_roles(discord_id)
            await roles.remove_roles(discord_id, held & tier_roles)
    """

    def __init__(
        self,
        config: DiscordConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or get_config()
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> "DiscordRoleClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=API_TIMEOUT_SHORT)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict:
        headers = {"Authorization": f"Bot {self.config.bot_token}"}
        if self.config.audit_log_reason:
            headers["X-Audit-Log-Reason"] = self.config.audit_log_reason
        return headers

    def _member_url(self, user_id: str) -> str:
        return f"{self.config.api_base_url}/guilds/{self.config.guild_id}/members/{user_id}"

    @staticmethod
    def _retry_after(response: httpx.Response) -> tuple[float, bool]:
        """Extract the retry-after hint (seconds) and global flag from a 429."""
        try:
            body = response.json()
        except ValueError:
            body = {}
        retry_after = body.get("retry_after") or response.headers.get("Retry-After") or 1.0
        is_global = bool(body.get("global")) or response.headers.get("X-RateLimit-Global") == "true"
        return float(retry_after), is_global

    async def _request(self, method: str, url: str, user_id: str) -> httpx.Response:
        try:
            response = await self._get_client().request(method, url, headers=self._headers())
        except httpx.RequestError as e:
            raise RolePlatformError(f"Network error: {e!s}", user_id=user_id) from e

        if response.status_code == 429:
            retry_after, is_global = self._retry_after(response)
            raise RateLimitedError(retry_after=retry_after, user_id=user_id, is_global=is_global)

        if response.status_code == 404:
            try:
                code = response.json().get("code")
            except ValueError:
                code = None
            if code == UNKNOWN_MEMBER_CODE:
                raise ExternalMemberNotFoundError(user_id)

        if response.is_error:
            raise RolePlatformError(
                f"{method} {url} failed: HTTP {response.status_code}: {response.text[:200]}",
                user_id=user_id,
                status_code=response.status_code,
            )
        return response

    async def list_member_roles(self, user_id: str) -> set[str]:
        """
        Role ids currently held by a guild member.

        Raises:
            ExternalMemberNotFoundError: If the user is not in the guild
            RateLimitedError: On HTTP 429
            RolePlatformError: On any other failure
        """
        response = await self._request("GET", self._member_url(user_id), user_id)
        try:
            return {str(role_id) for role_id in response.json().get("roles", [])}
        except (ValueError, AttributeError) as e:
            raise RolePlatformError(
                f"Malformed member payload for {user_id}", user_id=user_id
            ) from e

    async def remove_roles(self, user_id: str, role_refs: Iterable[str]) -> None:
        """Remove roles one by one. Removing a role the member lacks is a no-op."""
        for role_ref in sorted(role_refs):
            await self._request("DELETE", f"{self._member_url(user_id)}/roles/{role_ref}", user_id)
            logger.debug(f"Removed role {role_ref} from {user_id}")

    async def add_roles(self, user_id: str, role_refs: Iterable[str]) -> None:
        """Add roles one by one. Adding a role the member holds is a no-op."""
        for role_ref in sorted(role_refs):
            await self._request("PUT", f"{self._member_url(user_id)}/roles/{role_ref}", user_id)
            logger.debug(f"Added role {role_ref} to {user_id}")
