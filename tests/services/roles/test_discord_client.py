"""Tests for the Discord role platform client."""

import httpx
import pytest

from services.core.exceptions import (
    ConfigurationError,
    ExternalMemberNotFoundError,
    RateLimitedError,
    RolePlatformError,
)
from services.roles.client import DiscordConfig, DiscordRoleClient, get_config

BASE = "https://discord.test/api/v10"
MEMBER_URL = f"{BASE}/guilds/guild-1/members/42"


def make_client(handler) -> DiscordRoleClient:
    config = DiscordConfig(
        api_base_url=BASE,
        bot_token="bot-token-value",
        guild_id="guild-1",
        audit_log_reason="Tier reconciliation",
    )
    return DiscordRoleClient(
        config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


class TestDiscordRoleClient:
    @pytest.mark.asyncio
    async def test_list_member_roles(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"user": {"id": "42"}, "roles": ["1", 2]})

        async with make_client(handler) as client:
            roles = await client.list_member_roles("42")

        assert roles == {"1", "2"}
        assert str(seen[0].url) == MEMBER_URL
        assert seen[0].headers["Authorization"] == "Bot bot-token-value"
        assert seen[0].headers["X-Audit-Log-Reason"] == "Tier reconciliation"

    @pytest.mark.asyncio
    async def test_remove_and_add_roles_issue_one_call_per_role(self):
        seen = []

        def handler(request):
            seen.append((request.method, str(request.url)))
            return httpx.Response(204)

        async with make_client(handler) as client:
            await client.remove_roles("42", {"r2", "r1"})
            await client.add_roles("42", {"r3"})

        assert seen == [
            ("DELETE", f"{MEMBER_URL}/roles/r1"),
            ("DELETE", f"{MEMBER_URL}/roles/r2"),
            ("PUT", f"{MEMBER_URL}/roles/r3"),
        ]

    @pytest.mark.asyncio
    async def test_empty_role_sets_make_no_calls(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        async with make_client(handler) as client:
            await client.remove_roles("42", set())
            await client.add_roles("42", set())

        assert seen == []

    @pytest.mark.asyncio
    async def test_429_raises_rate_limited_with_hint(self):
        def handler(request):
            return httpx.Response(
                429, json={"message": "You are being rate limited.", "retry_after": 1.5, "global": False}
            )

        async with make_client(handler) as client:
            with pytest.raises(RateLimitedError) as exc_info:
                await client.add_roles("42", {"r1"})

        assert exc_info.value.retry_after == 1.5
        assert exc_info.value.is_global is False

    @pytest.mark.asyncio
    async def test_429_falls_back_to_retry_after_header(self):
        def handler(request):
            return httpx.Response(429, headers={"Retry-After": "3"}, text="slow down")

        async with make_client(handler) as client:
            with pytest.raises(RateLimitedError) as exc_info:
                await client.list_member_roles("42")

        assert exc_info.value.retry_after == 3.0

    @pytest.mark.asyncio
    async def test_unknown_member_raises_not_found(self):
        def handler(request):
            return httpx.Response(404, json={"message": "Unknown Member", "code": 10007})

        async with make_client(handler) as client:
            with pytest.raises(ExternalMemberNotFoundError):
                await client.list_member_roles("42")

    @pytest.mark.asyncio
    async def test_other_404_is_platform_error(self):
        def handler(request):
            return httpx.Response(404, json={"message": "Unknown Role", "code": 10011})

        async with make_client(handler) as client:
            with pytest.raises(RolePlatformError) as exc_info:
                await client.add_roles("42", {"missing-role"})

        assert not isinstance(exc_info.value, ExternalMemberNotFoundError)
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_server_error_is_platform_error(self):
        async with make_client(lambda request: httpx.Response(500, text="oops")) as client:
            with pytest.raises(RolePlatformError, match="HTTP 500"):
                await client.remove_roles("42", {"r1"})

    @pytest.mark.asyncio
    async def test_network_error_is_platform_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        async with make_client(handler) as client:
            with pytest.raises(RolePlatformError, match="Network error"):
                await client.list_member_roles("42")


class TestDiscordConfig:
    def test_requires_bot_token(self, settings):
        settings.DISCORD_CONFIG = {"BOT_TOKEN": "", "GUILD_ID": "1"}

        with pytest.raises(ConfigurationError, match="BOT_TOKEN"):
            get_config()

    def test_requires_guild_id(self, settings):
        settings.DISCORD_CONFIG = {"BOT_TOKEN": "token", "GUILD_ID": ""}

        with pytest.raises(ConfigurationError, match="GUILD_ID"):
            get_config()

    def test_strips_trailing_slash(self, settings):
        settings.DISCORD_CONFIG = {
            "API_BASE_URL": f"{BASE}/",
            "BOT_TOKEN": "token",
            "GUILD_ID": 123,
        }

        config = get_config()

        assert config.api_base_url == BASE
        assert config.guild_id == "123"
