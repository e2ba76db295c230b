"""
Role platform access and per-user tier role synchronization.
"""

from services.roles.client import DiscordConfig, DiscordRoleClient
from services.roles.synchronizer import RoleSynchronizer

__all__ = ["DiscordConfig", "DiscordRoleClient", "RoleSynchronizer"]
