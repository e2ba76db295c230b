"""
Settings module for Tier Bot.

Settings are loaded through explicit module paths:
- tierbot.settings.development
- tierbot.settings.production
- tierbot.settings.test
"""
