"""
Pytest configuration and shared fixtures for Tier Bot tests.

This file provides common test fixtures and configuration that can be used
across all test modules in the project.
"""

import os

import django

import pytest

# Configure Django before any imports
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "tierbot.settings.test")
django.setup()

from django.core.cache import cache  # noqa: E402

from services.reconciliation.guard import RunGuard  # noqa: E402
from services.tiers.table import TierTable  # noqa: E402
from tests.mocks.reconciliation_fakes import (  # noqa: E402
    FakeLedger,
    FakePlatform,
    FakeStore,
    RecordingDelay,
)

TEST_TIERS = [
    {"name": "Dolphin", "emoji": "🐬", "min_balance": "100", "role_ref": "role-dolphin"},
    {"name": "Shark", "emoji": "🦈", "min_balance": "1000", "role_ref": "role-shark"},
    {"name": "Whale", "emoji": "🐳", "min_balance": "10000", "role_ref": "role-whale"},
]


@pytest.fixture
def clear_cache():
    """Clear Django cache before and after each test."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def tiers():
    """Dolphin >= 100, Shark >= 1000, Whale >= 10000."""
    return TierTable.from_config(TEST_TIERS)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def delay():
    return RecordingDelay()


@pytest.fixture
def guard():
    return RunGuard("test")
