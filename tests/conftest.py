"""
Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the BOOTH notifier test suite.
"""

import os
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from factories import InMemoryRepository, RecordingTransport, make_item, make_payload

from booth_notifier.models.config import (
    BoothConfig,
    Configuration,
    DiscordConfig,
    StorageConfig,
)
from booth_notifier.models.delivery import DeliveryResult
from booth_notifier.models.destination import AudienceGate


# Test data fixtures
@pytest.fixture
def sample_payload():
    """Create a sample item detail record for testing."""
    return make_payload()


@pytest.fixture
def sample_item():
    """Create a sample general-audience Item tagged VRChat and Avatar."""
    return make_item()


@pytest.fixture
def adult_item():
    """Create a sample adult-flagged Item."""
    return make_item(item_id=1000002, name="大人向けイラスト集", is_adult=True)


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def sample_configuration(tmp_path):
    """Create a sample Configuration for testing."""
    return Configuration(
        discord=DiscordConfig(bot_token="test_bot_token", max_retries=1, retry_delay=0),
        booth=BoothConfig(),
        storage=StorageConfig(database_path=str(tmp_path / "notifier.db")),
        polling_interval=60,
        fetch_interval=0,
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture
def mock_message_dispatcher():
    """Create a mock Discord dispatcher for testing."""
    dispatcher = Mock()
    dispatcher.deliver.return_value = DeliveryResult(
        destination_id=1, success=True, delivery_time=datetime.now(timezone.utc)
    )
    dispatcher.resolve_audience_gate.return_value = AudienceGate.GENERAL_ONLY
    dispatcher.test_connection.return_value = True
    return dispatcher


# Environment fixtures
@pytest.fixture
def mock_env_vars():
    """Mock environment variables for testing."""
    env_vars = {"DISCORD_BOT_TOKEN": "test_bot_token"}

    original_values = {}
    for key, value in env_vars.items():
        original_values[key] = os.environ.get(key)
        os.environ[key] = value

    yield env_vars

    for key, original_value in original_values.items():
        if original_value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original_value


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "unit: mark test as unit test")


def pytest_collection_modifyitems(config, items):
    """Add the unit marker to every test not marked otherwise."""
    for item in items:
        if not any(
            marker.name in ["integration", "slow"] for marker in item.iter_markers()
        ):
            item.add_marker(pytest.mark.unit)
