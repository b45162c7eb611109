"""
Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the Kufar notifier test suite.
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

from kufar_notifier.models.config import (
    Configuration,
    LoggingConfig,
    StorageConfig,
    SyncConfig,
    TelegramConfig,
)
from kufar_notifier.models.delivery import DeliveryResult
from kufar_notifier.models.listing import Listing
from kufar_notifier.services.store import SQLiteStore

from helpers import make_ad, make_response


@pytest.fixture
def sample_ad():
    """Create a sample search API ad for testing."""
    return make_ad()


@pytest.fixture
def sample_listing(sample_ad):
    """Create a sample Listing for testing."""
    return Listing.from_api(sample_ad)


@pytest.fixture
def successful_delivery():
    return DeliveryResult(
        success=True, delivery_time=datetime.now(timezone.utc), error_message=None
    )


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def storage_config(temp_dir):
    return StorageConfig(database_path=str(temp_dir / "kufar.db"))


@pytest.fixture
def store(storage_config):
    """SQLite store with initialized tables."""
    store = SQLiteStore(storage_config)
    store.init_db()
    return store


@pytest.fixture
def sample_configuration(temp_dir):
    """Create a sample Configuration for testing."""
    return Configuration(
        telegram=TelegramConfig(bot_token="123456:test-token", commands_enabled=False),
        storage=StorageConfig(database_path=str(temp_dir / "kufar.db")),
        sync=SyncConfig(run_on_startup=True, schedule_interval=None),
        logging=LoggingConfig(level="INFO", directory=str(temp_dir / "logs")),
    )


@pytest.fixture
def mock_http_client():
    client = Mock()
    client.fetch.return_value = make_response(body=b"{}")
    return client


# Pytest configuration
def pytest_collection_modifyitems(config, items):
    """Add the unit marker to every test not marked otherwise."""
    for item in items:
        if not any(
            marker.name in ["integration", "slow"] for marker in item.iter_markers()
        ):
            item.add_marker(pytest.mark.unit)
