"""
Pytest configuration and fixtures for Hotline watcher tests.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from hotline_watcher.config.secrets import QueueSecrets
from hotline_watcher.config.settings import Config, DeliveryConfig, DirectoryConfig, WorkerConfig
from hotline_watcher.events.models import Category, Report, Subscription, Tag, User

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed current time."""
    return NOW


@pytest.fixture
def clock():
    """Clock returning the fixed current time."""
    return lambda: NOW


@pytest.fixture
def test_config():
    """Create a test configuration."""
    return Config(
        version="0.1.0-test",
        worker=WorkerConfig(log_level="DEBUG"),
        directory=DirectoryConfig(api_url="http://localhost:8000", timeout_seconds=5),
        delivery=DeliveryConfig(timeout_seconds=5),
    )


@pytest.fixture
def test_secrets():
    """Queue secrets for tests."""
    return QueueSecrets(
        api_key="test-api-key",
        host="localhost",
        username="guest",
        password="guest",
        port=5672,
    )


@pytest.fixture
def spam_tag():
    """A tag whose category lists it again."""
    category = Category(id=1, name="Abuse", insert_date="2023-01-01T00:00:00.000Z")
    tag = Tag(id=5, name="spam", category=category, insert_date="2023-01-01T00:00:00.000Z")
    category.tags.append(tag)
    return tag


@pytest.fixture
def sample_report(spam_tag):
    """Report with one tag, a reason and two reported users."""
    return Report(
        id=42,
        reporter=User(id="100"),
        tags=[spam_tag],
        reason="abuse",
        links=[],
        reported_users=[User(id="111"), User(id="222")],
        confirmation_users=[User(id="300")],
        insert_date="2024-06-01T10:00:00.000Z",
        update_date="2024-06-01T11:55:00.000Z",
    )


@pytest.fixture
def webhook_subscription():
    """Webhook-style subscriber."""
    return Subscription(
        id=7,
        url="https://discord.example/api/webhooks/7/token",
        expected_response_code=200,
        discord_webhook=True,
    )


@pytest.fixture
def generic_subscription():
    """Generic HTTP subscriber."""
    return Subscription(
        id=8,
        url="https://consumer.example/hotline",
        expected_response_code=201,
        discord_webhook=False,
    )


@pytest.fixture
def mock_publisher():
    """Publisher that records published messages."""
    publisher = AsyncMock()
    publisher.publish = AsyncMock(return_value=None)
    return publisher
