"""Shared test fixtures for the Omnisession test suite."""

from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import UUID, uuid4

import pytest

from omnisession.directory.models import Assistant, UserProfile
from omnisession.directory.stores.inmemory import (
    InMemoryAssistantDirectory,
    InMemoryUserDirectory,
)
from omnisession.sessions.stores.inmemory import InMemorySessionStore


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "app_name = 'test'",
                "development.toml": "debug = true",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            (test_config_dir / filename).write_text(content)

    return _create_toml_files


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache before and after each test."""
    from omnisession.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FakeClock:
    """Settable clock for TTL tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def company_id() -> UUID:
    return uuid4()


@pytest.fixture
def user_id() -> str:
    return "user-42"


@pytest.fixture
def default_assistant(company_id: UUID) -> Assistant:
    return Assistant(
        company_id=company_id,
        name="Support Bot",
        language="en",
        session_ttl_hours=1,
        is_default=True,
        created_at=datetime(2023, 6, 1, tzinfo=UTC),
    )


@pytest.fixture
def sales_assistant(company_id: UUID) -> Assistant:
    return Assistant(
        company_id=company_id,
        name="Sales",
        language="fr",
        created_at=datetime(2023, 7, 1, tzinfo=UTC),
    )


@pytest.fixture
def assistants(
    default_assistant: Assistant, sales_assistant: Assistant
) -> InMemoryAssistantDirectory:
    return InMemoryAssistantDirectory([default_assistant, sales_assistant])


@pytest.fixture
def users(company_id: UUID, user_id: str) -> InMemoryUserDirectory:
    return InMemoryUserDirectory(
        [
            UserProfile(
                user_id=user_id,
                company_id=company_id,
                name="Ada Lovelace",
                email="ada@example.com",
            )
        ]
    )


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()
