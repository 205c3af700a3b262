"""
Shared fixtures: in-memory ports, a fixed clock and isolated settings.
"""

import pytest

from src.config.settings import Settings
from src.core.workflow.transitions import TransitionTable
from tests.fakes import (
    FakeGateway,
    FakeStorage,
    InMemoryHomologationRepository,
    InMemoryPaymentRepository,
    NOW,
)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def homologations():
    return InMemoryHomologationRepository()


@pytest.fixture
def payments():
    return InMemoryPaymentRepository()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def table():
    return TransitionTable()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        local_storage_dir=str(tmp_path / "uploads"),
        storage_backend="local",
        api_key="test-key",
        api_password="secret",
        site_url="https://homologar.test",
        api_base_url="https://api.homologar.test",
        db_connect_timeout=1.0,
    )

