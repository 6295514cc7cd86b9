"""
Shared fixtures for the preference service and consent client tests.
"""

import os
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ.setdefault('LOG_FORMAT', 'console')

from api.main import create_app
from consent.api_client import PreferenceApiClient
from consent.events import ConsentChannel
from consent.manager import ConsentManager
from consent.storage import MemoryStorage, SharedStorageArea
from core.config import APIConfig, Config, MonitoringConfig, StoreConfig
from services.preference_store import InMemoryPreferenceStore


@pytest.fixture
def test_config() -> Config:
    """Configuration for an isolated in-memory service."""
    return Config(
        environment='test',
        api=APIConfig(cors_origins=['http://localhost:5173']),
        store=StoreConfig(backend='memory'),
        monitoring=MonitoringConfig(log_level='DEBUG', log_format='console', enable_metrics=True)
    )


@pytest.fixture
def store() -> InMemoryPreferenceStore:
    return InMemoryPreferenceStore()


@pytest.fixture
def app(test_config: Config, store: InMemoryPreferenceStore):
    """FastAPI app wired to the in-memory store fixture."""
    return create_app(config=test_config, store=store)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def api_client(app) -> AsyncGenerator[PreferenceApiClient, None]:
    """Consent API client talking to the app in-process."""
    async with PreferenceApiClient("http://test", transport=ASGITransport(app=app)) as api:
        yield api


@pytest.fixture
def storage_area() -> SharedStorageArea:
    return SharedStorageArea()


@pytest.fixture
def storage(storage_area: SharedStorageArea) -> MemoryStorage:
    return storage_area.open_tab()


@pytest.fixture
def channel() -> ConsentChannel:
    return ConsentChannel()


@pytest.fixture
def manager(storage: MemoryStorage, api_client: PreferenceApiClient, channel: ConsentChannel) -> ConsentManager:
    """Consent manager synchronized with the in-process service."""
    return ConsentManager(storage, api_client=api_client, channel=channel)
