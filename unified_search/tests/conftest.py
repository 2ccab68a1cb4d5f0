"""Shared pytest fixtures for the search engine and API tests."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from unified_search.api.deps import get_search_service
from unified_search.connectors.observability import SearchMonitor
from unified_search.connectors.registry import ServiceRegistry
from unified_search.main import app
from unified_search.services.history import SearchHistoryManager
from unified_search.services.orchestrator import SearchOrchestrator
from unified_search.services.search_service import UnifiedSearchService
from unified_search.storage.key_value import InMemoryKeyValueStore
from unified_search.tests.utils import TickingClock


@pytest.fixture()
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture()
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture()
def history(store: InMemoryKeyValueStore, clock: TickingClock) -> SearchHistoryManager:
    return SearchHistoryManager(store, storage_key="UnifiedSearch_history", limit=12, clock=clock)


@pytest.fixture()
def registry() -> ServiceRegistry:
    return ServiceRegistry()


@pytest.fixture()
def monitor() -> SearchMonitor:
    return SearchMonitor()


@pytest.fixture()
def search_service(
    registry: ServiceRegistry, history: SearchHistoryManager, monitor: SearchMonitor
) -> UnifiedSearchService:
    orchestrator = SearchOrchestrator(timeout_ms=200, max_timeout_ms=1_000, monitor=monitor)
    return UnifiedSearchService(registry, history, orchestrator=orchestrator, monitor=monitor)


@pytest_asyncio.fixture()
async def client(search_service: UnifiedSearchService) -> AsyncClient:
    app.dependency_overrides[get_search_service] = lambda: search_service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as async_client:
        yield async_client
    app.dependency_overrides.pop(get_search_service, None)
