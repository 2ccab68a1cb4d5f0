"""End-to-end behaviour of the unified search facade with fake backends."""

from __future__ import annotations

import asyncio

import pytest

from unified_search.connectors.registry import ServiceRegistry
from unified_search.schema.search import MediaType, SearchOptions, ServiceConfig
from unified_search.services.history import SearchHistoryManager
from unified_search.services.orchestrator import SEARCH_TIMEOUT_MESSAGE, SearchOrchestrator
from unified_search.services.search_service import SearchState, UnifiedSearchService
from unified_search.storage.key_value import InMemoryKeyValueStore
from unified_search.tests.utils import (
    FakeAdapter,
    NonSearchAdapter,
    TickingClock,
    jellyseerr_hit,
    radarr_movie,
    sonarr_series,
)


def _dune_backends() -> list[FakeAdapter]:
    # Radarr owns the movie; Jellyseerr holds a request for it under the same TMDB id.
    return [
        FakeAdapter(
            "sonarr-1",
            "sonarr",
            [sonarr_series(title="Dune: Prophecy", tvdbId=422598, tmdbId=90228, imdbId="tt10466872")],
            name="Sonarr",
        ),
        FakeAdapter("radarr-1", "radarr", [radarr_movie()], name="Radarr"),
        FakeAdapter("jellyseerr-1", "jellyseerr", [jellyseerr_hit()], name="Jellyseerr"),
    ]


def _service_ids(results, media_type: MediaType) -> list[str]:
    return [item.service_id for item in results if item.media_type == media_type]


def _register(registry: ServiceRegistry, *adapters) -> None:
    for adapter in adapters:
        registry.add_connector(adapter)


@pytest.mark.asyncio
async def test_short_term_touches_nothing(history: SearchHistoryManager) -> None:
    loads = 0

    async def loader():
        nonlocal loads
        loads += 1
        return []

    adapter = FakeAdapter("radarr-1", "radarr", [radarr_movie()])
    registry = ServiceRegistry(loader)
    registry.add_connector(adapter)
    service = UnifiedSearchService(registry, history)

    response = await service.search(" d ")
    await service.wait_for_background_tasks()

    assert response.results == [] and response.errors == [] and response.duration_ms == 0
    assert loads == 0
    assert adapter.calls == []
    assert history.loaded is False


@pytest.mark.asyncio
async def test_shared_movie_is_kept_once_per_backend_by_default(
    search_service: UnifiedSearchService, registry: ServiceRegistry
) -> None:
    _register(registry, *_dune_backends())

    response = await search_service.search("dune")

    assert response.errors == []
    assert _service_ids(response.results, MediaType.SERIES) == ["sonarr-1"]
    # Not-in-library first, so the request outranks the owned copy.
    assert _service_ids(response.results, MediaType.MOVIE) == ["jellyseerr-1", "radarr-1"]


@pytest.mark.asyncio
async def test_dedupe_across_services_collapses_shared_movie_to_first_backend(
    search_service: UnifiedSearchService, registry: ServiceRegistry
) -> None:
    _register(registry, *_dune_backends())

    response = await search_service.search("dune", SearchOptions(dedupe_across_services=True))

    movies = [item for item in response.results if item.media_type == MediaType.MOVIE]
    assert len(movies) == 1
    assert movies[0].service_id == "radarr-1"
    assert movies[0].id == "radarr-1:radarr:438631"
    assert movies[0].is_in_library is True
    assert _service_ids(response.results, MediaType.SERIES) == ["sonarr-1"]


@pytest.mark.asyncio
async def test_partial_failure_returns_results_and_errors(
    search_service: UnifiedSearchService, registry: ServiceRegistry
) -> None:
    _register(
        registry,
        FakeAdapter("radarr-1", "radarr", [radarr_movie()]),
        FakeAdapter("sonarr-1", "sonarr", [sonarr_series()], delay=2),
        NonSearchAdapter("qbit-1"),
    )

    response = await search_service.search("dune")

    assert [item.service_id for item in response.results] == ["radarr-1"]
    assert [(error.service_id, error.message) for error in response.errors] == [
        ("sonarr-1", SEARCH_TIMEOUT_MESSAGE)
    ]
    assert response.duration_ms >= 0


@pytest.mark.asyncio
async def test_advanced_filters_are_applied_after_merge(
    search_service: UnifiedSearchService, registry: ServiceRegistry
) -> None:
    _register(registry, *_dune_backends())

    response = await search_service.search("dune", SearchOptions(status="requested"))

    assert [item.service_id for item in response.results] == ["jellyseerr-1"]
    assert response.results[0].is_requested is True


@pytest.mark.asyncio
async def test_search_records_history_in_background(
    search_service: UnifiedSearchService, registry: ServiceRegistry, history: SearchHistoryManager
) -> None:
    _register(registry, FakeAdapter("radarr-1", "radarr", [radarr_movie()]))

    await search_service.search("  Dune ", SearchOptions(service_ids=["radarr-1"], media_types=[MediaType.MOVIE]))
    await search_service.wait_for_background_tasks()

    entries = await history.get_history()
    assert len(entries) == 1
    assert entries[0].term == "Dune"
    assert entries[0].service_ids == ["radarr-1"]
    assert entries[0].media_types == ["movie"]


@pytest.mark.asyncio
async def test_repeated_identical_search_is_not_rewritten(
    search_service: UnifiedSearchService, registry: ServiceRegistry, history: SearchHistoryManager
) -> None:
    _register(registry, FakeAdapter("radarr-1", "radarr", [radarr_movie()]))

    await search_service.search("dune")
    await search_service.wait_for_background_tasks()
    first = (await history.get_history())[0].last_searched_at
    await search_service.search("DUNE")
    await search_service.wait_for_background_tasks()

    assert (await history.get_history())[0].last_searched_at == first

    await search_service.search("arrival")
    await search_service.search("dune")
    await search_service.wait_for_background_tasks()

    entries = await history.get_history()
    assert [entry.term for entry in entries] == ["dune", "arrival"]
    assert entries[0].last_searched_at > first


@pytest.mark.asyncio
async def test_search_without_history_recording(
    search_service: UnifiedSearchService, registry: ServiceRegistry, history: SearchHistoryManager
) -> None:
    _register(registry, FakeAdapter("radarr-1", "radarr", [radarr_movie()]))

    await search_service.search("dune", record_history=False)
    await search_service.wait_for_background_tasks()

    assert await history.get_history() == []


@pytest.mark.asyncio
async def test_clearing_history_allows_the_same_search_to_be_recorded_again(
    search_service: UnifiedSearchService, registry: ServiceRegistry
) -> None:
    _register(registry, FakeAdapter("radarr-1", "radarr", [radarr_movie()]))

    await search_service.search("dune")
    await search_service.wait_for_background_tasks()
    await search_service.clear_history()
    await search_service.search("dune")
    await search_service.wait_for_background_tasks()

    assert [entry.term for entry in await search_service.get_history()] == ["dune"]


@pytest.mark.asyncio
async def test_state_reflects_in_flight_searches(registry: ServiceRegistry, history: SearchHistoryManager) -> None:
    release = asyncio.Event()

    class Gate(FakeAdapter):
        async def search(self, term, options=None):
            await release.wait()
            return self.results

    registry.add_connector(Gate("radarr-1", "radarr", [radarr_movie()]))
    service = UnifiedSearchService(registry, history, orchestrator=SearchOrchestrator(timeout_ms=1_000))

    assert service.state is SearchState.IDLE
    pending = asyncio.create_task(service.search("dune"))
    await asyncio.sleep(0.01)
    assert service.state is SearchState.SEARCHING
    release.set()
    await pending
    await service.wait_for_background_tasks()

    assert service.state is SearchState.IDLE
    assert service.last_outcome is SearchState.SUCCEEDED


@pytest.mark.asyncio
async def test_unexpected_engine_failure_propagates(history: SearchHistoryManager) -> None:
    class BrokenRegistry(ServiceRegistry):
        async def load_saved_services(self) -> None:
            raise RuntimeError("registry exploded")

    service = UnifiedSearchService(BrokenRegistry(), history)

    with pytest.raises(RuntimeError):
        await service.search("dune")
    assert service.last_outcome is SearchState.FAILED
    assert service.state is SearchState.IDLE


@pytest.mark.asyncio
async def test_searchable_services_are_sorted_by_name(
    search_service: UnifiedSearchService, registry: ServiceRegistry
) -> None:
    _register(
        registry,
        FakeAdapter("sonarr-1", "sonarr", name="sonarr"),
        NonSearchAdapter("qbit-1", name="Downloads"),
        FakeAdapter("radarr-2", "radarr", name="Radarr"),
        FakeAdapter("radarr-1", "radarr", name="Radarr"),
        FakeAdapter("jellyfin-1", "jellyfin", name="Jellyfin"),
    )

    services = await search_service.get_searchable_services()

    assert [(item.service_name, item.service_id) for item in services] == [
        ("Jellyfin", "jellyfin-1"),
        ("Radarr", "radarr-1"),
        ("Radarr", "radarr-2"),
        ("sonarr", "sonarr-1"),
    ]
    assert await search_service.get_searchable_services() == services


@pytest.mark.asyncio
async def test_services_added_to_the_loader_are_picked_up_on_next_search() -> None:
    configs: list[dict] = [{"id": "radarr-1", "type": "radarr", "name": "Radarr"}]
    built: list[str] = []

    async def loader():
        return list(configs)

    def factory(config: ServiceConfig) -> FakeAdapter:
        built.append(config.id)
        payload = {"radarr": [radarr_movie()], "sonarr": [sonarr_series()]}[config.type]
        adapter = FakeAdapter(config.id, config.type, payload)
        adapter.config = config
        return adapter

    history = SearchHistoryManager(InMemoryKeyValueStore(), clock=TickingClock())
    service = UnifiedSearchService(ServiceRegistry(loader, factory=factory), history)

    first = await service.search("dune", record_history=False)
    configs.append({"id": "sonarr-1", "type": "sonarr", "name": "Sonarr"})
    second = await service.search("dune", record_history=False)

    assert {item.service_id for item in first.results} == {"radarr-1"}
    assert {item.service_id for item in second.results} == {"radarr-1", "sonarr-1"}
    assert built == ["radarr-1", "sonarr-1"]
