"""Unified search facade: fan-out, ranking and search history behind one entry point.

Invariants:
- A term shorter than the minimum length never touches the registry, an adapter
  or the history.
- Backend-shaped failures are reported in ``SearchResponse.errors``, never raised.
- History writes run in the background and never fail a search.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from time import monotonic
from typing import Iterable

from unified_search.connectors.base import is_searchable
from unified_search.connectors.observability import SearchMonitor
from unified_search.connectors.registry import ServiceRegistry
from unified_search.core.config import settings
from unified_search.schema.search import (
    MediaType,
    SearchableServiceSummary,
    SearchHistoryEntry,
    SearchOptions,
    SearchResponse,
)
from unified_search.services.history import SearchHistoryManager, create_history_key, normalize_term
from unified_search.services.orchestrator import SearchOrchestrator
from unified_search.services.ranking import apply_advanced_filters, deduplicate_and_sort

logger = logging.getLogger("unified_search.search")


class SearchState(str, enum.Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class UnifiedSearchService:
    """Single entry point for unified search; build one per application and inject it."""

    def __init__(
        self,
        registry: ServiceRegistry,
        history: SearchHistoryManager,
        *,
        orchestrator: SearchOrchestrator | None = None,
        monitor: SearchMonitor | None = None,
        min_term_length: int | None = None,
    ) -> None:
        self.registry = registry
        self.history = history
        self.monitor = monitor or SearchMonitor()
        self.orchestrator = orchestrator or SearchOrchestrator(monitor=self.monitor)
        self.min_term_length = min_term_length or settings.search_min_term_length
        self.last_outcome: SearchState | None = None
        self._in_flight = 0
        self._last_recorded_key: str | None = None
        self._background: set[asyncio.Task] = set()

    @property
    def state(self) -> SearchState:
        return SearchState.SEARCHING if self._in_flight else SearchState.IDLE

    async def search(
        self,
        term: str,
        options: SearchOptions | None = None,
        *,
        record_history: bool = True,
    ) -> SearchResponse:
        options = options or SearchOptions()
        normalized_term = normalize_term(term)
        if len(normalized_term) < self.min_term_length:
            return SearchResponse(results=[], errors=[], duration_ms=0)

        self._in_flight += 1
        start = monotonic()
        try:
            await self.registry.load_saved_services()
            outcome = await self.orchestrator.run(normalized_term, self.registry.get_all_connectors(), options)
            ranked = deduplicate_and_sort(outcome.results, across_services=options.dedupe_across_services)
            results = apply_advanced_filters(ranked, options)
        except Exception:
            self.last_outcome = SearchState.FAILED
            raise
        finally:
            self._in_flight -= 1

        self.last_outcome = SearchState.SUCCEEDED
        duration_ms = int((monotonic() - start) * 1000)
        logger.info(
            json.dumps(
                {
                    "event": "unified_search",
                    "term_length": len(normalized_term),
                    "results": len(results),
                    "errors": len(outcome.errors),
                    "duration_ms": duration_ms,
                }
            )
        )
        if record_history:
            self._schedule_history(normalized_term, options.service_ids, options.media_types)
        return SearchResponse(results=results, errors=outcome.errors, duration_ms=duration_ms)

    async def get_searchable_services(self) -> list[SearchableServiceSummary]:
        await self.registry.load_saved_services()
        summaries = [
            SearchableServiceSummary(
                service_id=connector.config.id,
                service_name=connector.config.name,
                service_type=connector.config.type,
            )
            for connector in self.registry.get_all_connectors()
            if is_searchable(connector)
        ]
        return sorted(summaries, key=lambda item: (item.service_name.casefold(), item.service_id))

    async def get_history(self) -> list[SearchHistoryEntry]:
        return await self.history.get_history()

    async def record_search(
        self,
        term: str,
        service_ids: Iterable[str] | None = None,
        media_types: Iterable[MediaType | str] | None = None,
    ) -> None:
        service_ids = list(service_ids) if service_ids is not None else None
        media_types = list(media_types) if media_types is not None else None
        await self.history.record(term, service_ids, media_types)
        if len(normalize_term(term)) >= self.min_term_length:
            self._last_recorded_key = create_history_key(term, service_ids, media_types)

    async def remove_history_entry(self, entry: SearchHistoryEntry) -> None:
        await self.history.remove(entry)
        if self._last_recorded_key == create_history_key(entry.term, entry.service_ids, entry.media_types):
            self._last_recorded_key = None

    async def clear_history(self) -> None:
        await self.history.clear()
        self._last_recorded_key = None

    async def wait_for_background_tasks(self) -> None:
        """Await pending history writes (shutdown and tests)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _schedule_history(
        self,
        term: str,
        service_ids: list[str] | None,
        media_types: list[MediaType] | None,
    ) -> None:
        key = create_history_key(term, service_ids, media_types)
        if key == self._last_recorded_key:
            return
        self._last_recorded_key = key
        task = asyncio.create_task(self.history.record(term, service_ids, media_types))
        self._background.add(task)
        task.add_done_callback(self._on_history_task_done)

    def _on_history_task_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(json.dumps({"event": "history_record_failed", "error": str(exc)}))
