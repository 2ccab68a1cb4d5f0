"""Concurrent fan-out of one search term to every eligible backend adapter.

Invariants:
- One adapter's failure or timeout never affects another adapter's results.
- The join waits for every adapter to return or time out; a late result from a
  timed-out adapter is discarded.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from time import monotonic
from typing import Any, Sequence

from unified_search.connectors.base import SearchAdapter, is_searchable
from unified_search.connectors.http import ExternalAPIError, ServiceAPIError
from unified_search.connectors.observability import SearchMonitor
from unified_search.core.config import settings
from unified_search.schema.search import CanonicalSearchResult, SearchOptions, UnifiedSearchError
from unified_search.services.normalizer import normalize_results
from unified_search.utils.redaction import redact_secrets

logger = logging.getLogger("unified_search.search")

SEARCH_TIMEOUT_MESSAGE = "Search timeout"
SEARCH_CANCELLED_MESSAGE = "Search cancelled"
JELLYSEERR_BAD_REQUEST_HINT = "Try using a different search term or check your Jellyseerr configuration."


class SearchTimeoutError(Exception):
    """Raised when an adapter does not answer within its timeout."""

    def __init__(self) -> None:
        super().__init__(SEARCH_TIMEOUT_MESSAGE)


@dataclass(slots=True)
class AdapterOutcome:
    """Results or the error of a single adapter call."""
    results: list[CanonicalSearchResult] = field(default_factory=list)
    error: UnifiedSearchError | None = None


@dataclass(slots=True)
class OrchestratorOutcome:
    """Merged adapter results (in fan-out order) and per-adapter errors."""
    results: list[CanonicalSearchResult] = field(default_factory=list)
    errors: list[UnifiedSearchError] = field(default_factory=list)


def _discard_late_result(task: asyncio.Task) -> None:
    if not task.cancelled():
        # Retrieve the exception so a late failure is not reported as unhandled.
        task.exception()


class SearchOrchestrator:
    """Fan a term out to adapters with per-adapter timeouts and fault isolation."""

    def __init__(
        self,
        *,
        timeout_ms: int | None = None,
        max_timeout_ms: int | None = None,
        monitor: SearchMonitor | None = None,
    ) -> None:
        self.timeout_ms = timeout_ms or settings.search_timeout_ms
        self.max_timeout_ms = max_timeout_ms or settings.max_search_timeout_ms
        self.monitor = monitor

    def select_adapters(self, adapters: Sequence[SearchAdapter], options: SearchOptions) -> list[SearchAdapter]:
        candidates = [adapter for adapter in adapters if is_searchable(adapter)]
        if options.service_ids:
            allowed = set(options.service_ids)
            candidates = [adapter for adapter in candidates if adapter.config.id in allowed]
        return candidates

    def resolve_timeout(self, adapter: Any) -> float:
        """Per-adapter timeout in seconds; a configured override is clamped to the maximum."""
        configured = getattr(adapter.config, "timeout_ms", None)
        if isinstance(configured, (int, float)) and configured > 0:
            return min(configured, self.max_timeout_ms) / 1000
        return self.timeout_ms / 1000

    async def run(
        self, term: str, adapters: Sequence[SearchAdapter], options: SearchOptions | None = None
    ) -> OrchestratorOutcome:
        options = options or SearchOptions()
        eligible = self.select_adapters(adapters, options)
        settled = await asyncio.gather(*(self._search_adapter(term, adapter, options) for adapter in eligible))

        outcome = OrchestratorOutcome()
        for item in settled:
            outcome.results.extend(item.results)
            if item.error is not None:
                outcome.errors.append(item.error)
        return outcome

    async def _call_with_timeout(self, term: str, adapter: Any, options: SearchOptions, timeout: float) -> Any:
        task = asyncio.ensure_future(adapter.search(term, options))
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task in done:
            # An adapter that cancels itself is a backend failure, not a cancelled search.
            if task.cancelled():
                raise ExternalAPIError(SEARCH_CANCELLED_MESSAGE)
            return task.result()
        # Request cancellation but do not wait for it; whatever the adapter
        # eventually produces is dropped.
        task.cancel()
        task.add_done_callback(_discard_late_result)
        raise SearchTimeoutError()

    async def _search_adapter(self, term: str, adapter: Any, options: SearchOptions) -> AdapterOutcome:
        config = adapter.config
        if self.monitor:
            await self.monitor.record_start(config.id, config.type)
        start = monotonic()
        try:
            raw_results = await self._call_with_timeout(term, adapter, options, self.resolve_timeout(adapter))
            mapped = normalize_results(raw_results, config, options.media_types, connector=adapter)
            results = mapped[: options.limit_per_service]
        except Exception as exc:  # noqa: BLE001
            latency_ms = (monotonic() - start) * 1000
            message = self._error_message(exc, config.type)
            self._log_failure(exc, config.id, config.type, message)
            if self.monitor:
                await self.monitor.record_failure(
                    config.id,
                    latency_ms=latency_ms,
                    error=message,
                    timed_out=isinstance(exc, SearchTimeoutError),
                )
            return AdapterOutcome(
                error=UnifiedSearchError(service_id=config.id, service_type=config.type, message=message)
            )

        if self.monitor:
            await self.monitor.record_success(
                config.id, latency_ms=(monotonic() - start) * 1000, result_count=len(results)
            )
        return AdapterOutcome(results=results)

    @staticmethod
    def _error_message(exc: Exception, service_type: str) -> str:
        message = redact_secrets(str(exc)) or "Unknown search error."
        if isinstance(exc, ServiceAPIError) and service_type == "jellyseerr" and exc.status_code == 400:
            message = f"{message} {JELLYSEERR_BAD_REQUEST_HINT}"
        return message

    @staticmethod
    def _log_failure(exc: Exception, service_id: str, service_type: str, message: str) -> None:
        payload = {
            "event": "search_adapter_failed",
            "service_id": service_id,
            "service_type": service_type,
            "error": message,
        }
        if isinstance(exc, ServiceAPIError):
            # Rejections such as a too-short term are expected; keep them out of warnings.
            payload["status_code"] = exc.status_code
            logger.debug(json.dumps(payload))
        else:
            logger.warning(json.dumps(payload))
