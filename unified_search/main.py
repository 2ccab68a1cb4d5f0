"""FastAPI application entrypoint and health reporting utilities.

Invariants:
- Exactly one UnifiedSearchService exists per application; routes receive it
  through ``app.state`` rather than a module-level singleton.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from unified_search.api.router import api_router
from unified_search.connectors.registry import ServiceRegistry, load_services_from_settings
from unified_search.core.config import settings
from unified_search.core.logging import configure_logging
from unified_search.services.history import SearchHistoryManager
from unified_search.services.search_service import UnifiedSearchService
from unified_search.storage.key_value import RedisKeyValueStore, build_store

REPEATED_FAILURE_THRESHOLD = 3


def build_search_service() -> UnifiedSearchService:
    """Wire the registry, history store and facade from settings."""
    registry = ServiceRegistry(load_services_from_settings)
    history = SearchHistoryManager(build_store())
    return UnifiedSearchService(registry, history)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    service = build_search_service()
    app.state.search_service = service
    try:
        yield
    finally:
        await service.wait_for_background_tasks()
        if isinstance(service.history.store, RedisKeyValueStore):
            await service.history.store.close()


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router, prefix=settings.api_prefix)


def _summarize_services(snapshot: dict[str, Any]) -> dict[str, Any]:
    """Condense monitor state into health-friendly telemetry.

    A service is degraded when its last call failed; repeated consecutive
    failures are reported as a separate issue.
    """
    issues: list[dict[str, Any]] = []
    services: dict[str, Any] = {}
    for service_id, metrics in snapshot.items():
        state = "ok"
        last_error = metrics.get("last_error")
        if last_error:
            issues.append({"service_id": service_id, "reason": "last_error", "error": last_error})
            state = "degraded"
        streak = int(metrics.get("failure_streak") or 0)
        if streak >= REPEATED_FAILURE_THRESHOLD:
            issues.append({"service_id": service_id, "reason": "repeated_failures", "failed": streak})
        services[service_id] = {"state": state, **metrics}
    return {"services": services, "issues": issues}


@app.get("/health", tags=["internal"])
@app.get(f"{settings.api_prefix}/health", tags=["internal"])
async def health(request: Request) -> dict[str, Any]:
    """Return health status with per-service search telemetry."""
    service: UnifiedSearchService | None = getattr(request.app.state, "search_service", None)
    if service is None:
        return {"status": "starting"}
    telemetry = _summarize_services(await service.monitor.snapshot())
    status = "ok" if not telemetry["issues"] else "degraded"
    return {"status": status, "search": telemetry}
