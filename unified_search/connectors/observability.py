"""Per-service metrics for search fan-out calls."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, DefaultDict

logger = logging.getLogger("unified_search.connectors")


@dataclass
class ServiceSearchMetrics:
    """Aggregated counters for one backend instance."""
    started: int = 0
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0
    failure_streak: int = 0
    last_latency_ms: float | None = None
    last_error: str | None = None
    last_result_count: int | None = None


class SearchMonitor:
    """Track per-service search latency and failures for health reporting."""
    def __init__(self) -> None:
        self._metrics: DefaultDict[str, ServiceSearchMetrics] = defaultdict(ServiceSearchMetrics)
        self._service_types: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def record_start(self, service_id: str, service_type: str) -> None:
        async with self._lock:
            self._service_types[service_id] = service_type
            self._metrics[service_id].started += 1

    async def record_success(self, service_id: str, *, latency_ms: float, result_count: int) -> None:
        async with self._lock:
            metrics = self._metrics[service_id]
            metrics.succeeded += 1
            metrics.failure_streak = 0
            metrics.last_latency_ms = latency_ms
            metrics.last_error = None
            metrics.last_result_count = result_count
            payload = {
                "event": "search_success",
                "service_id": service_id,
                "service_type": self._service_types.get(service_id),
                "latency_ms": round(latency_ms, 2),
                "results": result_count,
            }
        logger.debug(json.dumps(payload))

    async def record_failure(
        self,
        service_id: str,
        *,
        latency_ms: float,
        error: str,
        timed_out: bool = False,
    ) -> None:
        """Count a failed call; the orchestrator owns the user-facing log line."""
        async with self._lock:
            metrics = self._metrics[service_id]
            metrics.failed += 1
            metrics.failure_streak += 1
            if timed_out:
                metrics.timed_out += 1
            metrics.last_latency_ms = latency_ms
            metrics.last_error = error

    async def snapshot(self) -> dict[str, Any]:
        """Return a snapshot of all tracked service metrics."""
        async with self._lock:
            return {
                service_id: {
                    "service_type": self._service_types.get(service_id),
                    "started": metrics.started,
                    "succeeded": metrics.succeeded,
                    "failed": metrics.failed,
                    "timed_out": metrics.timed_out,
                    "failure_streak": metrics.failure_streak,
                    "last_latency_ms": metrics.last_latency_ms,
                    "last_error": metrics.last_error,
                    "last_result_count": metrics.last_result_count,
                }
                for service_id, metrics in self._metrics.items()
            }
