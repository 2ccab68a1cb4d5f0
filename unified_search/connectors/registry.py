"""Registry of configured backend connectors.

Invariants:
- ``config.id`` is unique across every registered connector.
- Iteration order is registration order; search fan-out and first-seen
  deduplication depend on it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Iterable

from pydantic import ValidationError

from unified_search.connectors import UnsupportedServiceError, build_connector
from unified_search.core.config import settings
from unified_search.schema.search import ServiceConfig

logger = logging.getLogger("unified_search.registry")

ServiceLoader = Callable[[], Awaitable[Iterable[ServiceConfig | dict[str, Any]]]]
ConnectorFactory = Callable[[ServiceConfig], Any]


class DuplicateServiceError(ValueError):
    """Raised when a connector id is already registered."""


async def load_services_from_settings() -> list[dict[str, Any]]:
    """Default loader: service definitions from the SERVICES setting."""
    return list(settings.services)


class ServiceRegistry:
    """Holds the live connector set and refreshes it from a service loader."""

    def __init__(
        self,
        loader: ServiceLoader | None = None,
        *,
        factory: ConnectorFactory = build_connector,
    ) -> None:
        self._loader = loader
        self._factory = factory
        self._connectors: dict[str, Any] = {}
        self._managed_ids: set[str] = set()

    def get_all_connectors(self) -> list[Any]:
        return list(self._connectors.values())

    def get_connector(self, service_id: str) -> Any | None:
        return self._connectors.get(service_id)

    def add_connector(self, connector: Any) -> None:
        """Register a connector built outside the loader."""
        service_id = connector.config.id
        if service_id in self._connectors:
            raise DuplicateServiceError(f"Service id {service_id!r} is already registered")
        self._connectors[service_id] = connector

    def remove_connector(self, service_id: str) -> bool:
        self._managed_ids.discard(service_id)
        return self._connectors.pop(service_id, None) is not None

    async def load_saved_services(self) -> None:
        """Pick up added, changed and removed services from the loader.

        Loader failures keep the current connector set; bad entries are skipped.
        """
        if self._loader is None:
            return
        try:
            raw_configs = list(await self._loader())
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                json.dumps({"event": "registry_load_failed", "error": str(exc)})
            )
            return

        loaded: dict[str, Any] = {}
        for raw in raw_configs:
            config = self._coerce_config(raw)
            if config is None or not config.enabled:
                continue
            if config.id in loaded:
                logger.warning(json.dumps({"event": "registry_duplicate_id", "service_id": config.id}))
                continue
            if config.id in self._connectors and config.id not in self._managed_ids:
                logger.error(json.dumps({"event": "registry_id_conflict", "service_id": config.id}))
                continue
            existing = self._connectors.get(config.id)
            if existing is not None and existing.config == config:
                loaded[config.id] = existing
                continue
            try:
                loaded[config.id] = self._factory(config)
            except UnsupportedServiceError as exc:
                logger.warning(
                    json.dumps(
                        {
                            "event": "registry_unsupported_type",
                            "service_id": config.id,
                            "service_type": config.type,
                            "error": str(exc),
                        }
                    )
                )

        refreshed: dict[str, Any] = {}
        for service_id, connector in self._connectors.items():
            if service_id not in self._managed_ids:
                refreshed[service_id] = connector
            elif service_id in loaded:
                refreshed[service_id] = loaded.pop(service_id)
        refreshed.update(loaded)
        self._managed_ids = {
            service_id for service_id in refreshed if service_id in self._managed_ids or service_id in loaded
        }
        self._connectors = refreshed

    @staticmethod
    def _coerce_config(raw: ServiceConfig | dict[str, Any]) -> ServiceConfig | None:
        if isinstance(raw, ServiceConfig):
            return raw
        try:
            return ServiceConfig.model_validate(raw)
        except ValidationError as exc:
            logger.warning(
                json.dumps({"event": "registry_invalid_config", "error": str(exc.errors(include_url=False))})
            )
            return None
