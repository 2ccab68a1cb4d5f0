"""Connector classes for searchable backend types."""

from __future__ import annotations

from typing import Dict

from unified_search.connectors.base import BaseConnector
from unified_search.connectors.jellyfin import JellyfinConnector
from unified_search.connectors.jellyseerr import JellyseerrConnector
from unified_search.connectors.radarr import RadarrConnector
from unified_search.connectors.sonarr import SonarrConnector
from unified_search.schema.search import ServiceConfig


class UnsupportedServiceError(ValueError):
    """Raised for a backend type with no connector or normalizer."""


CONNECTOR_TYPES: Dict[str, type[BaseConnector]] = {
    "sonarr": SonarrConnector,
    "radarr": RadarrConnector,
    "jellyseerr": JellyseerrConnector,
    "jellyfin": JellyfinConnector,
}


def build_connector(config: ServiceConfig) -> BaseConnector:
    """Return a connector instance for the given service config."""
    connector_cls = CONNECTOR_TYPES.get(config.type.lower())
    if connector_cls is None:
        raise UnsupportedServiceError(f"Unsupported service type {config.type}")
    return connector_cls(config)
