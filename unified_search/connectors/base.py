"""Base connector primitives and the adapter contract consumed by search."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from unified_search.connectors.http import ExternalAPIError
from unified_search.schema.search import SearchOptions, ServiceConfig


@runtime_checkable
class SearchAdapter(Protocol):
    """Anything registered with the search engine: a config plus an optional ``search``."""
    config: ServiceConfig


def is_searchable(adapter: Any) -> bool:
    """Return True when the adapter exposes a callable ``search``."""
    return callable(getattr(adapter, "search", None))


class BaseConnector:
    """Shared HTTP plumbing for backend connectors.

    Subclasses that can search implement ``async search(term, options=None)``
    returning the backend's native result dictionaries.
    """
    service_type: str
    api_key_header = "X-Api-Key"

    def __init__(self, config: ServiceConfig) -> None:
        self.config = config

    @property
    def base_url(self) -> str:
        if not self.config.url:
            raise ExternalAPIError(f"{self.config.name} has no base URL configured")
        return self.config.url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"accept": "application/json"}
        if self.config.api_key:
            headers[self.api_key_header] = self.config.api_key
        return headers

    @staticmethod
    def _page_size(options: SearchOptions | None) -> int | None:
        return options.limit_per_service if options else None
