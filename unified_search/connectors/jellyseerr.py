from __future__ import annotations

from typing import Any

from unified_search.connectors.base import BaseConnector
from unified_search.connectors.http import ExternalAPIError, fetch_json
from unified_search.schema.search import SearchOptions


class JellyseerrConnector(BaseConnector):
    service_type = "jellyseerr"

    async def search(self, term: str, options: SearchOptions | None = None) -> list[dict[str, Any]]:
        payload = await fetch_json(
            f"{self.base_url}/api/v1/search",
            headers=self._headers(),
            params={"query": term, "page": 1, "language": "en"},
            service_type=self.service_type,
        )
        if not isinstance(payload, dict):
            raise ExternalAPIError("Jellyseerr search returned an unexpected payload")
        # Person hits share the endpoint but never map to a movie or series.
        return [
            result
            for result in payload.get("results") or []
            if isinstance(result, dict) and result.get("mediaType") != "person"
        ]
