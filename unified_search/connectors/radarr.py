from __future__ import annotations

from typing import Any

from unified_search.connectors.base import BaseConnector
from unified_search.connectors.http import ExternalAPIError, fetch_json
from unified_search.schema.search import SearchOptions


class RadarrConnector(BaseConnector):
    service_type = "radarr"

    async def search(self, term: str, options: SearchOptions | None = None) -> list[dict[str, Any]]:
        payload = await fetch_json(
            f"{self.base_url}/api/v3/movie/lookup",
            headers=self._headers(),
            params={"term": term},
            service_type=self.service_type,
        )
        if not isinstance(payload, list):
            raise ExternalAPIError("Radarr lookup returned an unexpected payload")
        return payload
