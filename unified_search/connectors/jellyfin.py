from __future__ import annotations

from typing import Any

from unified_search.connectors.base import BaseConnector
from unified_search.connectors.http import ExternalAPIError, fetch_json
from unified_search.schema.search import SearchOptions


class JellyfinConnector(BaseConnector):
    service_type = "jellyfin"
    api_key_header = "X-Emby-Token"

    def image_url(self, item_id: str, image_type: str = "Primary", *, width: int | None = None) -> str:
        """Build a server-relative image URL for an item."""
        url = f"{self.base_url}/Items/{item_id}/Images/{image_type}"
        if width:
            url = f"{url}?maxWidth={width}"
        return url

    async def search(self, term: str, options: SearchOptions | None = None) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "searchTerm": term,
            "IncludeItemTypes": "Movie,Series",
            "Recursive": "true",
            "Fields": "Overview,Genres,Studios,ProviderIds,PremiereDate,ProductionYear",
        }
        page_size = self._page_size(options)
        if page_size:
            params["Limit"] = page_size
        payload = await fetch_json(
            f"{self.base_url}/Items",
            headers=self._headers(),
            params=params,
            service_type=self.service_type,
        )
        if not isinstance(payload, dict):
            raise ExternalAPIError("Jellyfin search returned an unexpected payload")
        return [item for item in payload.get("Items") or [] if isinstance(item, dict)]
