from __future__ import annotations

from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from unified_search.core.config import settings


class ExternalAPIError(Exception):
    pass


class ServiceAPIError(ExternalAPIError):
    """A backend rejected the request (4xx); expected and not worth retrying."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        service_type: str | None = None,
        endpoint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.service_type = service_type
        self.endpoint = endpoint


class ServerError(ExternalAPIError):
    pass


async def fetch_json(
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    method: str = "GET",
    service_type: str | None = None,
) -> Any:
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(settings.http_retry_attempts),
        wait=wait_exponential_jitter(initial=0.25, max=2),
        retry=retry_if_exception_type((httpx.TransportError, ServerError)),
        reraise=True,
    ):
        with attempt:
            async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
                response = await client.request(method, url, headers=headers, params=params)
                if response.status_code >= 500:
                    raise ServerError(f"Server error {response.status_code}")
                if response.status_code >= 400:
                    raise ServiceAPIError(
                        f"Request rejected with status {response.status_code}",
                        status_code=response.status_code,
                        service_type=service_type,
                        endpoint=httpx.URL(url).path,
                    )
                try:
                    return response.json()
                except ValueError as exc:
                    raise ExternalAPIError("Backend returned a malformed JSON payload") from exc
    raise ExternalAPIError("Unreachable")
