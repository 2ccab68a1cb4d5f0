"""Shared fakes and payload builders for search tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

from unified_search.schema.search import (
    CanonicalSearchResult,
    ExternalIds,
    MediaType,
    SearchOptions,
    ServiceConfig,
)


class FakeAdapter:
    """Searchable adapter returning canned native payloads."""

    def __init__(
        self,
        service_id: str,
        service_type: str,
        results: list[dict[str, Any]] | None = None,
        *,
        name: str | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self.config = ServiceConfig(
            id=service_id, type=service_type, name=name or service_id, timeout_ms=timeout_ms
        )
        self.results = results or []
        self.delay = delay
        self.error = error
        self.calls: list[tuple[str, SearchOptions | None]] = []
        self.cancelled = False

    async def search(self, term: str, options: SearchOptions | None = None) -> list[dict[str, Any]]:
        self.calls.append((term, options))
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.results


class StubbornAdapter(FakeAdapter):
    """Ignores cancellation and finishes late anyway."""

    async def search(self, term: str, options: SearchOptions | None = None) -> list[dict[str, Any]]:
        self.calls.append((term, options))
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.delay
        while loop.time() < deadline:
            try:
                await asyncio.sleep(deadline - loop.time())
            except asyncio.CancelledError:
                self.cancelled = True
        return self.results


class NonSearchAdapter:
    """Registered backend without a search capability (e.g. a torrent client)."""

    def __init__(self, service_id: str, service_type: str = "qbittorrent", name: str | None = None) -> None:
        self.config = ServiceConfig(id=service_id, type=service_type, name=name or service_id)


class TickingClock:
    """Deterministic ISO clock advancing one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> str:
        self.current += timedelta(seconds=1)
        return self.current.isoformat()


def sonarr_series(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": 0,
        "title": "Severance",
        "overview": "Office workers split their memories.",
        "year": 2022,
        "added": "2022-02-18T00:00:00Z",
        "tvdbId": 371980,
        "tmdbId": 95396,
        "imdbId": "tt11280740",
        "network": "Apple TV+",
        "status": "continuing",
        "seasons": [{"seasonNumber": 1}, {"seasonNumber": 2}],
        "images": [
            {"coverType": "poster", "remoteUrl": "https://img.example/severance-poster.jpg"},
            {"coverType": "fanart", "remoteUrl": "https://img.example/severance-fanart.jpg"},
        ],
    }
    payload.update(overrides)
    return payload


def radarr_movie(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": 12,
        "title": "Dune",
        "overview": "A noble family becomes embroiled in a war.",
        "year": 2021,
        "releaseDate": "2021-10-22",
        "tmdbId": 438631,
        "imdbId": "tt1160419",
        "isAvailable": True,
        "minimumAvailability": "released",
        "runtime": 155,
        "studio": "Legendary Pictures",
        "ratings": {"tmdb": {"value": 7.8, "votes": 10000}},
        "posterUrl": "https://img.example/dune-poster.jpg",
    }
    payload.update(overrides)
    return payload


def jellyseerr_hit(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": 438631,
        "mediaType": "movie",
        "title": "Dune",
        "overview": "A noble family becomes embroiled in a war.",
        "releaseDate": "2021-09-15",
        "posterPath": "/d5NXSklXo0qyIYkgV94XAgMIckC.jpg",
        "voteAverage": 7.8,
        "popularity": 120.5,
        "mediaInfo": {"tmdbId": 438631, "status": 3, "requests": [{"id": 1}]},
    }
    payload.update(overrides)
    return payload


def jellyfin_item(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "Id": "a1b2c3",
        "Name": "Arrival",
        "Type": "Movie",
        "Overview": "A linguist works with the military.",
        "ProductionYear": 2016,
        "PremiereDate": "2016-11-10T00:00:00.0000000Z",
        "RunTimeTicks": 69_000_000_000,
        "CommunityRating": 7.9,
        "Genres": ["Drama", "Science Fiction"],
        "Studios": [{"Name": "Paramount"}],
        "ProviderIds": {"Tmdb": "329865", "Imdb": "tt2543164"},
        "ImageTags": {"Primary": "tag1"},
    }
    payload.update(overrides)
    return payload


def make_result(
    title: str,
    *,
    service_id: str = "svc-1",
    service_type: str = "radarr",
    media_type: MediaType = MediaType.MOVIE,
    native_id: int | str | None = None,
    tmdb_id: int | None = None,
    tvdb_id: int | None = None,
    imdb_id: str | None = None,
    release_date: str | None = None,
    year: int | None = None,
    in_library: bool | None = None,
    rating: float | None = None,
    is_requested: bool | None = None,
    result_id: str | None = None,
    **fields: Any,
) -> CanonicalSearchResult:
    identifier = next(
        (value for value in (tmdb_id, native_id, title.lower()) if value is not None),
        title.lower(),
    )
    return CanonicalSearchResult(
        id=result_id or f"{service_id}:{service_type}:{identifier}",
        title=title,
        release_date=release_date,
        year=year,
        rating=rating,
        media_type=media_type,
        service_id=service_id,
        service_type=service_type,
        service_name=service_id,
        is_in_library=in_library,
        is_requested=is_requested,
        external_ids=ExternalIds(
            tmdb_id=tmdb_id, tvdb_id=tvdb_id, imdb_id=imdb_id, service_native_id=native_id
        ),
        **fields,
    )
