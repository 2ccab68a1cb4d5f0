"""Canonical search models shared by connectors, the search engine and the API."""

from __future__ import annotations

import enum
from typing import Annotated, Literal, Union

from pydantic import Field

from unified_search.core.config import settings
from unified_search.schema.base import CamelModel, FrozenCamelModel


class MediaType(str, enum.Enum):
    """Media categories a canonical result can carry."""
    MOVIE = "movie"
    SERIES = "series"


class ServiceConfig(CamelModel):
    """Configured backend instance as stored by the service registry."""
    id: str
    type: str
    name: str
    url: str | None = None
    api_key: str | None = Field(default=None, exclude=True, repr=False)
    timeout_ms: int | None = None
    enabled: bool = True


class ExternalIds(FrozenCamelModel):
    """Cross-reference identifiers reported by a backend."""
    tmdb_id: int | None = None
    tvdb_id: int | None = None
    imdb_id: str | None = None
    service_native_id: int | str | None = None


class SonarrExtra(FrozenCamelModel):
    kind: Literal["sonarr"] = "sonarr"
    network: str | None = None
    status: str | None = None
    next_airing: str | None = None
    season_count: int = 0


class RadarrExtra(FrozenCamelModel):
    kind: Literal["radarr"] = "radarr"
    minimum_availability: str | None = None
    runtime: int | None = None
    studio: str | None = None


class JellyseerrExtra(FrozenCamelModel):
    kind: Literal["jellyseerr"] = "jellyseerr"
    media_status: int | None = None


class JellyfinExtra(FrozenCamelModel):
    kind: Literal["jellyfin"] = "jellyfin"
    genres: str | None = None
    studios: str | None = None


SearchResultExtra = Annotated[
    Union[SonarrExtra, RadarrExtra, JellyseerrExtra, JellyfinExtra],
    Field(discriminator="kind"),
]


class CanonicalSearchResult(FrozenCamelModel):
    """Backend-agnostic search hit produced by the result normalizer."""
    id: str
    title: str
    overview: str | None = None
    release_date: str | None = None
    year: int | None = None
    poster_url: str | None = None
    backdrop_url: str | None = None
    rating: float | None = None
    popularity: float | None = None
    runtime: int | None = None
    media_type: MediaType
    service_id: str
    service_type: str
    service_name: str
    is_in_library: bool | None = None
    is_available: bool | None = None
    is_requested: bool | None = None
    external_ids: ExternalIds = Field(default_factory=ExternalIds)
    extra: SearchResultExtra | None = None


class SearchOptions(CamelModel):
    """Per-call search options; filter hints may be ignored by backends."""
    service_ids: list[str] | None = None
    media_types: list[MediaType] | None = None
    limit_per_service: int = Field(default_factory=lambda: settings.search_limit_per_service, ge=1)
    quality: str | None = None
    status: str | None = None
    genres: list[str] | None = None
    release_year_min: int | None = None
    release_year_max: int | None = None
    release_type: str | None = None
    dedupe_across_services: bool = False


class UnifiedSearchError(FrozenCamelModel):
    """A single backend failure captured alongside successful results."""
    service_id: str
    service_type: str
    message: str


class SearchResponse(CamelModel):
    """Merged response returned by the unified search facade."""
    results: list[CanonicalSearchResult] = Field(default_factory=list)
    errors: list[UnifiedSearchError] = Field(default_factory=list)
    duration_ms: int = 0


class SearchableServiceSummary(FrozenCamelModel):
    """Read-only projection of a searchable backend for filter pickers."""
    service_id: str
    service_name: str
    service_type: str


class SearchHistoryEntry(FrozenCamelModel):
    """One distinct recent search (term plus filters)."""
    term: str
    last_searched_at: str
    service_ids: list[str] | None = None
    media_types: list[str] | None = None


class HistoryRecordRequest(CamelModel):
    """Body of an explicit history record call."""
    term: str
    service_ids: list[str] | None = None
    media_types: list[MediaType] | None = None
