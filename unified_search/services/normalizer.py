"""Map backend-native search hits onto CanonicalSearchResult.

Invariants:
- Mapping is pure: the same native hit from the same backend instance always
  yields the same canonical ``id`` (``<serviceId>:<backendType>:<nativeId>``).
- Adding a backend type means adding one mapping function to NORMALIZERS.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, Sequence

from pydantic import ValidationError

from unified_search.schema.search import (
    CanonicalSearchResult,
    ExternalIds,
    JellyfinExtra,
    JellyseerrExtra,
    MediaType,
    RadarrExtra,
    ServiceConfig,
    SonarrExtra,
)

logger = logging.getLogger("unified_search.search")

TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p/original"
JELLYFIN_TICKS_PER_MINUTE = 10_000_000 * 60


class NormalizationError(ValueError):
    """Raised when a native hit cannot be mapped to the canonical shape."""


def _record(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _image(item: dict[str, Any], field: str, cover_type: str) -> str | None:
    direct = _str(item.get(field))
    if direct:
        return direct
    for image in item.get("images") or []:
        image = _record(image)
        if image.get("coverType") == cover_type:
            return _str(image.get("remoteUrl")) or _str(image.get("url"))
    return None


def _in_library(native_id: int | None) -> bool:
    return bool(native_id and native_id > 0)


def _title(value: Any) -> str:
    title = _str(value)
    if title is None:
        raise NormalizationError("result has no title")
    return title


def map_sonarr_result(item: dict[str, Any], config: ServiceConfig, connector: Any = None) -> CanonicalSearchResult:
    native_id = _int(item.get("id"))
    tvdb_id = _int(item.get("tvdbId"))
    tmdb_id = _int(item.get("tmdbId"))
    identifier = _first(tvdb_id, tmdb_id, native_id)
    if identifier is None:
        raise NormalizationError("series has no usable identifier")
    statistics = _record(item.get("statistics"))
    return CanonicalSearchResult(
        id=f"{config.id}:sonarr:{identifier}",
        title=_title(item.get("title")),
        overview=_str(item.get("overview")),
        release_date=_str(item.get("added")),
        year=_int(item.get("year")) or None,
        poster_url=_image(item, "posterUrl", "poster"),
        backdrop_url=_image(item, "backdropUrl", "fanart"),
        popularity=_number(statistics.get("percentOfEpisodes")),
        media_type=MediaType.SERIES,
        service_id=config.id,
        service_type=config.type,
        service_name=config.name,
        is_in_library=_in_library(native_id),
        external_ids=ExternalIds(
            tmdb_id=tmdb_id,
            tvdb_id=tvdb_id,
            imdb_id=_str(item.get("imdbId")),
            service_native_id=native_id,
        ),
        extra=SonarrExtra(
            network=_str(item.get("network")),
            status=_str(item.get("status")),
            next_airing=_str(item.get("nextAiring")),
            season_count=len(item.get("seasons") or []),
        ),
    )


def map_radarr_result(item: dict[str, Any], config: ServiceConfig, connector: Any = None) -> CanonicalSearchResult:
    native_id = _int(item.get("id"))
    tmdb_id = _int(item.get("tmdbId"))
    imdb_id = _str(item.get("imdbId"))
    identifier = _first(tmdb_id, imdb_id, native_id)
    if identifier is None:
        raise NormalizationError("movie has no usable identifier")
    ratings = _record(item.get("ratings"))
    # Radarr v3+ nests ratings per provider; older builds expose a flat value.
    rating = _number(ratings.get("value"))
    if rating is None:
        rating = _number(_record(ratings.get("tmdb")).get("value"))
    statistics = _record(item.get("statistics"))
    return CanonicalSearchResult(
        id=f"{config.id}:radarr:{identifier}",
        title=_title(item.get("title")),
        overview=_str(item.get("overview")),
        release_date=_str(item.get("releaseDate")) or _str(item.get("inCinemas")) or _str(item.get("digitalRelease")),
        year=_int(item.get("year")) or None,
        poster_url=_image(item, "posterUrl", "poster"),
        backdrop_url=_image(item, "backdropUrl", "fanart"),
        rating=rating,
        popularity=_number(statistics.get("percentAvailable")),
        runtime=_int(item.get("runtime")),
        media_type=MediaType.MOVIE,
        service_id=config.id,
        service_type=config.type,
        service_name=config.name,
        is_in_library=_in_library(native_id),
        is_available=item.get("isAvailable") if isinstance(item.get("isAvailable"), bool) else None,
        external_ids=ExternalIds(tmdb_id=tmdb_id, imdb_id=imdb_id, service_native_id=native_id),
        extra=RadarrExtra(
            minimum_availability=_str(item.get("minimumAvailability")),
            runtime=_int(item.get("runtime")),
            studio=_str(item.get("studio")),
        ),
    )


def map_jellyseerr_result(
    item: dict[str, Any], config: ServiceConfig, connector: Any = None
) -> CanonicalSearchResult:
    """Jellyseerr movie and tv hits differ in shape; read fields from the hit, then mediaInfo."""
    media_info = _record(item.get("mediaInfo"))

    def pick(field: str, reader: Callable[[Any], Any]) -> Any:
        return _first(reader(item.get(field)), reader(media_info.get(field)))

    tmdb_id = _first(_int(media_info.get("tmdbId")), _int(item.get("tmdbId")))
    tvdb_id = _first(_int(media_info.get("tvdbId")), _int(item.get("tvdbId")))
    imdb_id = _first(_str(media_info.get("imdbId")), _str(item.get("imdbId")))
    native_id = _int(item.get("id"))
    identifier = _first(tmdb_id, native_id)
    if identifier is None:
        raise NormalizationError("request hit has no usable identifier")

    media_tag = _str(item.get("mediaType"))
    title = _first(
        _str(item.get("title")),
        _str(item.get("name")),
        _str(media_info.get("title")),
        _str(media_info.get("name")),
    )
    date_field = "releaseDate" if media_tag == "movie" else "firstAirDate"
    poster = pick("posterPath", _str)
    backdrop = pick("backdropPath", _str)
    requests = [value for value in (item.get("requests"), media_info.get("requests")) if isinstance(value, list)]
    media_status = _first(_int(media_info.get("status")), _int(item.get("mediaStatus")))

    return CanonicalSearchResult(
        id=f"{config.id}:jellyseerr:{identifier}",
        title=_title(title),
        overview=pick("overview", _str),
        release_date=pick(date_field, _str),
        poster_url=f"{TMDB_IMAGE_BASE}{poster}" if poster else None,
        backdrop_url=f"{TMDB_IMAGE_BASE}{backdrop}" if backdrop else None,
        rating=pick("voteAverage", _number),
        popularity=pick("popularity", _number),
        media_type=MediaType.SERIES if media_tag == "tv" else MediaType.MOVIE,
        service_id=config.id,
        service_type=config.type,
        service_name=config.name,
        is_requested=any(len(value) > 0 for value in requests),
        external_ids=ExternalIds(
            tmdb_id=tmdb_id,
            tvdb_id=tvdb_id,
            imdb_id=imdb_id,
            service_native_id=native_id,
        ),
        extra=JellyseerrExtra(media_status=media_status),
    )


def map_jellyfin_result(
    item: dict[str, Any], config: ServiceConfig, connector: Any = None
) -> CanonicalSearchResult | None:
    item_type = item.get("Type")
    if item_type in ("Series", "Episode"):
        media_type = MediaType.SERIES
    elif item_type == "Movie":
        media_type = MediaType.MOVIE
    else:
        return None
    item_id = _str(item.get("Id"))
    if item_id is None:
        raise NormalizationError("library item has no Id")

    provider_ids = _record(item.get("ProviderIds"))
    image_tags = _record(item.get("ImageTags"))
    image_url = getattr(connector, "image_url", None)
    poster_url = None
    backdrop_url = None
    if callable(image_url):
        if image_tags.get("Primary"):
            poster_url = image_url(item_id, "Primary", width=200)
        if image_tags.get("Backdrop") or item.get("BackdropImageTags"):
            backdrop_url = image_url(item_id, "Backdrop", width=400)
    year = _int(item.get("ProductionYear"))
    ticks = _int(item.get("RunTimeTicks"))
    genres = [genre for genre in item.get("Genres") or [] if isinstance(genre, str)]
    studios = [
        studio if isinstance(studio, str) else _record(studio).get("Name")
        for studio in item.get("Studios") or []
    ]
    studios = [studio for studio in studios if studio]

    return CanonicalSearchResult(
        id=f"{config.id}:jellyfin:{item_id}",
        title=_title(item.get("Name")),
        overview=_str(item.get("Overview")),
        release_date=_str(item.get("PremiereDate")) or (str(year) if year else None),
        year=year,
        poster_url=poster_url,
        backdrop_url=backdrop_url,
        rating=_number(item.get("CommunityRating")),
        runtime=ticks // JELLYFIN_TICKS_PER_MINUTE if ticks else None,
        media_type=media_type,
        service_id=config.id,
        service_type=config.type,
        service_name=config.name,
        is_in_library=True,
        external_ids=ExternalIds(
            tmdb_id=_int(provider_ids.get("Tmdb")),
            tvdb_id=_int(provider_ids.get("Tvdb")),
            imdb_id=_str(provider_ids.get("Imdb")),
            service_native_id=item_id,
        ),
        extra=JellyfinExtra(
            genres=", ".join(genres) if genres else None,
            studios=", ".join(studios) if studios else None,
        ),
    )


Normalizer = Callable[[dict[str, Any], ServiceConfig, Any], CanonicalSearchResult | None]

NORMALIZERS: dict[str, Normalizer] = {
    "sonarr": map_sonarr_result,
    "radarr": map_radarr_result,
    "jellyseerr": map_jellyseerr_result,
    "jellyfin": map_jellyfin_result,
}


def normalize_results(
    raw_results: Iterable[Any] | None,
    config: ServiceConfig,
    media_types: Sequence[MediaType | str] | None = None,
    connector: Any = None,
) -> list[CanonicalSearchResult]:
    """Map a backend's native hits, skipping (and logging) any that cannot be mapped.

    An unknown backend type maps nothing and logs an error instead of failing
    the surrounding search.
    """
    mapper = NORMALIZERS.get(config.type.lower())
    if mapper is None:
        logger.error(
            json.dumps(
                {
                    "event": "normalizer_unsupported_type",
                    "service_id": config.id,
                    "service_type": config.type,
                }
            )
        )
        return []
    if raw_results is None:
        return []
    if not isinstance(raw_results, (list, tuple)):
        raise NormalizationError(f"{config.type} search returned {type(raw_results).__name__}, expected a list")

    allowed = {MediaType(value) for value in media_types} if media_types else None
    mapped: list[CanonicalSearchResult] = []
    for index, item in enumerate(raw_results):
        try:
            if not isinstance(item, dict):
                raise NormalizationError(f"expected an object, got {type(item).__name__}")
            result = mapper(item, config, connector)
        except (NormalizationError, ValidationError) as exc:
            logger.error(
                json.dumps(
                    {
                        "event": "normalizer_item_skipped",
                        "service_id": config.id,
                        "service_type": config.type,
                        "index": index,
                        "error": str(exc),
                    }
                )
            )
            continue
        if result is None:
            continue
        if allowed is not None and result.media_type not in allowed:
            continue
        mapped.append(result)
    return mapped
