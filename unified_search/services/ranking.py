"""Deduplication, ordering and post-merge filtering of canonical results.

Invariants:
- First-seen wins on a dedupe key; later duplicates are dropped without merging.
- The output order depends only on the set of deduplicated items, never on
  arrival order.
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import Iterable

from unified_search.schema.search import CanonicalSearchResult, SearchOptions
from unified_search.utils.datetime import parse_timestamp

QUALITY_ANY = "any"


def create_result_key(result: CanonicalSearchResult, *, across_services: bool = False) -> str:
    """Build the dedupe key for a result.

    Scoped to the backend instance by default. ``across_services`` drops the
    service id and prefers shared metadata ids, since native ids are only
    meaningful inside one backend.
    """
    ids = result.external_ids
    if across_services:
        if ids.tmdb_id is not None:
            part = f"tmdb:{ids.tmdb_id}"
        elif ids.tvdb_id is not None:
            part = f"tvdb:{ids.tvdb_id}"
        elif ids.imdb_id:
            part = f"imdb:{ids.imdb_id}"
        else:
            part = result.title.lower()
        return "::".join([result.media_type.value, part])

    if ids.service_native_id is not None:
        part = str(ids.service_native_id)
    elif ids.tmdb_id is not None:
        part = f"tmdb:{ids.tmdb_id}"
    elif ids.tvdb_id is not None:
        part = f"tvdb:{ids.tvdb_id}"
    elif ids.imdb_id:
        part = f"imdb:{ids.imdb_id}"
    else:
        part = result.title.lower()
    return "::".join([result.service_id, result.media_type.value, part])


def _compare(first: CanonicalSearchResult, second: CanonicalSearchResult) -> int:
    first_in_library = bool(first.is_in_library)
    second_in_library = bool(second.is_in_library)
    if first_in_library != second_in_library:
        return 1 if first_in_library else -1

    first_date = parse_timestamp(first.release_date)
    second_date = parse_timestamp(second.release_date)
    if first_date is not None and second_date is not None and first_date != second_date:
        return -1 if first_date > second_date else 1

    first_year = first.year or 0
    second_year = second.year or 0
    if first_year != second_year:
        return -1 if first_year > second_year else 1

    if first.title != second.title:
        return -1 if first.title < second.title else 1
    if first.id != second.id:
        return -1 if first.id < second.id else 1
    return 0


def deduplicate_and_sort(
    results: Iterable[CanonicalSearchResult], *, across_services: bool = False
) -> list[CanonicalSearchResult]:
    deduped: dict[str, CanonicalSearchResult] = {}
    for item in results:
        key = create_result_key(item, across_services=across_services)
        if key not in deduped:
            deduped[key] = item

    # The date rule only applies when both dates parse, so the comparator is not
    # transitive on mixed input; a canonical starting order keeps the result stable.
    ordered = sorted(deduped.values(), key=lambda item: (item.id, item.title))
    ordered.sort(key=cmp_to_key(_compare))
    return ordered


def _matches_status(result: CanonicalSearchResult, status: str) -> bool:
    if status in ("owned", "available", "monitored"):
        return bool(result.is_in_library)
    if status == "missing":
        return result.is_in_library is False
    if status == "requested":
        return bool(result.is_requested)
    return True


def _matches_genres(result: CanonicalSearchResult, genres: list[str]) -> bool:
    raw = getattr(result.extra, "genres", None)
    if not raw:
        return False
    item_genres = [genre.strip().lower() for genre in raw.split(",") if genre.strip()]
    wanted = [genre.strip().lower() for genre in genres if genre.strip()]
    return any(want in have or have in want for want in wanted for have in item_genres)


def apply_advanced_filters(
    results: list[CanonicalSearchResult], options: SearchOptions
) -> list[CanonicalSearchResult]:
    """Apply the backend-agnostic filter hints to the merged list."""
    status = (options.status or "").strip().lower()
    quality = (options.quality or "").strip()
    threshold: float | None = None
    if quality and quality.lower() != QUALITY_ANY:
        try:
            threshold = float(quality)
        except ValueError:
            threshold = None

    filtered: list[CanonicalSearchResult] = []
    for result in results:
        if status and status != "any" and not _matches_status(result, status):
            continue
        if threshold is not None and (result.rating or 0.0) < threshold:
            continue
        if result.year is not None:
            if options.release_year_min is not None and result.year < options.release_year_min:
                continue
            if options.release_year_max is not None and result.year > options.release_year_max:
                continue
        if options.genres and not _matches_genres(result, options.genres):
            continue
        filtered.append(result)
    return filtered
