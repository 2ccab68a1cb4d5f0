from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, Response, status

from unified_search.api.deps import get_search_service
from unified_search.core.config import settings
from unified_search.schema.search import (
    HistoryRecordRequest,
    MediaType,
    SearchableServiceSummary,
    SearchHistoryEntry,
    SearchOptions,
    SearchResponse,
)
from unified_search.services.search_service import UnifiedSearchService

MAX_LIMIT_PER_SERVICE = 100

router = APIRouter()


@router.get("", response_model=SearchResponse)
async def search(
    q: str = Query(...),
    service_ids: List[str] | None = Query(default=None, alias="serviceIds"),
    media_types: List[MediaType] | None = Query(default=None, alias="mediaTypes"),
    limit_per_service: int = Query(
        default=settings.search_limit_per_service, ge=1, le=MAX_LIMIT_PER_SERVICE, alias="limitPerService"
    ),
    quality: str | None = Query(default=None),
    search_status: str | None = Query(default=None, alias="status"),
    genres: List[str] | None = Query(default=None),
    release_year_min: int | None = Query(default=None, alias="releaseYearMin"),
    release_year_max: int | None = Query(default=None, alias="releaseYearMax"),
    release_type: str | None = Query(default=None, alias="releaseType"),
    dedupe_across_services: bool = Query(default=False, alias="dedupeAcrossServices"),
    service: UnifiedSearchService = Depends(get_search_service),
) -> SearchResponse:
    options = SearchOptions(
        service_ids=service_ids,
        media_types=media_types,
        limit_per_service=limit_per_service,
        quality=quality,
        status=search_status,
        genres=genres,
        release_year_min=release_year_min,
        release_year_max=release_year_max,
        release_type=release_type,
        dedupe_across_services=dedupe_across_services,
    )
    return await service.search(q, options)


@router.get("/services", response_model=list[SearchableServiceSummary])
async def searchable_services(
    service: UnifiedSearchService = Depends(get_search_service),
) -> list[SearchableServiceSummary]:
    return await service.get_searchable_services()


@router.get("/history", response_model=list[SearchHistoryEntry])
async def history(service: UnifiedSearchService = Depends(get_search_service)) -> list[SearchHistoryEntry]:
    return await service.get_history()


@router.post("/history", status_code=status.HTTP_204_NO_CONTENT)
async def record_history(
    payload: HistoryRecordRequest,
    service: UnifiedSearchService = Depends(get_search_service),
) -> Response:
    await service.record_search(payload.term, payload.service_ids, payload.media_types)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/history/entry", status_code=status.HTTP_204_NO_CONTENT)
async def remove_history_entry(
    entry: SearchHistoryEntry,
    service: UnifiedSearchService = Depends(get_search_service),
) -> Response:
    await service.remove_history_entry(entry)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/history", status_code=status.HTTP_204_NO_CONTENT)
async def clear_history(service: UnifiedSearchService = Depends(get_search_service)) -> Response:
    await service.clear_history()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
