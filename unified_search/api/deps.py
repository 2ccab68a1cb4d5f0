from fastapi import HTTPException, Request, status

from unified_search.services.search_service import UnifiedSearchService


def get_search_service(request: Request) -> UnifiedSearchService:
    service = getattr(request.app.state, "search_service", None)
    if service is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Search service not ready")
    return service
