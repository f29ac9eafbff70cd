from fastapi import APIRouter, Depends, HTTPException, Query, Response, status as http_status

from jobfeed.core.config import ConfigurationError, Settings, get_settings
from jobfeed.schemas.listings import FeedResponse
from jobfeed.services.feed import FeedService, get_feed_service
from jobfeed.services.filters import FeedFilters, QueryValidationError

router = APIRouter()


@router.get("/feed", response_model=FeedResponse)
async def get_feed(
    response: Response,
    q: str | None = Query(default=None),
    industry: str | None = Query(default=None),
    min_wage: float | None = Query(default=None, ge=0),
    location: str | None = Query(default=None),
    approved: bool = Query(default=True),
    limit: int = Query(default=20, ge=1, le=100),
    live: bool = Query(default=False),
    settings: Settings = Depends(get_settings),
    service: FeedService = Depends(get_feed_service),
) -> FeedResponse:
    try:
        filters = FeedFilters.create(
            q=q,
            industry=industry,
            min_wage=min_wage,
            location=location,
            approved_only=approved,
            limit=limit,
        )
    except QueryValidationError as exc:
        raise HTTPException(status_code=http_status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    try:
        result = await service.feed(filters, live=live)
    except ConfigurationError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    response.headers["Cache-Control"] = settings.feed_cache_control
    return FeedResponse(**result.to_response())
