from fastapi import APIRouter, Depends, HTTPException, Query, status as http_status

from jobfeed.core.config import ConfigurationError
from jobfeed.schemas.listings import FeedResponse
from jobfeed.services.feed import FeedService, get_feed_service

router = APIRouter()


@router.get("/live", response_model=FeedResponse)
async def get_live_jobs(
    q: str | None = Query(default=None),
    where: str | None = Query(default=None),
    days: int | None = Query(default=None),
    limit: int | None = Query(default=None),
    service: FeedService = Depends(get_feed_service),
) -> FeedResponse:
    # Out-of-range days and limit are clamped by the source, not rejected.
    try:
        result = await service.live_jobs(keywords=q, where=where, max_age_days=days, limit=limit)
    except ConfigurationError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return FeedResponse(**result.to_response())
