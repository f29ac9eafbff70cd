from fastapi import APIRouter, Depends, HTTPException, Query, status as http_status

from jobfeed.core.config import Settings, get_settings
from jobfeed.schemas.listings import IndustryMetricOut
from jobfeed.services.repository import RepositoryError, RepositoryUnavailableError, get_repository

router = APIRouter()


@router.get("/industries", response_model=list[IndustryMetricOut])
async def industry_metrics(
    limit: int = Query(default=8, ge=1, le=50),
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> list[IndustryMetricOut]:
    try:
        rows = await repository.industry_metrics(
            state=settings.target_state,
            county=settings.target_county,
            limit=limit,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryError as exc:
        raise HTTPException(status_code=http_status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return [IndustryMetricOut(**row) for row in rows]
