from fastapi import APIRouter, Depends, HTTPException, status as http_status

from jobfeed.core.security import require_admin_secret
from jobfeed.schemas.listings import ListingOut, ReviewPatchRequest
from jobfeed.services.repository import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()


@router.patch(
    "/{source}/{external_id}/review",
    response_model=ListingOut,
    dependencies=[Depends(require_admin_secret)],
)
async def review_listing(
    source: str,
    external_id: str,
    payload: ReviewPatchRequest,
    repository=Depends(get_repository),
) -> ListingOut:
    try:
        row = await repository.review_listing(
            source=source,
            external_id=external_id,
            reviewed=payload.reviewed,
            approved=payload.approved,
            is_active=payload.is_active,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=http_status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ListingOut(**row)
