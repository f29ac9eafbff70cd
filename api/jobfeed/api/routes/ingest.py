from dataclasses import asdict
import logging

from fastapi import APIRouter, Depends, HTTPException, status as http_status

from jobfeed.core.config import ConfigurationError, Settings, get_settings
from jobfeed.core.security import require_admin_secret
from jobfeed.schemas.listings import IngestSummaryOut
from jobfeed.services.ingest import IngestionSourceError, build_ingestion_service
from jobfeed.services.repository import (
    RepositoryPersistError,
    RepositoryUnavailableError,
    get_repository,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/ingest", response_model=IngestSummaryOut, dependencies=[Depends(require_admin_secret)])
async def run_ingest(
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> IngestSummaryOut:
    try:
        service = build_ingestion_service(settings, repository)
    except ConfigurationError as exc:
        logger.error("ingestion not configured error=%s", exc)
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    try:
        summary = await service.run()
    except IngestionSourceError as exc:
        raise HTTPException(status_code=http_status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryPersistError as exc:
        raise HTTPException(status_code=http_status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return IngestSummaryOut(**asdict(summary))
