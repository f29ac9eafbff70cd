import hmac
import logging

from fastapi import Depends, HTTPException, Query, Request, status

from jobfeed.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


async def require_admin_secret(
    request: Request,
    settings: Settings = Depends(get_settings),
    secret: str | None = Query(default=None),
) -> None:
    """Shared-secret gate for ingestion and staff endpoints.

    The secret is read from the configured header, or the ``secret`` query
    parameter for schedulers that cannot set headers.
    """
    if not settings.ingest_secret:
        logger.error("admin endpoint called but JF_INGEST_SECRET is not configured path=%s", request.url.path)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="admin secret is not configured",
        )

    provided = request.headers.get(settings.ingest_header) or secret
    if not provided or not hmac.compare_digest(provided.encode("utf-8"), settings.ingest_secret.encode("utf-8")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"invalid or missing {settings.ingest_header}",
        )
