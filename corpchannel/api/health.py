"""
Health check endpoints for liveness and readiness probes.
"""
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, Response

from corpchannel.core.config import Settings
from corpchannel.core.dependencies import get_app_settings, get_store
from corpchannel.core.logging import get_logger
from corpchannel.schemas.message import HealthResponse
from corpchannel.storage.base import MessageStore

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "/live",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Always returns 200 to indicate the service is alive."
)
async def liveness() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    response_model=HealthResponse,
    summary="Readiness probe",
    description="Returns 200 if the service is ready to handle traffic."
)
async def readiness(
    response: Response,
    store: Annotated[MessageStore, Depends(get_store)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> HealthResponse:
    """
    Readiness probe - checks if the service can handle traffic.
    
    Checks:
    - the message store's backing medium is reachable
    - the uploads directory exists
    """
    checks = {}
    is_ready = True
    
    store_ok = store.is_healthy()
    checks["storage"] = "ok" if store_ok else "failed"
    checks["backend"] = store.backend_name
    if not store_ok:
        is_ready = False
        logger.warning("Readiness check failed: message store not reachable")
    
    uploads_ok = Path(settings.upload_dir).is_dir()
    checks["uploads"] = "ok" if uploads_ok else "missing"
    if not uploads_ok:
        is_ready = False
        logger.warning(f"Readiness check failed: upload directory {settings.upload_dir} missing")
    
    if is_ready:
        return HealthResponse(status="ok", checks=checks)
    else:
        response.status_code = 503
        return HealthResponse(status="not ready", checks=checks)
