import logging
from fastapi import APIRouter, HTTPException, Response
from fastapi.responses import JSONResponse
from ..errors import SearchBackendError
from ..models.schemas import HealthResponse
from ..services.container import container
from .search_routes import BACKEND_UNAVAILABLE

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(response: Response):
    """
    Liveness and readiness of the search backend.

    Answers 503 while either read alias (contacts or companies) is missing, so
    load balancers stop routing searches that would fail.
    """
    try:
        health = await container.health_service.get_health_status()
    except SearchBackendError as e:
        logger.error("Health check could not reach the backend: %s", e)
        return JSONResponse(status_code=503, content=BACKEND_UNAVAILABLE)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Health check error: {str(e)}")

    if health.status != "OK":
        response.status_code = 503
    return health


@router.get("/health/detailed")
async def detailed_health_check():
    """Alias document counts, non-secret configuration and filter registry size"""
    try:
        return await container.health_service.get_detailed_status()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Detailed health check error: {str(e)}")
