"""
IRD Inventory - Health Check Router

Key endpoints:
- GET /health - Liveness probe: returns 200 if process is up
- GET /readyz - Readiness probe: returns 200 only if the store answers a ping
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import __version__
from ..core.config import get_settings
from ..db import check_store_ready, get_store_health

READINESS_TIMEOUT = 2.0

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


class LivenessResponse(BaseModel):
    """Liveness probe response - indicates process is alive."""

    status: str
    timestamp: str
    version: str
    environment: str


class ReadinessResponse(BaseModel):
    """Readiness probe response - indicates service is ready to accept traffic."""

    ready: bool
    status: str
    timestamp: str
    backend: str
    store: str
    error: str | None = None
    store_initialized: bool
    store_init_attempts: int


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health", response_model=LivenessResponse, summary="Liveness probe")
async def health() -> LivenessResponse:
    return LivenessResponse(
        status="ok",
        timestamp=_now(),
        version=__version__,
        environment=get_settings().ENVIRONMENT,
    )


@router.get(
    "/readyz",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "Service is ready to accept traffic"},
        503: {"description": "Store unreachable or not initialized"},
    },
    summary="Readiness probe",
)
async def readiness() -> JSONResponse:
    """
    Returns 200 only if the store was initialized and answers a ping within
    two seconds; 503 otherwise.
    """
    health_state = get_store_health()
    is_ready, store_status = await check_store_ready(timeout=READINESS_TIMEOUT)

    response_data = ReadinessResponse(
        ready=is_ready,
        status="ready" if is_ready else "not_ready",
        timestamp=_now(),
        backend=health_state.backend,
        store=store_status,
        error=health_state.last_error if not is_ready else None,
        store_initialized=health_state.initialized,
        store_init_attempts=health_state.init_attempts,
    )

    if not is_ready:
        logger.warning(
            f"Readiness check failed: store={store_status}, "
            f"initialized={health_state.initialized}, error={health_state.last_error}"
        )
    return JSONResponse(status_code=200 if is_ready else 503, content=response_data.model_dump())
