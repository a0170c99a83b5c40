"""
Health Check Routes
===================

GET /health        liveness: the process answers
GET /health/ready  readiness: conversation storage reachable, circuit states

A service whose circuit is open still answers turns (without live data), so
"degraded" is reported with 200; only unhealthy storage yields 503.
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from evassist.application.api.dependencies import ContainerDep
from evassist.application.api.models import HealthResponse

router = APIRouter(prefix="/health", tags=["Health"])


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("", response_model=HealthResponse)
async def health_check():
    """Liveness probe. Checks nothing but the event loop."""
    return HealthResponse(status="healthy", timestamp=_now_iso())


@router.get("/ready", response_model=HealthResponse)
async def readiness_check(container: ContainerDep):
    report = await container.health()
    response = HealthResponse(status=report["status"], timestamp=_now_iso(), components=report["components"])
    if report["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=response.model_dump())
    return response
