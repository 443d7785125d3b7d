"""
Truck Queue — Health endpoint
"""
import asyncio
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from truckqueue.core.config import get_settings
from truckqueue.schemas.order import HealthResponse

settings = get_settings()
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    deps: dict[str, str] = {}
    healthy = True
    service = request.app.state.order_service

    try:
        await asyncio.wait_for(service.store.ping(), timeout=settings.HEALTH_CHECK_TIMEOUT)
        deps["order-store"] = "ok"
    except Exception as e:
        deps["order-store"] = f"error: {str(e)[:100]}"
        healthy = False

    # Streams degrade without the notifier but orders keep flowing
    try:
        await request.app.state.notifier.ping()
        deps["notifier"] = "ok"
    except Exception as e:
        deps["notifier"] = f"degraded: {str(e)[:100]}"

    report = HealthResponse(
        status="healthy" if healthy else "degraded",
        service=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        dependencies=deps,
    )
    return JSONResponse(content=report.model_dump(), status_code=200 if healthy else 503)
