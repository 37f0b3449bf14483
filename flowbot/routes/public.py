# /flowbot/routes/public.py

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest
from datetime import datetime, timezone

from flowbot.config.settings import settings
from flowbot.services.db_service import db_service
from flowbot.services.intent_service import intent_service
from flowbot.models.api import APIResponse
from flowbot.utils.dependencies import verify_metrics_access

# This file defines public-facing endpoints that do not require user authentication,
# such as health checks and the main root endpoint. The /metrics endpoint is
# conditionally protected by an API key.

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Chatbot Flow API",
        "version": "1.0.0",
        "status": "operational",
        "environment": settings.environment
    }


@router.get("/health", summary="Basic Health Check")
async def health_check():
    """Basic health check for load balancers."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc)}


@router.get("/health/ready", summary="Readiness Probe")
async def readiness_check():
    """Readiness probe checking the database."""
    if not await db_service.health_check():
        raise HTTPException(status_code=503, detail="Service not ready: database unavailable")
    return {"status": "ready"}


@router.get("/health/live", summary="Liveness Probe")
async def liveness_check():
    """Liveness probe."""
    return {"status": "alive"}


@router.get("/health/detailed", response_model=APIResponse, tags=["Admin"])
async def comprehensive_health_check(request: Request):
    """Provides detailed health status of the database and the intent classifier."""
    health_status = {"status": "healthy", "services": {}}

    if await db_service.health_check():
        health_status["services"]["database"] = "connected"
    else:
        health_status["services"]["database"] = "error"
        health_status["status"] = "degraded"

    health_status["services"]["openai"] = "configured" if intent_service.openai_client else "not_configured"
    health_status["services"]["gemini"] = "configured" if intent_service.gemini_client else "not_configured"
    health_status["services"]["intent_matching"] = "ai" if intent_service.has_ai_provider else "keyword"

    return APIResponse(
        success=True,
        message="Comprehensive health status retrieved.",
        data=health_status,
    )


@router.get("/metrics", tags=["Monitoring"])
async def metrics(request: Request, _: bool = Depends(verify_metrics_access)):
    """Secured Prometheus metrics endpoint."""
    return PlainTextResponse(generate_latest(), media_type="text/plain")
