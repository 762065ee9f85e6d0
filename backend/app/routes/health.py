"""Health check endpoint."""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.config import load_settings
from app.core.llm import LLMClient, get_llm_client

router = APIRouter(tags=["System"])

_start_time = time.monotonic()


@router.get("/api/health")
async def health(llm: LLMClient = Depends(get_llm_client)):
    """``healthy`` (200) when OpenAI answers, ``degraded`` (503) otherwise."""
    settings = load_settings()
    openai_ok = await llm.health_check()
    breaker = llm.breaker.get_state()

    checks = {
        "server": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "openai": openai_ok,
        "openai_model": llm.model,
        "environment": settings.environment,
        "has_api_key": bool(settings.openai_api_key),
        "circuit_breaker": {
            "state": breaker.state.value,
            "failure_count": breaker.failure_count,
            "last_failure_time": breaker.last_failure_time,
        },
        "retry_count": llm.retry_count,
        "uptime_seconds": round(time.monotonic() - _start_time),
    }

    healthy = checks["server"] and openai_ok
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "healthy" if healthy else "degraded", "checks": checks},
    )
