"""
Content API — Health endpoint
"""
import asyncio
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    settings = request.app.state.settings
    deps: dict[str, str] = {}
    healthy = True

    # Check PostgreSQL
    try:
        async with request.app.state.engine.connect() as conn:
            await asyncio.wait_for(conn.execute(text("SELECT 1")), timeout=settings.HEALTH_CHECK_TIMEOUT)
        deps["postgres"] = "ok"
    except Exception as e:
        deps["postgres"] = f"error: {str(e)[:100]}"
        healthy = False

    # Check Redis
    try:
        await asyncio.wait_for(request.app.state.redis.ping(), timeout=settings.HEALTH_CHECK_TIMEOUT)
        deps["redis"] = "ok"
    except Exception as e:
        deps["redis"] = f"error: {str(e)[:100]}"
        healthy = False

    deps["mux"] = "configured" if settings.mux_configured else "not configured"
    deps["storage"] = "configured" if settings.supabase_configured else "not configured"

    return JSONResponse(
        content={
            "status": "healthy" if healthy else "degraded",
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "dependencies": deps,
        },
        status_code=200 if healthy else 503,
    )
