"""GET /health — Health check with a database probe."""

import logging

from fastapi import APIRouter, Request

from relayflow.api.schemas import HealthResponse
from relayflow.version import __version__

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Check health of all services."""
    services: dict[str, bool] = {"api": True, "database": False, "registry": False}

    # Database (an injected store replaces it entirely)
    if getattr(request.app.state, "store", None) is not None:
        services["database"] = True
    else:
        try:
            async_session = request.app.state.async_session
            async with async_session() as session:
                from sqlalchemy import text
                await session.execute(text("SELECT 1"))
            services["database"] = True
        except Exception as exc:
            logger.warning(f"[health] DB check failed: {exc}")

    registry = getattr(request.app.state, "registry", None)
    services["registry"] = registry is not None and bool(registry.list_capabilities())

    overall = "ok" if all(services.values()) else "degraded"
    return HealthResponse(status=overall, version=__version__, services=services)
