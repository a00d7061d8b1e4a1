"""FastAPI application factory with lifespan management."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relayflow.config import config
from relayflow.version import __version__

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    # ── Startup ──
    from relayflow.observability import configure_logging
    configure_logging()
    logger.info(f"relayflow v{__version__} starting...")

    # 1. Database (per-request repositories come from this factory)
    from relayflow.db.database import async_session, init_db
    await init_db()
    app.state.async_session = async_session
    app.state.store = None

    # 2. Capability registry, built once from @capability registrations
    from relayflow.capabilities.registry import CapabilityRegistry
    app.state.registry = CapabilityRegistry.from_registered()

    # 3. Execution defaults + audit logging
    from relayflow.callbacks.logging import LoggingCallback
    from relayflow.config import ConfigPolicyProvider
    app.state.policy_provider = ConfigPolicyProvider(config)
    app.state.callbacks = [LoggingCallback()]

    logger.info(
        f"relayflow v{__version__} ready — "
        f"{len(app.state.registry.list_capabilities())} capabilities registered"
    )

    yield

    # ── Shutdown ──
    logger.info("relayflow shutting down...")
    from relayflow.capabilities.builtin.database_query import dispose_engines
    from relayflow.db.database import dispose_db
    await dispose_engines()
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="relayflow",
        description="Workflow execution engine for messaging automations.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    from relayflow.api.routes import conversations, executions, health
    app.include_router(executions.router, prefix="/v1")
    app.include_router(conversations.router, prefix="/v1")
    app.include_router(health.router)

    return app


app = create_app()
