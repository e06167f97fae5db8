# =============================================================================
# FastAPI Application: Entry Point
# =============================================================================
#
# Run locally:
#   uvicorn command_center.main:app --reload
#
# LIFESPAN:
#   startup  → configure logging, build the Orchestrator (LLM provider +
#              stores) and keep it on `app.state`
#   shutdown → close the LLM client and dispose the SQL engine if one
#              was created
#
# DESIGN DECISION: Start even without an LLM key.
# A missing key is logged and every orchestrator-backed endpoint answers
# 503 until the deployment is fixed. `/health` and `/docs` keep working.
# =============================================================================

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from command_center.agents.orchestrator import build_orchestrator
from command_center.api import agents, conversations, orchestrator
from command_center.config import Settings, get_settings
from command_center.db.engine import dispose_engine
from command_center.models.responses import HealthResponse

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    cfg = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=cfg.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        app.state.orchestrator = None
        try:
            app.state.orchestrator = await build_orchestrator(cfg)
        except ValueError as e:
            logger.error("Orchestrator not started: %s", e)

        yield

        if app.state.orchestrator is not None:
            await app.state.orchestrator.aclose()
        if cfg.store_backend == "sql":
            await dispose_engine()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=cfg.app_name,
        version=cfg.app_version,
        description=(
            "Routes chat messages to specialist AI agents, runs them "
            "concurrently and synthesises their answers."
        ),
        lifespan=lifespan,
    )
    app.include_router(orchestrator.router)
    app.include_router(agents.router)
    app.include_router(conversations.router)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(version=cfg.app_version, service=cfg.app_name)

    return app


app = create_app()
