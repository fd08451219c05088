"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.requests import Request

from tars.api.v1 import router as api_v1_router
from tars.config import settings
from tars.core.tracing import setup_telemetry
from tars.db.session import dispose_engine
from tars.db.store import get_run_store
from tars.ws import ws_progress_endpoint

logger = logging.getLogger("tars.main")


async def _recover_orphaned_runs() -> None:
    """Mark runs left in ``running`` state by a previous process as errored."""
    run_ids = await get_run_store().reconcile_orphaned_runs()
    if run_ids:
        logger.warning("Recovered %d orphaned test run(s): %s", len(run_ids), run_ids)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan context manager."""
    # Startup
    logging.basicConfig(level=settings.log_level.upper())
    setup_telemetry()
    if settings.reconcile_orphaned_runs:
        try:
            await _recover_orphaned_runs()
        except Exception:
            logger.exception("Orphaned run recovery failed")
    yield
    # Shutdown
    await dispose_engine()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Runs test files through their native framework CLIs and records the results",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    cors_kw: dict[str, Any] = {
        "allow_origins": list(settings.cors_origins),
        "allow_credentials": True,
        "allow_methods": ["*"],
        "allow_headers": ["*"],
    }
    if settings.environment == "development":
        cors_kw["allow_origin_regex"] = r"http://(localhost|127\.0\.0\.1)(:\d+)?"
    app.add_middleware(CORSMiddleware, **cors_kw)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
        """Return JSON 500 instead of a bare text response."""
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, Any]:
        return {
            "status": "healthy",
            "version": settings.app_version,
            "run_store": settings.run_store,
        }

    # Live run events are published on /ws/progress/test/{run_id}
    @app.websocket("/ws/progress/{job_type}/{job_id}")
    async def ws_progress(websocket: WebSocket, job_type: str, job_id: str) -> None:
        await ws_progress_endpoint(websocket, job_type, job_id)

    app.include_router(api_v1_router, prefix="/api/v1")

    return app


app = create_application()
