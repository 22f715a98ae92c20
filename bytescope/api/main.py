"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from bytescope import __version__
from bytescope.api.errors import register_error_handlers
from bytescope.api.routes import bytecode
from bytescope.core.config import get_settings
from bytescope.core.logging import setup_logging
from bytescope.ingestion.rpc_client import JsonRpcClient
from bytescope.pipeline.service import AnalysisService

logger = logging.getLogger(__name__)


def create_app(service: AnalysisService | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    When no service is given, one backed by a JSON-RPC client for the
    configured network is built at startup and closed at shutdown.
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(env=settings.app_env, log_level="DEBUG" if settings.debug else settings.log_level)
        rpc: JsonRpcClient | None = None
        if app.state.service is None:
            rpc = JsonRpcClient.from_settings(settings)
            app.state.service = AnalysisService(rpc, settings=settings)
        logger.info(
            "Starting %s in %s mode", settings.app_name, settings.app_env,
            extra={"network": settings.network},
        )
        yield
        if rpc is not None:
            await rpc.close()
        logger.info("Shutting down %s", settings.app_name)

    app = FastAPI(
        title="Bytescope API",
        description="Function-selector fingerprinting and comparison of deployed EVM contracts.",
        version=__version__,
        lifespan=lifespan,
        docs_url=None if settings.app_env == "production" else "/api/docs",
        openapi_url=None if settings.app_env == "production" else "/api/openapi.json",
        openapi_tags=[
            {"name": "health", "description": "Liveness probe"},
            {"name": "bytecode", "description": "Bytecode analysis, comparison and export"},
        ],
    )
    app.state.service = service

    # ── Access logging middleware ────────────────────────────────────
    @app.middleware("http")
    async def access_log(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s → %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed,
            extra={"duration_ms": round(elapsed, 1)},
        )
        return response

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        return {"status": "healthy", "service": "bytescope", "version": __version__}

    app.include_router(bytecode.router, prefix="/api/v1/bytecode", tags=["bytecode"])

    register_error_handlers(app)

    return app


app = create_app()
