"""Application factory for the VenturePilot FastAPI backend."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings
from .errors import NotFound, StageError
from .gateway import ModelGateway
from .pipeline import Publisher, StagePipeline
from .routers import stages

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    gateway: ModelGateway | None = None,
    publisher: Publisher | None = None,
) -> FastAPI:
    """Create and configure a FastAPI application instance."""
    resolved_settings = settings or get_settings()
    app = FastAPI(
        title="VenturePilot Backend",
        version="0.1.0",
        description="Stage orchestration for the VenturePilot venture-creation pipeline.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=resolved_settings.allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(StageError)
    async def stage_error_handler(_request: Request, exc: StageError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # Unrouted paths and unsupported methods both read as an unknown stage.
        if exc.status_code in (404, 405):
            error = NotFound()
            return JSONResponse(status_code=error.status_code, content=error.to_body())
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.state.settings = resolved_settings
    app.state.pipeline = StagePipeline(
        settings=resolved_settings,
        gateway=gateway or ModelGateway(resolved_settings),
        publisher=publisher,
    )
    app.include_router(stages.router)
    return app


app = create_app()
