"""Stage endpoints for the VenturePilot FastAPI backend."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..lifecycle import list_stage_definitions
from ..pipeline import StagePipeline
from ..schemas import StageDefinition


router = APIRouter(tags=["stages"])


def get_pipeline(request: Request) -> StagePipeline:
    return request.app.state.pipeline


@router.get("/")
async def healthcheck() -> dict[str, str]:
    """Simple health check endpoint."""

    return {"status": "ok", "message": "VenturePilot API is running"}


@router.get("/stages", response_model=list[StageDefinition])
async def list_stages() -> list[StageDefinition]:
    """Expose stage metadata to the UI."""

    return list_stage_definitions()


def _allowed_origin(origins: list[str]) -> str:
    if not origins or "*" in origins:
        return "*"
    return origins[0]


@router.options("/{path:path}")
async def preflight(path: str, request: Request) -> Response:
    """Answer bare OPTIONS requests without touching any handler.

    Browser preflights carrying ``Origin`` are answered by ``CORSMiddleware``
    before they reach this route; everything else still sees the allowance.
    """

    settings = request.app.state.settings
    return Response(
        status_code=204,
        headers={
            "Access-Control-Allow-Origin": _allowed_origin(settings.allowed_origins),
            "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
        },
    )


@router.post("/{token}")
async def run_stage(token: str, request: Request, pipeline: StagePipeline = Depends(get_pipeline)) -> JSONResponse:
    """Dispatch the request body to the stage handler named by *token*."""

    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON payload"})

    # Model calls block; keep them off the event loop.
    result = await run_in_threadpool(pipeline.handle, token, body)
    return JSONResponse(status_code=result.status_code, content=result.body)
