"""
KINETIC BOARD - FastAPI Application
Thin ingestion trigger and read surface over the LeaderboardService.
"""
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from kinetic_board.config.settings import get_settings
from kinetic_board.data.models import Snapshot
from kinetic_board.errors import (
    PipelineRunError,
    PipelineTimeoutError,
    StorageUnavailableError,
)
from kinetic_board.service import LeaderboardService
from kinetic_board.utils.helpers import utc_now
from kinetic_board.utils.logger import get_logger, setup_logging

logger = get_logger("api")


class IngestRequest(BaseModel):
    snapshots: List[Snapshot] = Field(min_length=1)
    preview: bool = False
    correlation_id: Optional[str] = None


def _service(request: Request) -> LeaderboardService:
    return request.app.state.service


def _status_for(error: PipelineRunError) -> int:
    if isinstance(error, PipelineTimeoutError):
        return 504
    if isinstance(error.__cause__, StorageUnavailableError):
        return 503
    return 500


def create_app(service: Optional[LeaderboardService] = None) -> FastAPI:
    """Build the app. Without an injected service one is built from settings at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        if getattr(app.state, "service", None) is None:
            app.state.service = LeaderboardService.from_settings()
        app.state.started_at = utc_now().isoformat()
        logger.info("kinetic_board_ready", instance=app.state.instance_id)
        yield
        logger.info("kinetic_board_shutting_down")

    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        description="Momentum leaderboard ingestion and ranking",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.instance_id = str(uuid.uuid4())[:8]
    app.state.started_at = utc_now().isoformat()

    @app.get("/healthz", tags=["System"])
    async def health_check(request: Request):
        svc = _service(request)
        return JSONResponse(
            status_code=200,
            content={
                "status": "healthy",
                "instance": request.app.state.instance_id,
                "uptime_since": request.app.state.started_at,
                "service": svc.stats if svc else None,
                "timestamp": utc_now().isoformat(),
            },
        )

    @app.post("/api/v1/leaderboards/{tag}/snapshots", tags=["Leaderboards"])
    async def ingest_snapshots(tag: str, body: IngestRequest, request: Request) -> Dict[str, Any]:
        """Run one ingestion batch for `tag` and return the updated leaderboard."""
        svc = _service(request)
        try:
            ctx = await svc.run_ingestion(
                tag, body.snapshots, correlation_id=body.correlation_id, preview=body.preview
            )
        except PipelineRunError as e:
            logger.error("ingest_failed", **e.to_dict())
            raise HTTPException(status_code=_status_for(e), detail=e.to_dict())

        return {
            "tag": tag,
            "correlation_id": ctx.correlation_id,
            "summary": ctx.summary,
            "leaderboard": [entry.to_record() for entry in ctx.leaderboard],
        }

    @app.get("/api/v1/leaderboards/{tag}", tags=["Leaderboards"])
    async def get_leaderboard(tag: str, request: Request) -> Dict[str, Any]:
        svc = _service(request)
        try:
            entries = await svc.get_leaderboard(tag)
        except StorageUnavailableError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return {
            "tag": tag,
            "total": len(entries),
            "leaderboard": [entry.to_record() for entry in entries],
        }

    return app


app = create_app()
