import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from meetingtracker import __version__
from meetingtracker.config import load_config
from meetingtracker.context import AppContext
from meetingtracker.routers.action_items import create_action_items_router
from meetingtracker.routers.meetings import create_meetings_router
from meetingtracker.routers.reports import create_reports_router
from meetingtracker.routers.uploads import create_uploads_router
from meetingtracker.services.extraction import ExtractionService
from meetingtracker.services.ingestion import IngestionPipeline, IngestionQueue
from meetingtracker.services.logging_setup import configure_logging, enable_crash_logging
from meetingtracker.services.meeting_store import MeetingStore
from meetingtracker.services.transcription import (
    TranscriptionProvider,
    build_transcription_provider,
)


def create_app(
    *,
    cwd: Optional[str] = None,
    config: Optional[dict] = None,
    transcriber: Optional[TranscriptionProvider] = None,
    extraction_service: Optional[ExtractionService] = None,
    setup_logging: bool = True,
) -> FastAPI:
    """Build the application and all of its services.

    Collaborators may be passed in (tests do); anything omitted is built from
    ``config.json`` in the data directory.
    """
    cwd = cwd or os.getcwd()
    ctx = AppContext.resolve(cwd)
    ctx.ensure_dirs()

    if setup_logging:
        configure_logging(ctx.logs_dir)
        enable_crash_logging(ctx.logs_dir)
    logger = logging.getLogger("meetingtracker.boot")
    logger.info("Boot: starting create_app cwd=%s data_dir=%s", cwd, ctx.data_dir)

    if config is None:
        config = load_config(ctx.config_path)

    meeting_store = MeetingStore(week_start=int(config["analytics"]["week_start"]))
    logger.info("Boot: meeting_store ready")

    if transcriber is None:
        transcriber = build_transcription_provider(config)
    logger.info("Boot: transcriber=%s", transcriber.__class__.__name__)

    if extraction_service is None:
        extraction_service = ExtractionService(config)
    logger.info("Boot: extraction_service ready provider=%s", config["llm"].get("provider"))

    ingestion_queue = IngestionQueue(workers=int(config["ingestion"]["workers"]))
    pipeline = IngestionPipeline(
        meeting_store=meeting_store,
        transcriber=transcriber,
        extractor=extraction_service,
        task_queue=ingestion_queue,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Startup: starting ingestion queue")
        if not ingestion_queue.running:
            ingestion_queue.start()
        yield
        logger.info("Shutdown: stopping ingestion queue")
        ingestion_queue.stop()

    app = FastAPI(title="Meeting Tracker", version=__version__, lifespan=lifespan)
    app.state.ctx = ctx
    app.state.config = config
    app.state.meeting_store = meeting_store
    app.state.ingestion_queue = ingestion_queue
    app.state.pipeline = pipeline

    app.include_router(
        create_uploads_router(ctx, pipeline, max_bytes=int(config["uploads"]["max_bytes"]))
    )
    logger.info("Boot: uploads router mounted")
    app.include_router(create_meetings_router(meeting_store, extraction_service, ingestion_queue))
    logger.info("Boot: meetings router mounted")
    app.include_router(create_action_items_router(meeting_store))
    logger.info("Boot: action items router mounted")
    app.include_router(create_reports_router(meeting_store))
    logger.info("Boot: reports router mounted")

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/api/health")
    def health() -> dict:
        return {
            "status": "ok",
            "version": __version__,
            "ingestion_running": ingestion_queue.running,
        }

    @app.get("/api/health/llm")
    def llm_health() -> dict:
        connected = extraction_service.check_connection()
        return {"status": "ok" if connected else "unavailable", "connected": connected}

    logger.info("Boot: create_app complete")
    return app
