"""MemoirArk import API entry point."""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from memoirark.db.connection import Database
from memoirark.events.projector import StateProjector
from memoirark.events.store import EventStore
from memoirark.importer.bulk import DEFAULT_MAX_WORKERS, BulkUploadService
from memoirark.importer.router import get_import_service
from memoirark.importer.router import router as import_router
from memoirark.importer.service import ImportService
from memoirark.importer.uploads_router import get_bulk_upload_service
from memoirark.importer.uploads_router import router as uploads_router
from memoirark.importer.writer import DomainWriter
from memoirark.logging_config import setup_logging
from memoirark.search.router import get_search_service
from memoirark.search.router import router as search_router
from memoirark.search.service import SearchService

logger = logging.getLogger(__name__)

# Load .env from backend/ directory before reading any settings
load_dotenv(Path(__file__).resolve().parent.parent / ".env")


def _reference_tz() -> ZoneInfo:
    name = os.environ.get("MEMOIRARK_REFERENCE_TZ", "UTC")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown MEMOIRARK_REFERENCE_TZ %r, using UTC", name)
        return ZoneInfo("UTC")


def _max_workers() -> int:
    raw = os.environ.get("MEMOIRARK_MAX_WORKERS")
    if not raw:
        return DEFAULT_MAX_WORKERS
    try:
        return max(1, int(raw))
    except ValueError:
        logger.warning("Invalid MEMOIRARK_MAX_WORKERS %r, using %d", raw, DEFAULT_MAX_WORKERS)
        return DEFAULT_MAX_WORKERS


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage database lifecycle and service wiring."""
    setup_logging()

    db = await Database.connect(os.environ.get("MEMOIRARK_DB_PATH", "memoirark.db"))
    store = EventStore(db)
    projector = StateProjector(db)
    tz = _reference_tz()
    writer = DomainWriter(
        store, projector, upload_dir=os.environ.get("MEMOIRARK_UPLOAD_DIR", "uploads"),
    )

    # Import service
    import_svc = ImportService(writer, tz=tz)
    app.dependency_overrides[get_import_service] = lambda: import_svc

    # Bulk upload service
    bulk_svc = BulkUploadService(writer, max_workers=_max_workers(), tz=tz)
    app.dependency_overrides[get_bulk_upload_service] = lambda: bulk_svc

    # Search service
    search_svc = SearchService(db)
    app.dependency_overrides[get_search_service] = lambda: search_svc

    app.state.db = db
    logger.info("MemoirArk started (reference timezone %s)", tz.key)
    yield

    await db.close()


app = FastAPI(
    title="MemoirArk",
    description=(
        "Imports Messenger, SMS and ChatGPT histories and personal files"
        " into a memoir of people, artifacts and life events"
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in os.environ.get("MEMOIRARK_CORS_ORIGINS", "http://localhost:5173").split(",")
        if origin.strip()
    ],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(import_router)
app.include_router(uploads_router)
app.include_router(search_router)


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}
