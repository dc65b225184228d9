"""Shared pytest fixtures for MemoirArk tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from memoirark.db.connection import Database
from memoirark.events.projector import StateProjector
from memoirark.events.store import EventStore
from memoirark.importer.bulk import BulkUploadService
from memoirark.importer.router import get_import_service
from memoirark.importer.service import ImportService
from memoirark.importer.uploads_router import get_bulk_upload_service
from memoirark.importer.writer import DomainWriter
from memoirark.main import app
from memoirark.search.router import get_search_service
from memoirark.search.service import SearchService


@pytest.fixture
async def db():
    """In-memory database for tests."""
    database = await Database.connect(":memory:")
    yield database
    await database.close()


@pytest.fixture
async def event_store(db):
    """EventStore backed by in-memory database."""
    return EventStore(db)


@pytest.fixture
async def projector(db):
    """StateProjector backed by in-memory database."""
    return StateProjector(db)


@pytest.fixture
async def writer(event_store, projector, tmp_path):
    """DomainWriter storing uploaded files under a temporary directory."""
    return DomainWriter(event_store, projector, upload_dir=tmp_path / "uploads")


@pytest.fixture
async def import_service(writer):
    return ImportService(writer)


@pytest.fixture
async def bulk_service(writer):
    return BulkUploadService(writer, max_workers=2)


@pytest.fixture
async def client(db, import_service, bulk_service):
    """Async test client with in-memory DB wired into the app."""
    search_service = SearchService(db)
    app.dependency_overrides[get_import_service] = lambda: import_service
    app.dependency_overrides[get_bulk_upload_service] = lambda: bulk_service
    app.dependency_overrides[get_search_service] = lambda: search_service
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
