"""Import API routes: parse, import and export instructions per format."""

import asyncio
import json as json_module
import logging
from collections.abc import AsyncIterator
from functools import cache
from pathlib import Path

import yaml
from fastapi import APIRouter, Depends, Form, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from memoirark.importer.models import RawExportFile, SourceFormat
from memoirark.importer.parsers.detection import (
    ImportFormatError,
    UnsupportedFormatError,
    format_from_route,
)
from memoirark.importer.schemas import (
    ImportInstructions,
    ImportOptions,
    ImportResult,
    ItemFailure,
    ParseResult,
)
from memoirark.importer.service import ImportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/import", tags=["import"])

INSTRUCTIONS_PATH = Path(__file__).resolve().parent.parent / "import_instructions.yml"

# Streaming imports outlive their response when the client disconnects
_running_imports: set[asyncio.Task] = set()


def get_import_service() -> ImportService:
    """Dependency placeholder, overridden at startup."""
    raise RuntimeError("ImportService not configured")


def _route_format(format: str) -> SourceFormat:
    try:
        return format_from_route(format)
    except UnsupportedFormatError:
        raise HTTPException(status_code=404, detail=f"Unknown import format: {format}")


def _format_error(e: ImportFormatError) -> HTTPException:
    if isinstance(e, UnsupportedFormatError):
        return HTTPException(status_code=415, detail=str(e))
    return HTTPException(status_code=422, detail=str(e))


async def _read_upload(file: UploadFile) -> RawExportFile:
    return RawExportFile(
        content=await file.read(),
        filename=file.filename or "upload",
        mimetype=file.content_type,
    )


def _parse_options(raw: str) -> ImportOptions:
    try:
        return ImportOptions.model_validate_json(raw or "{}")
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid import options: {e}") from e


@cache
def load_instructions() -> dict:
    with INSTRUCTIONS_PATH.open(encoding="utf-8") as f:
        return yaml.safe_load(f)


@router.post("/{format}/parse")
async def parse_export(
    format: str,
    file: UploadFile,
    service: ImportService = Depends(get_import_service),
) -> ParseResult:
    """Parse an uploaded export and return a preview without creating anything."""
    fmt = _route_format(format)
    raw = await _read_upload(file)
    try:
        return await service.parse(fmt, raw)
    except ImportFormatError as e:
        raise _format_error(e) from e


@router.post("/{format}/import", response_model=None)
async def import_export(
    format: str,
    file: UploadFile,
    options: str = Form("{}"),
    stream: bool = Query(False),
    service: ImportService = Depends(get_import_service),
) -> ImportResult | StreamingResponse:
    """Import the selected conversations of an uploaded export.

    The client sends the same file it parsed, plus the ids it picked.
    """
    fmt = _route_format(format)
    import_options = _parse_options(options)
    raw = await _read_upload(file)

    if stream:
        return StreamingResponse(
            _stream_sse(service, fmt, raw, import_options),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    try:
        result = await service.import_conversations(fmt, raw, import_options)
    except ImportFormatError as e:
        raise _format_error(e) from e

    if result.items_processed > 0 and result.items_succeeded == 0:
        raise HTTPException(status_code=422, detail=result.model_dump())
    return result


@router.get("/{format}/instructions")
async def import_instructions(format: str) -> ImportInstructions:
    """How to export this format from its source app."""
    fmt = _route_format(format)
    return ImportInstructions.model_validate(load_instructions()[fmt.value])


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json_module.dumps(data)}\n\n"


async def _stream_sse(
    service: ImportService,
    fmt: SourceFormat,
    raw: RawExportFile,
    options: ImportOptions,
) -> AsyncIterator[str]:
    """Run an import and yield SSE progress, item_failed and result events.

    Closing the stream sets the cancel flag: the item in flight finishes,
    nothing after it starts.
    """
    queue: asyncio.Queue[tuple[str, dict]] = asyncio.Queue()
    cancel = asyncio.Event()

    def on_progress(processed: int, total: int) -> None:
        queue.put_nowait(("progress", {"type": "progress", "processed": processed, "total": total}))

    def on_failure(failure: ItemFailure) -> None:
        queue.put_nowait(("item_failed", {"type": "item_failed", **failure.model_dump()}))

    task = asyncio.create_task(service.import_conversations(
        fmt, raw, options, progress=on_progress, on_failure=on_failure, cancel=cancel,
    ))
    _running_imports.add(task)
    task.add_done_callback(_running_imports.discard)
    task.add_done_callback(lambda _: queue.put_nowait(("done", {})))

    try:
        while True:
            event, data = await queue.get()
            if event == "done":
                break
            yield _sse(event, data)

        try:
            result = task.result()
        except ImportFormatError as e:
            yield _sse("error", {"type": "error", "error": str(e), "kind": e.kind})
            return
        except Exception as e:
            logger.exception("Streaming %s import failed", fmt.label)
            yield _sse("error", {"type": "error", "error": str(e), "kind": "error"})
            return
        yield _sse("result", {"type": "result", **result.model_dump()})
    finally:
        if not task.done():
            logger.info("Import stream closed by client; cancelling remaining items")
            cancel.set()
