"""Bulk upload route: many files or ZIPs become Artifacts in one call."""

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from memoirark.importer.bulk import BulkUploadService
from memoirark.importer.models import RawExportFile
from memoirark.importer.schemas import BulkUploadResponse

router = APIRouter(prefix="/api/uploads", tags=["uploads"])

MAX_FILES = 100


def get_bulk_upload_service() -> BulkUploadService:
    """Dependency placeholder, overridden at startup."""
    raise RuntimeError("BulkUploadService not configured")


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
async def bulk_upload(
    files: list[UploadFile] = File(...),
    source_system: str | None = Form(None),
    service: BulkUploadService = Depends(get_bulk_upload_service),
) -> BulkUploadResponse:
    """Upload loose files and ZIP archives. Each file that fails is listed in `failed`."""
    if not files:
        raise HTTPException(status_code=400, detail="No files provided")
    if len(files) > MAX_FILES:
        raise HTTPException(status_code=400, detail=f"At most {MAX_FILES} files per upload")

    raws = [
        RawExportFile(
            content=await f.read(),
            filename=f.filename or "upload",
            mimetype=f.content_type,
        )
        for f in files
    ]
    result = await service.upload(raws, source_system=source_system)
    if not result.success and result.failed:
        raise HTTPException(status_code=422, detail=result.model_dump(by_alias=True))
    return result
