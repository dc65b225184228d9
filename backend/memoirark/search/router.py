"""Search API routes."""

from fastapi import APIRouter, Depends, Query

from memoirark.search.schemas import SearchResponse
from memoirark.search.service import SearchService

router = APIRouter(prefix="/api/search", tags=["search"])


def get_search_service() -> SearchService:
    """Dependency placeholder, overridden at startup."""
    raise RuntimeError("SearchService not configured")


def _split_csv(value: str | None) -> list[str] | None:
    """Split a comma-separated query param into a list, or None."""
    if not value:
        return None
    return [v.strip() for v in value.split(",") if v.strip()]


@router.get("/artifacts")
async def search_artifacts(
    q: str = Query(..., min_length=1),
    types: str | None = Query(None),
    source_systems: str | None = Query(None),
    import_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    service: SearchService = Depends(get_search_service),
) -> SearchResponse:
    """Full-text search across artifact transcripts and descriptions."""
    return await service.search_artifacts(
        q,
        types=_split_csv(types),
        source_systems=_split_csv(source_systems),
        import_id=import_id,
        limit=limit,
    )
