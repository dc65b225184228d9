"""Search API request/response schemas."""

from pydantic import BaseModel


class ArtifactSearchResult(BaseModel):
    artifact_id: str
    type: str
    source_system: str
    short_description: str | None = None
    imported_from: str | None = None
    import_id: str | None = None
    snippet: str
    created_at: str


class SearchResponse(BaseModel):
    query: str
    results: list[ArtifactSearchResult]
    total: int
