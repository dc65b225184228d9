"""Pydantic schemas for the import and upload APIs."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MessagePreview(BaseModel):
    sender: str
    timestamp: str
    content_preview: str
    direction: str | None = None
    media_types: list[str] = Field(default_factory=list)


class DateRange(BaseModel):
    earliest: str
    latest: str


class ConversationPreview(BaseModel):
    id: str
    title: str
    participants: list[str]
    message_count: int
    date_range: DateRange | None
    messages: list[MessagePreview]
    warnings: list[str] = Field(default_factory=list)
    metadata: dict = Field(default_factory=dict)


class ParseResult(BaseModel):
    format: str
    total_items: int
    total_messages: int
    items: list[ConversationPreview]
    stats: dict = Field(default_factory=dict)


class ImportOptions(BaseModel):
    """What to create for the selected conversations.

    Accepts both snake_case and the camelCase names the web client sends.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    create_people: bool = True
    create_artifact: bool = True
    # Off gives an artifact-only import: no LifeEvents are synthesized
    create_events: bool = True
    group_by_day: bool = True
    selection: list[str] = Field(default_factory=list)


class ItemFailure(BaseModel):
    item: str
    reason: str
    kind: str = "error"  # "malformed" | "unsupported" | "storage" | "not_found" | "error"


class ImportResult(BaseModel):
    import_id: str
    format: str
    state: str
    people_created: int = 0
    artifacts_created: int = 0
    events_created: int = 0
    items_processed: int = 0
    items_total: int = 0
    items_succeeded: int = 0
    cancelled: bool = False
    failures: list[ItemFailure] = Field(default_factory=list)


class UploadedArtifact(BaseModel):
    id: str
    filename: str
    type: str
    source: str  # "direct" | "zip"


class FailedUpload(BaseModel):
    filename: str
    error: str


class BulkUploadResponse(BaseModel):
    """Serialized in camelCase (`failedCount`) for the web client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    success: list[UploadedArtifact]
    failed: list[FailedUpload]
    total: int
    failed_count: int


class InstructionStep(BaseModel):
    step: int
    title: str
    description: str
    link: str | None = None


class ImportInstructions(BaseModel):
    title: str
    steps: list[InstructionStep]
    notes: list[str] = Field(default_factory=list)
