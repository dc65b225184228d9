"""Canonical event types for the memoir domain store.

Every durable write (Person, Artifact, LifeEvent and their links) is an
event appended to the log, then projected into materialized tables. Event
payloads represent the type-specific content of each event; the
EventEnvelope wraps them with metadata.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Event payloads, one per event type
# ---------------------------------------------------------------------------


class PersonCreatedPayload(BaseModel):
    person_id: str
    name: str
    identity_key: str  # e.g. "phone:5551234567" or "name:jane doe"
    role: str | None = None
    relationship_type: str | None = None
    notes: str | None = None
    source_system: str | None = None


class ArtifactCreatedPayload(BaseModel):
    artifact_id: str
    type: str  # "document" | "photo" | "audio" | "video" | "journal" | "other"
    source_system: str
    short_description: str | None = None
    transcribed_text: str | None = None
    source_path_or_url: str | None = None
    imported_from: str | None = None
    import_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    person_ids: list[str] = Field(default_factory=list)


class LifeEventCreatedPayload(BaseModel):
    event_id: str
    title: str
    date: str  # ISO-8601 calendar date
    summary: str | None = None
    notes: str | None = None
    imported_from: str | None = None
    import_id: str | None = None
    person_ids: list[str] = Field(default_factory=list)
    artifact_ids: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Event type registry
# ---------------------------------------------------------------------------

EVENT_TYPES: dict[str, type[BaseModel]] = {
    "PersonCreated": PersonCreatedPayload,
    "ArtifactCreated": ArtifactCreatedPayload,
    "LifeEventCreated": LifeEventCreatedPayload,
}


# ---------------------------------------------------------------------------
# Event envelope
# ---------------------------------------------------------------------------


class EventEnvelope(BaseModel):
    """Wraps every event with metadata. Stored in the event_log table."""

    event_id: str
    aggregate_id: str  # person_id, artifact_id or life event id
    timestamp: datetime
    device_id: str = "local"
    user_id: str | None = None
    event_type: str
    payload: dict[str, Any]
    sequence_num: int | None = None  # assigned by DB on insert

    def typed_payload(self) -> BaseModel:
        """Deserialize payload into the correct Pydantic model based on event_type."""
        payload_cls = EVENT_TYPES[self.event_type]
        return payload_cls.model_validate(self.payload)
