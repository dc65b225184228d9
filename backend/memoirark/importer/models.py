"""Intermediate representation for imported exports.

All parsers produce Conversation/Message, which the orchestrator turns into
People, Artifacts and LifeEvents. This decouples format-specific parsing from
domain writes. Nothing here is persisted.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any


class SourceFormat(StrEnum):
    """Export formats the pipeline understands, resolved once per upload."""

    MESSENGER = "messenger"
    SMS = "sms"
    CHATGPT = "chatgpt"
    FILE = "file"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def source_system(self) -> str:
        return _SOURCE_SYSTEMS[self]


_LABELS = {
    SourceFormat.MESSENGER: "Messenger",
    SourceFormat.SMS: "SMS",
    SourceFormat.CHATGPT: "ChatGPT",
    SourceFormat.FILE: "File",
}

_SOURCE_SYSTEMS = {
    SourceFormat.MESSENGER: "facebook-messenger",
    SourceFormat.SMS: "android-sms",
    SourceFormat.CHATGPT: "chatgpt",
    SourceFormat.FILE: "bulk-upload",
}


@dataclass
class RawExportFile:
    """One uploaded (or archive-extracted) file, still as bytes."""

    content: bytes
    filename: str
    mimetype: str | None = None
    origin: str = "direct"  # "direct" | "zip"
    archive_name: str | None = None
    archive_path: str | None = None  # display hint only, never an identity key

    @property
    def display_name(self) -> str:
        if self.archive_name and self.archive_path:
            return f"{self.archive_name}/{self.archive_path}"
        return self.filename


@dataclass(frozen=True)
class ParticipantRef:
    """A source-local identity, not yet mapped to a Person."""

    name: str
    handle: str | None = None  # phone number for SMS
    kind: str = "contact"  # "contact" | "self" | "assistant"


@dataclass
class MediaRef:
    type: str  # "photo" | "video" | "audio" | "gif" | "sticker" | "file" | "link"
    uri: str | None = None


@dataclass
class Reaction:
    actor: str
    symbol: str


@dataclass
class Message:
    """A single message, with its timestamp already normalized to UTC."""

    sender: ParticipantRef
    timestamp: datetime
    sequence: int  # position in the source file, the tie-break for equal timestamps
    text: str | None = None
    media: list[MediaRef] = field(default_factory=list)
    reactions: list[Reaction] = field(default_factory=list)
    direction: str | None = None  # SMS: "sent" | "received" | "draft" | "other"
    is_mms: bool = False
    kind: str | None = None  # Messenger "Generic"/"Share", ChatGPT role, ...

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return (self.timestamp, self.sequence)


@dataclass
class Conversation:
    """A complete parsed conversation, ready for preview or import."""

    id: str
    title: str
    source_format: SourceFormat
    participants: list[ParticipantRef] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def date_range(self) -> tuple[datetime, datetime] | None:
        if not self.messages:
            return None
        timestamps = [m.timestamp for m in self.messages]
        return min(timestamps), max(timestamps)

    @property
    def contacts(self) -> list[ParticipantRef]:
        return [p for p in self.participants if p.kind == "contact"]

    def ordered_messages(self) -> list[Message]:
        return sorted(self.messages, key=lambda m: m.sort_key)


@dataclass
class EventDraft:
    """An in-memory candidate LifeEvent produced by day grouping."""

    conversation_id: str
    title: str
    date: date
    summary: str
    notes: str
    messages: list[Message] = field(default_factory=list)
    participant_refs: list[ParticipantRef] = field(default_factory=list)
    person_ids: list[str] = field(default_factory=list)
