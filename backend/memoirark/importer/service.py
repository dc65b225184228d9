"""ImportService: parses conversation exports and commits selected items.

Parsing and importing are separate calls. `parse` never writes; it returns
a preview the client uses to pick conversations. `import_conversations`
re-parses the same upload and commits only the picked ones, one item at a
time, so a bad conversation never takes the rest of the import down.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import tzinfo
from enum import StrEnum
from zoneinfo import ZoneInfo

from memoirark.importer.archive import extract_archive
from memoirark.importer.grouping import synthesize
from memoirark.importer.models import Conversation, RawExportFile, SourceFormat
from memoirark.importer.parsers.detection import (
    ImportFormatError,
    UnsupportedFormatError,
    detect_format,
    is_zip,
)
from memoirark.importer.parsers.registry import get_parser
from memoirark.importer.resolver import ParticipantResolver, ResolverContext
from memoirark.importer.schemas import (
    ConversationPreview,
    DateRange,
    ImportOptions,
    ImportResult,
    ItemFailure,
    MessagePreview,
    ParseResult,
)
from memoirark.importer.transcript import imported_from, render_transcript, short_description
from memoirark.importer.writer import DomainWriter, StorageError
from memoirark.models import ArtifactCreatedPayload, LifeEventCreatedPayload

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
FailureCallback = Callable[[ItemFailure], None]


class ImportState(StrEnum):
    RECEIVED = "received"
    PARSING = "parsing"
    AWAITING_SELECTION = "awaiting_selection"
    COMMITTING = "committing"
    COMPLETED = "completed"
    PARTIALLY_FAILED = "partially_failed"


_TRANSITIONS = {
    ImportState.RECEIVED: {ImportState.PARSING},
    ImportState.PARSING: {ImportState.AWAITING_SELECTION},
    ImportState.AWAITING_SELECTION: {ImportState.COMMITTING, ImportState.COMPLETED},
    ImportState.COMMITTING: {ImportState.COMPLETED, ImportState.PARTIALLY_FAILED},
    ImportState.COMPLETED: set(),
    ImportState.PARTIALLY_FAILED: set(),
}


@dataclass
class ImportJob:
    """Bookkeeping for one import call. Never persisted."""

    format: SourceFormat
    import_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: ImportState = ImportState.RECEIVED
    items_total: int = 0
    items_processed: int = 0
    items_succeeded: int = 0
    people_created: int = 0
    artifacts_created: int = 0
    events_created: int = 0
    cancelled: bool = False
    failures: list[ItemFailure] = field(default_factory=list)

    def advance(self, state: ImportState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise ValueError(f"Import {self.import_id}: cannot go from {self.state} to {state}")
        self.state = state

    def to_result(self) -> ImportResult:
        return ImportResult(
            import_id=self.import_id,
            format=self.format.value,
            state=self.state.value,
            people_created=self.people_created,
            artifacts_created=self.artifacts_created,
            events_created=self.events_created,
            items_processed=self.items_processed,
            items_total=self.items_total,
            items_succeeded=self.items_succeeded,
            cancelled=self.cancelled,
            failures=self.failures,
        )


class ImportService:
    def __init__(
        self,
        writer: DomainWriter,
        tz: tzinfo | None = None,
    ) -> None:
        self._writer = writer
        self._resolver = ParticipantResolver(writer)
        self._tz = tz or ZoneInfo("UTC")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def parse(self, fmt: SourceFormat, raw: RawExportFile) -> ParseResult:
        """Parse an upload and return a preview without creating anything."""
        conversations = await asyncio.to_thread(self.parse_conversations, fmt, raw)
        parser = get_parser(fmt)

        items = []
        for conversation in conversations:
            previews = []
            for m in conversation.ordered_messages()[: parser.preview_messages]:
                text = m.text or ""
                if parser.preview_chars is not None:
                    text = text[: parser.preview_chars]
                previews.append(MessagePreview(
                    sender=m.sender.name,
                    timestamp=m.timestamp.isoformat(),
                    content_preview=text,
                    direction=m.direction,
                    media_types=[media.type for media in m.media],
                ))
            items.append(ConversationPreview(
                id=conversation.id,
                title=conversation.title,
                participants=[p.name for p in conversation.participants],
                message_count=len(conversation.messages),
                date_range=_date_range(conversation),
                messages=previews,
                warnings=conversation.warnings,
                metadata=conversation.metadata,
            ))

        total_messages = sum(len(c.messages) for c in conversations)
        stats: dict = {
            "total_conversations": len(conversations),
            "total_messages": total_messages,
            "total_participants": len({p for c in conversations for p in c.contacts}),
        }
        ranges = [c.date_range for c in conversations if c.date_range]
        if ranges:
            stats["date_range"] = {
                "earliest": min(r[0] for r in ranges).isoformat(),
                "latest": max(r[1] for r in ranges).isoformat(),
            }
        if fmt == SourceFormat.SMS and conversations:
            stats["backup_date"] = conversations[0].metadata.get("backup_date")

        logger.info(
            "Parsed %s upload %s: %d conversations, %d messages",
            fmt.label, raw.display_name, len(conversations), total_messages,
        )
        return ParseResult(
            format=fmt.value,
            total_items=len(conversations),
            total_messages=total_messages,
            items=items,
            stats=stats,
        )

    def parse_conversations(self, fmt: SourceFormat, raw: RawExportFile) -> list[Conversation]:
        """Parse a single export file, or every matching file inside a ZIP.

        Blocking; run it in a worker thread.
        """
        parser = get_parser(fmt)
        if not is_zip(raw):
            return parser.merge(parser.parse(raw))

        extraction = extract_archive(raw)
        candidates = [f for f in extraction.files if detect_format(f) == fmt]
        if not candidates:
            raise UnsupportedFormatError(f"No {fmt.label} export files found in {raw.filename}")

        conversations: list[Conversation] = []
        errors: list[tuple[RawExportFile, ImportFormatError]] = []
        for entry in candidates:
            try:
                conversations.extend(parser.parse(entry))
            except ImportFormatError as e:
                logger.warning("Skipping %s: %s", entry.display_name, e)
                errors.append((entry, e))
        if errors and not conversations:
            raise errors[0][1]

        conversations = parser.merge(conversations)
        if conversations:
            for entry, error in errors:
                conversations[0].warnings.append(f"Skipped {entry.display_name}: {error}")
            for failure in extraction.failures:
                conversations[0].warnings.append(f"Skipped {failure.filename}: {failure.error}")
        return conversations

    async def import_conversations(
        self,
        fmt: SourceFormat,
        raw: RawExportFile,
        options: ImportOptions,
        *,
        progress: ProgressCallback | None = None,
        on_failure: FailureCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ImportResult:
        """Import the selected conversations from an upload.

        Format errors of the upload itself propagate. Failures of single
        conversations are recorded on the result and the loop moves on.
        Setting `cancel` stops before the next conversation; whatever was
        committed stays committed.
        """
        job = ImportJob(format=fmt)
        job.advance(ImportState.PARSING)
        conversations = await asyncio.to_thread(self.parse_conversations, fmt, raw)
        job.advance(ImportState.AWAITING_SELECTION)

        selection = list(dict.fromkeys(options.selection))
        if not selection:
            job.advance(ImportState.COMPLETED)
            logger.info("Import %s: empty selection, nothing to do", job.import_id)
            return job.to_result()

        by_id = {c.id: c for c in conversations}
        job.items_total = len(selection)
        job.advance(ImportState.COMMITTING)
        context = ResolverContext(create_people=options.create_people)

        def record_failure(failure: ItemFailure) -> None:
            job.failures.append(failure)
            if on_failure is not None:
                on_failure(failure)

        for item_id in selection:
            if cancel is not None and cancel.is_set():
                job.cancelled = True
                logger.info(
                    "Import %s cancelled after %d of %d items",
                    job.import_id, job.items_processed, job.items_total,
                )
                break

            conversation = by_id.get(item_id)
            if conversation is None:
                record_failure(ItemFailure(
                    item=item_id, reason="No conversation with this id in the upload", kind="not_found",
                ))
            else:
                try:
                    await self._commit(conversation, options, context, job)
                    job.items_succeeded += 1
                except StorageError as e:
                    logger.exception("Import %s: storing %r failed", job.import_id, item_id)
                    record_failure(ItemFailure(item=item_id, reason=str(e), kind="storage"))
                except Exception as e:
                    logger.exception("Import %s: importing %r failed", job.import_id, item_id)
                    record_failure(ItemFailure(item=item_id, reason=str(e), kind="error"))

            job.items_processed += 1
            job.people_created = context.people_created
            if progress is not None:
                progress(job.items_processed, job.items_total)

        job.people_created = context.people_created
        job.advance(ImportState.PARTIALLY_FAILED if job.failures else ImportState.COMPLETED)
        logger.info(
            "Import %s (%s) %s: %d people, %d artifacts, %d events, %d failures",
            job.import_id, fmt.label, job.state, job.people_created,
            job.artifacts_created, job.events_created, len(job.failures),
        )
        return job.to_result()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _commit(
        self,
        conversation: Conversation,
        options: ImportOptions,
        context: ResolverContext,
        job: ImportJob,
    ) -> None:
        """Write People, the transcript Artifact and LifeEvents for one conversation."""
        resolved = await self._resolver.resolve_all(
            conversation.contacts, context, conversation.source_format,
        )
        provenance = imported_from(conversation)

        artifact_id = None
        if options.create_artifact:
            artifact_id = await self._writer.create_artifact(transcript_artifact(
                conversation,
                import_id=job.import_id,
                tz=self._tz,
                person_ids=list(dict.fromkeys(resolved.values())),
            ))
            job.artifacts_created += 1

        if not options.create_events:
            return
        drafts = synthesize(
            conversation,
            group_by_day=options.group_by_day,
            person_ids=resolved,
            tz=self._tz,
        )
        for draft in drafts:
            await self._writer.create_life_event(LifeEventCreatedPayload(
                event_id=str(uuid.uuid4()),
                title=draft.title,
                date=draft.date.isoformat(),
                summary=draft.summary,
                notes=draft.notes,
                imported_from=provenance,
                import_id=job.import_id,
                person_ids=list(dict.fromkeys(draft.person_ids)),
                artifact_ids=[artifact_id] if artifact_id else [],
            ))
            job.events_created += 1


def _date_range(conversation: Conversation) -> DateRange | None:
    span = conversation.date_range
    if span is None:
        return None
    return DateRange(earliest=span[0].isoformat(), latest=span[1].isoformat())


def transcript_artifact(
    conversation: Conversation,
    *,
    import_id: str,
    tz: tzinfo,
    person_ids: list[str] | None = None,
    source_system: str | None = None,
) -> ArtifactCreatedPayload:
    """The `document` Artifact holding a conversation's full transcript."""
    date_range = _date_range(conversation)
    return ArtifactCreatedPayload(
        artifact_id=str(uuid.uuid4()),
        type="document",
        source_system=source_system or conversation.source_format.source_system,
        short_description=short_description(conversation),
        transcribed_text=render_transcript(conversation, tz),
        imported_from=imported_from(conversation),
        import_id=import_id,
        metadata={
            "conversation_id": conversation.id,
            "message_count": len(conversation.messages),
            "participants": [p.name for p in conversation.participants],
            "date_range": date_range.model_dump() if date_range else None,
            **conversation.metadata,
        },
        person_ids=person_ids or [],
    )
