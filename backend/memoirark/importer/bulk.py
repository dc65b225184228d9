"""BulkUploadService: many files (and ZIPs) in, Artifacts out.

Files are processed concurrently, bounded by a semaphore. Conversation
exports found among them become transcript Artifacts; everything else is
stored under the upload directory as a typed Artifact. A file that fails
is reported and never stops the others.
"""

import asyncio
import logging
import uuid
from datetime import tzinfo
from zoneinfo import ZoneInfo

from memoirark.importer.archive import extract_archive
from memoirark.importer.models import Conversation, RawExportFile, SourceFormat
from memoirark.importer.parsers.detection import (
    CONVERSATION_FORMATS,
    ImportFormatError,
    MalformedInputError,
    UnsupportedFormatError,
    detect_format,
    is_zip,
)
from memoirark.importer.parsers.files import sniff_file
from memoirark.importer.parsers.registry import get_parser
from memoirark.importer.schemas import BulkUploadResponse, FailedUpload, UploadedArtifact
from memoirark.importer.service import transcript_artifact
from memoirark.importer.writer import DomainWriter, StorageError
from memoirark.models import ArtifactCreatedPayload

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


class BulkUploadService:
    def __init__(
        self,
        writer: DomainWriter,
        max_workers: int = DEFAULT_MAX_WORKERS,
        tz: tzinfo | None = None,
    ) -> None:
        self._writer = writer
        self._max_workers = max(1, max_workers)
        self._tz = tz or ZoneInfo("UTC")

    async def upload(
        self,
        files: list[RawExportFile],
        source_system: str | None = None,
    ) -> BulkUploadResponse:
        import_id = str(uuid.uuid4())
        semaphore = asyncio.Semaphore(self._max_workers)

        async def bounded(raw: RawExportFile):
            async with semaphore:
                return await self._process_upload(raw, import_id, source_system)

        # gather keeps results in upload order
        outcomes = await asyncio.gather(*(bounded(raw) for raw in files))

        success: list[UploadedArtifact] = []
        failed: list[FailedUpload] = []
        for uploaded, failures in outcomes:
            success.extend(uploaded)
            failed.extend(failures)

        extracted = sum(1 for s in success if s.source == "zip")
        message = f"Processed {len(success)} files successfully"
        if extracted:
            message += f" ({extracted} extracted from ZIP)"
        logger.info(
            "Bulk upload %s: %d succeeded, %d failed", import_id, len(success), len(failed),
        )
        return BulkUploadResponse(
            message=message,
            success=success,
            failed=failed,
            total=len(success),
            failed_count=len(failed),
        )

    async def _process_upload(
        self, raw: RawExportFile, import_id: str, source_system: str | None,
    ) -> tuple[list[UploadedArtifact], list[FailedUpload]]:
        if not is_zip(raw):
            return await self._process_entry(raw, import_id, source_system)

        try:
            extraction = await asyncio.to_thread(extract_archive, raw)
        except ImportFormatError as e:
            logger.warning("Bulk upload: %s", e)
            return [], [FailedUpload(filename=raw.filename, error=f"Failed to extract ZIP: {e}")]

        success: list[UploadedArtifact] = []
        failed = [FailedUpload(filename=f.filename, error=f.error) for f in extraction.failures]
        exports: dict[SourceFormat, list[RawExportFile]] = {}
        for entry in extraction.files:
            fmt = detect_format(entry)
            if fmt in CONVERSATION_FORMATS:
                exports.setdefault(fmt, []).append(entry)
                continue
            uploaded, failures = await self._process_entry(entry, import_id, source_system)
            success.extend(uploaded)
            failed.extend(failures)

        # message_1.json, message_2.json, ... of one thread become one transcript
        for fmt, entries in exports.items():
            uploaded, failures = await self._store_conversations(fmt, entries, import_id)
            success.extend(uploaded)
            failed.extend(failures)
        return success, failed

    async def _process_entry(
        self, raw: RawExportFile, import_id: str, source_system: str | None,
    ) -> tuple[list[UploadedArtifact], list[FailedUpload]]:
        fmt = detect_format(raw)
        if fmt in CONVERSATION_FORMATS:
            return await self._store_conversations(fmt, [raw], import_id)
        try:
            return [await self._store_file(raw, import_id, source_system)], []
        except (ImportFormatError, StorageError) as e:
            logger.warning("Bulk upload: %s failed: %s", raw.display_name, e)
            return [], [FailedUpload(filename=raw.display_name, error=str(e))]
        except Exception as e:
            logger.exception("Bulk upload: unexpected error on %s", raw.display_name)
            return [], [FailedUpload(filename=raw.display_name, error=f"Failed to create artifact: {e}")]

    async def _store_conversations(
        self, fmt: SourceFormat, entries: list[RawExportFile], import_id: str,
    ) -> tuple[list[UploadedArtifact], list[FailedUpload]]:
        """Parse the files of one export together and write a transcript per conversation.

        A file that yields no conversation is reported as failed.
        """
        parser = get_parser(fmt)
        parsed: list[Conversation] = []
        sources: dict[str, RawExportFile] = {}
        failed: list[FailedUpload] = []
        for entry in entries:
            try:
                conversations = await asyncio.to_thread(parser.parse, entry)
                if not conversations:
                    raise MalformedInputError("No conversations found")
            except ImportFormatError as e:
                logger.warning("Bulk upload: %s failed: %s", entry.display_name, e)
                failed.append(FailedUpload(filename=entry.display_name, error=str(e)))
                continue
            except Exception as e:
                logger.exception("Bulk upload: unexpected error on %s", entry.display_name)
                failed.append(FailedUpload(
                    filename=entry.display_name, error=f"Failed to create artifact: {e}",
                ))
                continue
            for conversation in conversations:
                sources.setdefault(conversation.id, entry)
            parsed.extend(conversations)

        uploaded: list[UploadedArtifact] = []
        for conversation in parser.merge(parsed):
            source = sources.get(conversation.id, entries[0])
            try:
                artifact_id = await self._writer.create_artifact(
                    transcript_artifact(conversation, import_id=import_id, tz=self._tz)
                )
            except StorageError as e:
                logger.warning("Bulk upload: storing %r failed: %s", conversation.id, e)
                failed.append(FailedUpload(filename=source.display_name, error=str(e)))
                continue
            uploaded.append(UploadedArtifact(
                id=artifact_id, filename=source.filename, type="document", source=source.origin,
            ))
        return uploaded, failed

    async def _store_file(
        self, raw: RawExportFile, import_id: str, source_system: str | None,
    ) -> UploadedArtifact:
        sniffed = sniff_file(raw)
        if not sniffed.supported:
            raise UnsupportedFormatError("Unsupported file type")

        path = await asyncio.to_thread(
            self._writer.store_file, raw.content, sniffed.filename, sniffed.artifact_type,
        )
        try:
            artifact_id = await self._writer.create_artifact(ArtifactCreatedPayload(
                artifact_id=str(uuid.uuid4()),
                type=sniffed.artifact_type,
                source_system=source_system or SourceFormat.FILE.source_system,
                short_description=sniffed.filename,
                transcribed_text=sniffed.text,
                source_path_or_url=path,
                imported_from=raw.display_name,
                import_id=import_id,
                metadata={"mimetype": sniffed.mimetype, "size": sniffed.size, "origin": raw.origin},
            ))
        except StorageError:
            await asyncio.to_thread(self._writer.discard_file, path)
            raise
        return UploadedArtifact(
            id=artifact_id, filename=sniffed.filename, type=sniffed.artifact_type, source=raw.origin,
        )
