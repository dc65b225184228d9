"""ZIP archive expansion for uploads.

Messenger and ChatGPT exports arrive as ZIPs, and bulk uploads may mix ZIPs
with loose files. Every entry becomes its own RawExportFile tagged with the
archive it came from.
"""

import io
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from memoirark.importer.models import RawExportFile
from memoirark.importer.parsers.detection import MalformedInputError

logger = logging.getLogger(__name__)


@dataclass
class EntryFailure:
    filename: str
    error: str
    kind: str = "unsupported"


@dataclass
class ArchiveExtraction:
    files: list[RawExportFile] = field(default_factory=list)
    failures: list[EntryFailure] = field(default_factory=list)


def _is_skipped(entry_name: str) -> bool:
    """Directories, hidden files and macOS resource forks."""
    path = PurePosixPath(entry_name)
    if entry_name.endswith("/"):
        return True
    if "__MACOSX" in path.parts:
        return True
    return any(part.startswith(".") for part in path.parts)


def extract_archive(raw: RawExportFile) -> ArchiveExtraction:
    """Expand a ZIP upload into one RawExportFile per regular entry.

    Raises MalformedInputError when the bytes are not a readable ZIP.
    Individual entries that fail to decompress are reported as failures
    without aborting the rest of the archive.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(raw.content))
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise MalformedInputError(f"{raw.filename} is not a readable ZIP archive: {e}") from e

    result = ArchiveExtraction()
    with archive:
        for info in archive.infolist():
            if info.is_dir() or _is_skipped(info.filename):
                continue
            name = PurePosixPath(info.filename).name
            try:
                content = archive.read(info)
            except (zipfile.BadZipFile, OSError, RuntimeError) as e:
                # RuntimeError: encrypted entries without a password
                logger.warning("Could not read %s from %s: %s", info.filename, raw.filename, e)
                result.failures.append(
                    EntryFailure(filename=info.filename, error=f"Failed to extract: {e}", kind="malformed")
                )
                continue
            result.files.append(RawExportFile(
                content=content,
                filename=name,
                origin="zip",
                archive_name=raw.filename,
                archive_path=info.filename,
            ))

    logger.info(
        "Extracted %d entries from %s (%d failed)",
        len(result.files), raw.filename, len(result.failures),
    )
    return result
