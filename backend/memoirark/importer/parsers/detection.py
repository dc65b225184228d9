"""Import error taxonomy and source-format resolution.

The format of an upload is resolved once: from the route for the dedicated
importers, and from the filename (falling back to a cheap structural sniff)
for archive entries and bulk uploads.
"""

import json
import re
from pathlib import PurePosixPath

from memoirark.importer.models import RawExportFile, SourceFormat


class ImportFormatError(Exception):
    """Raised when an upload cannot be parsed for the chosen importer."""

    kind = "error"


class UnsupportedFormatError(ImportFormatError):
    """Wrong file type for the chosen importer. Needs a different file."""

    kind = "unsupported"


class MalformedInputError(ImportFormatError):
    """Right file type, but corrupt or unexpected structure. Re-export it."""

    kind = "malformed"


_MESSENGER_NAME = re.compile(r"^message_\d+\.json$", re.IGNORECASE)
_CHATGPT_NAME = re.compile(r"^conversations(\.\d+)?\.json$", re.IGNORECASE)
_SNIFF_BYTES = 4096

CONVERSATION_FORMATS = (SourceFormat.MESSENGER, SourceFormat.SMS, SourceFormat.CHATGPT)


def format_from_route(name: str) -> SourceFormat:
    """Resolve the `{format}` path segment of the import routes."""
    try:
        fmt = SourceFormat(name.lower())
    except ValueError:
        raise UnsupportedFormatError(f"Unknown import format: {name}") from None
    if fmt not in CONVERSATION_FORMATS:
        raise UnsupportedFormatError(f"Format '{name}' has no conversation importer")
    return fmt


def is_zip(raw: RawExportFile) -> bool:
    """True for ZIP uploads, by extension, mimetype or magic bytes."""
    if raw.filename.lower().endswith(".zip"):
        return True
    if raw.mimetype in ("application/zip", "application/x-zip-compressed"):
        return True
    return raw.content[:4] == b"PK\x03\x04"


def detect_format(raw: RawExportFile) -> SourceFormat:
    """Classify a single file as one of the conversation formats or a plain file.

    Filename conventions decide first; only unnamed `.json`/`.xml` files get
    a structural sniff of their first few kilobytes.
    """
    name = PurePosixPath(raw.filename).name
    suffix = PurePosixPath(name).suffix.lower()

    if _MESSENGER_NAME.match(name):
        return SourceFormat.MESSENGER
    if _CHATGPT_NAME.match(name):
        return SourceFormat.CHATGPT
    if suffix == ".xml":
        head = raw.content[:_SNIFF_BYTES].decode("utf-8", errors="ignore")
        if "<smses" in head:
            return SourceFormat.SMS
        return SourceFormat.FILE
    if suffix == ".json":
        return _sniff_json(raw.content)
    return SourceFormat.FILE


def _sniff_json(content: bytes) -> SourceFormat:
    head = content[:_SNIFF_BYTES].decode("utf-8", errors="ignore")
    if '"mapping"' in head:
        return SourceFormat.CHATGPT
    if '"participants"' in head and ('"messages"' in head or '"thread_path"' in head):
        return SourceFormat.MESSENGER
    # Small files may put the telltale keys later on; parse fully only then.
    if len(content) <= _SNIFF_BYTES:
        try:
            data = json.loads(content.decode("utf-8-sig"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            return SourceFormat.FILE
        first = data[0] if isinstance(data, list) and data else data
        if isinstance(first, dict) and "mapping" in first:
            return SourceFormat.CHATGPT
        if isinstance(data, dict) and "participants" in data and "messages" in data:
            return SourceFormat.MESSENGER
    return SourceFormat.FILE
