"""Generic file sniffer for bulk uploads.

Anything that is not a conversation export becomes a typed Artifact:
photos, audio, video or documents, decided by extension with the upload's
mimetype as a fallback.
"""

import mimetypes
from dataclasses import dataclass
from pathlib import PurePosixPath

from memoirark.importer.models import RawExportFile

IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic", ".heif", ".bmp", ".tiff"}
AUDIO_EXTS = {".mp3", ".wav", ".m4a", ".ogg", ".flac", ".wma", ".aac", ".amr"}
VIDEO_EXTS = {".mp4", ".mov", ".avi", ".mkv", ".webm", ".wmv", ".flv"}
DOCUMENT_EXTS = {".pdf", ".doc", ".docx", ".txt", ".md", ".rtf", ".csv"}
TEXT_EXTS = {".txt", ".md", ".csv"}

# Types mimetypes doesn't know on every platform
_EXTRA_MIMETYPES = {
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".webp": "image/webp",
    ".m4a": "audio/mp4",
    ".amr": "audio/amr",
    ".md": "text/markdown",
}

_MIME_PREFIXES = (("image/", "photo"), ("audio/", "audio"), ("video/", "video"))

PREVIEW_CHARS = 500


@dataclass
class SniffedFile:
    filename: str
    artifact_type: str  # "photo" | "audio" | "video" | "document" | "other"
    mimetype: str
    size: int
    text: str | None = None

    @property
    def supported(self) -> bool:
        return self.artifact_type != "other"

    @property
    def text_preview(self) -> str | None:
        if self.text is None:
            return None
        return self.text[:PREVIEW_CHARS]


def artifact_type_for(filename: str, mimetype: str | None = None) -> str:
    ext = PurePosixPath(filename).suffix.lower()
    if ext in IMAGE_EXTS:
        return "photo"
    if ext in AUDIO_EXTS:
        return "audio"
    if ext in VIDEO_EXTS:
        return "video"
    if ext in DOCUMENT_EXTS:
        return "document"
    if mimetype:
        for prefix, artifact_type in _MIME_PREFIXES:
            if mimetype.startswith(prefix):
                return artifact_type
        if mimetype == "application/pdf" or mimetype.startswith("text/"):
            return "document"
    return "other"


def mimetype_for(filename: str) -> str:
    ext = PurePosixPath(filename).suffix.lower()
    if ext in _EXTRA_MIMETYPES:
        return _EXTRA_MIMETYPES[ext]
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


def extract_text(raw: RawExportFile) -> str | None:
    """Decoded text for plain-text documents, None for everything else."""
    if PurePosixPath(raw.filename).suffix.lower() not in TEXT_EXTS:
        return None
    try:
        return raw.content.decode("utf-8-sig")
    except UnicodeDecodeError:
        # Old notes exported from Windows tools
        return raw.content.decode("cp1252", errors="replace")


def sniff_file(raw: RawExportFile) -> SniffedFile:
    mimetype = raw.mimetype
    if not mimetype or mimetype == "application/octet-stream":
        mimetype = mimetype_for(raw.filename)
    return SniffedFile(
        filename=PurePosixPath(raw.filename).name,
        artifact_type=artifact_type_for(raw.filename, mimetype),
        mimetype=mimetype,
        size=len(raw.content),
        text=extract_text(raw),
    )
