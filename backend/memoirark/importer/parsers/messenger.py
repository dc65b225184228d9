"""Parser for Facebook Messenger `message_*.json` exports.

Export location: facebook.com/dyi → Messages → JSON. Each conversation
folder holds `message_1.json` (and `message_2.json`, … for long threads),
newest message first. Facebook writes non-ASCII text as Latin-1 code points
of the UTF-8 bytes, so every string is re-decoded before use.
"""

import logging
import re
from pathlib import PurePosixPath
from typing import Any

from memoirark.importer.models import (
    Conversation,
    MediaRef,
    Message,
    ParticipantRef,
    RawExportFile,
    Reaction,
    SourceFormat,
)
from memoirark.importer.parsers.base import ExportParser
from memoirark.importer.parsers.detection import MalformedInputError, UnsupportedFormatError
from memoirark.importer.timestamps import from_epoch_millis
from memoirark.utils.json import load_json_bytes

logger = logging.getLogger(__name__)

_KEPT_TYPES = {"Generic", "Share"}

# Messenger attachment arrays and the media type each one maps to
_MEDIA_ARRAYS = {
    "photos": "photo",
    "videos": "video",
    "audio_files": "audio",
    "gifs": "gif",
    "files": "file",
}

_PART_NUMBER = re.compile(r"message_(\d+)\.json$", re.IGNORECASE)


def fix_encoding(value: str) -> str:
    """Undo Facebook's Latin-1-over-UTF-8 mojibake.

    Strings that are already proper Unicode (code points above U+00FF) or
    whose bytes are not valid UTF-8 are returned unchanged.
    """
    try:
        return value.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return value


def fix_encoding_deep(obj: Any) -> Any:
    """Apply fix_encoding to every string in a parsed JSON structure."""
    if isinstance(obj, str):
        return fix_encoding(obj)
    if isinstance(obj, list):
        return [fix_encoding_deep(item) for item in obj]
    if isinstance(obj, dict):
        return {key: fix_encoding_deep(value) for key, value in obj.items()}
    return obj


def _media_for(msg: dict) -> list[MediaRef]:
    media: list[MediaRef] = []
    for key, media_type in _MEDIA_ARRAYS.items():
        for item in msg.get(key) or []:
            uri = item.get("uri") if isinstance(item, dict) else None
            media.append(MediaRef(type=media_type, uri=uri))
    sticker = msg.get("sticker")
    if isinstance(sticker, dict):
        media.append(MediaRef(type="sticker", uri=sticker.get("uri")))
    return media


def _text_for(msg: dict) -> str:
    if msg.get("is_unsent"):
        return "[Message unsent]"
    text = msg.get("content") or ""
    share = msg.get("share")
    if isinstance(share, dict) and share.get("link"):
        text += ("\n" if text else "") + f"[Shared: {share['link']}]"
    return text


class MessengerParser(ExportParser):
    preview_messages = 50

    @property
    def source_format(self) -> SourceFormat:
        return SourceFormat.MESSENGER

    def parse(self, raw: RawExportFile) -> list[Conversation]:
        suffix = PurePosixPath(raw.filename).suffix.lower()
        if suffix not in ("", ".json"):
            raise UnsupportedFormatError(
                f"{raw.filename} is not a Messenger export (expected message_*.json)"
            )
        try:
            data = load_json_bytes(raw.content)
        except ValueError as e:
            raise MalformedInputError(str(e)) from e

        if (
            not isinstance(data, dict)
            or not isinstance(data.get("participants"), list)
            or not isinstance(data.get("messages"), list)
        ):
            raise MalformedInputError(
                "Messenger export must be an object with 'participants' and 'messages' arrays"
            )

        data = fix_encoding_deep(data)
        warnings: list[str] = []

        participants: list[ParticipantRef] = []
        seen: set[str] = set()
        for entry in data["participants"]:
            name = entry.get("name") if isinstance(entry, dict) else None
            if name and name not in seen:
                seen.add(name)
                participants.append(ParticipantRef(name=name))

        messages: list[Message] = []
        for index, msg in enumerate(data["messages"]):
            if not isinstance(msg, dict):
                warnings.append(f"Skipped non-object message at position {index}")
                continue
            msg_type = msg.get("type", "Generic")
            if msg_type not in _KEPT_TYPES:
                continue
            sender_name = msg.get("sender_name")
            timestamp_ms = msg.get("timestamp_ms")
            if not sender_name or timestamp_ms is None:
                warnings.append(f"Skipped message {index} without sender or timestamp")
                continue
            try:
                timestamp = from_epoch_millis(timestamp_ms)
            except ValueError:
                warnings.append(f"Skipped message {index} with bad timestamp {timestamp_ms!r}")
                continue

            if sender_name not in seen:
                # Former participants still appear as senders
                seen.add(sender_name)
                participants.append(ParticipantRef(name=sender_name))

            reactions = [
                Reaction(actor=r.get("actor", ""), symbol=r.get("reaction", ""))
                for r in msg.get("reactions") or []
                if isinstance(r, dict)
            ]
            messages.append(Message(
                sender=ParticipantRef(name=sender_name),
                timestamp=timestamp,
                sequence=index,
                text=_text_for(msg),
                media=_media_for(msg),
                reactions=reactions,
                kind=msg_type,
            ))

        title = data.get("title") or ", ".join(p.name for p in participants) or raw.filename
        conversation_id = data.get("thread_path") or title
        part = _PART_NUMBER.search(raw.filename)

        if warnings:
            logger.info("Messenger %s: %d warnings", raw.display_name, len(warnings))

        return [Conversation(
            id=conversation_id,
            title=title,
            source_format=SourceFormat.MESSENGER,
            participants=participants,
            messages=messages,
            warnings=warnings,
            metadata={"part": int(part.group(1)) if part else 1},
        )]

    def merge(self, conversations: list[Conversation]) -> list[Conversation]:
        """Join `message_1.json`, `message_2.json`, … of the same thread."""
        by_id: dict[str, list[Conversation]] = {}
        for conversation in conversations:
            by_id.setdefault(conversation.id, []).append(conversation)

        merged: list[Conversation] = []
        for conversation_id, parts in by_id.items():
            if len(parts) == 1:
                merged.append(parts[0])
                continue
            parts.sort(key=lambda c: c.metadata.get("part", 1))
            combined = Conversation(
                id=conversation_id,
                title=parts[0].title,
                source_format=SourceFormat.MESSENGER,
                metadata={"parts": len(parts)},
            )
            names: set[str] = set()
            offset = 0
            for part in parts:
                for participant in part.participants:
                    if participant.name not in names:
                        names.add(participant.name)
                        combined.participants.append(participant)
                for message in part.messages:
                    message.sequence += offset
                    combined.messages.append(message)
                offset += max((m.sequence for m in part.messages), default=-1) + 1
                combined.warnings.extend(part.warnings)
            merged.append(combined)
        return merged
