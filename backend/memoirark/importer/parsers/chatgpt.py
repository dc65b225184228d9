"""Parser for ChatGPT conversations.json export format.

ChatGPT's export is tree-native: a `mapping` dict of nodes with parent/children
pointers. A memoir only needs the thread the user actually saw, so the tree
is linearized along the ancestry of `current_node` (or, failing that, by
following the first child from the root). Structural, system and tool nodes
are dropped.
"""

import logging
from collections import Counter
from pathlib import PurePosixPath

from memoirark.importer.models import (
    Conversation,
    MediaRef,
    Message,
    ParticipantRef,
    RawExportFile,
    SourceFormat,
)
from memoirark.importer.parsers.base import ExportParser
from memoirark.importer.parsers.detection import MalformedInputError, UnsupportedFormatError
from memoirark.importer.timestamps import normalize_timestamp
from memoirark.utils.json import load_json_bytes

logger = logging.getLogger(__name__)

USER = ParticipantRef(name="You", kind="self")
ASSISTANT = ParticipantRef(name="ChatGPT", kind="assistant")

_SENDERS = {"user": USER, "assistant": ASSISTANT}

UNTITLED = "Untitled Conversation"


def _extract_content(message: dict) -> tuple[str, list[MediaRef]]:
    """Text and attachments from a ChatGPT message object."""
    content_obj = message.get("content") or {}
    parts = content_obj.get("parts") or []
    # Parts can contain non-string items for multimodal messages
    text_parts = [p for p in parts if isinstance(p, str)]
    media = [
        MediaRef(type="photo", uri=p.get("asset_pointer"))
        for p in parts
        if isinstance(p, dict) and p.get("content_type") == "image_asset_pointer"
    ]
    text = "\n".join(text_parts)
    if not text and isinstance(content_obj.get("text"), str):
        text = content_obj["text"]
    return text, media


def _main_thread(conv: dict) -> list[dict]:
    """Mapping entries on the displayed thread, root first."""
    mapping = conv["mapping"]
    current = conv.get("current_node")
    if current in mapping:
        path: list[dict] = []
        visited: set[str] = set()
        node_id = current
        while node_id is not None and node_id in mapping and node_id not in visited:
            visited.add(node_id)
            path.append(mapping[node_id])
            node_id = mapping[node_id].get("parent")
        path.reverse()
        return path

    roots = [nid for nid, entry in mapping.items() if entry.get("parent") not in mapping]
    if not roots:
        return []
    path = []
    visited = set()
    node_id = roots[0]
    while node_id is not None and node_id in mapping and node_id not in visited:
        visited.add(node_id)
        entry = mapping[node_id]
        path.append(entry)
        children = entry.get("children") or []
        node_id = children[0] if children else None
    return path


def _parse_single(conv: dict, index: int) -> Conversation:
    """Parse a single ChatGPT conversation object into a Conversation."""
    warnings: list[str] = []
    messages: list[Message] = []
    models_seen: list[str] = []
    system_prompt: str | None = None

    fallback = None
    try:
        fallback = normalize_timestamp(conv.get("create_time"))
    except ValueError:
        warnings.append(f"Unreadable create_time {conv.get('create_time')!r}")

    for entry in _main_thread(conv):
        message = entry.get("message")
        if message is None:
            continue
        role = (message.get("author") or {}).get("role", "")
        text, media = _extract_content(message)

        if role == "system":
            if text.strip():
                system_prompt = text
            continue
        if role not in _SENDERS:
            continue
        if not text.strip() and not media:
            continue

        try:
            timestamp = normalize_timestamp(message.get("create_time"))
        except ValueError:
            timestamp = None
        if timestamp is None:
            # Older exports leave create_time null on some messages
            timestamp = messages[-1].timestamp if messages else fallback
        if timestamp is None:
            warnings.append(f"Skipped {role} message without any timestamp")
            continue

        model_slug = (message.get("metadata") or {}).get("model_slug")
        if model_slug:
            models_seen.append(model_slug)

        messages.append(Message(
            sender=_SENDERS[role],
            timestamp=timestamp,
            sequence=len(messages),
            text=text,
            media=media,
            kind=role,
        ))

    metadata: dict = {}
    try:
        updated = normalize_timestamp(conv.get("update_time"))
    except ValueError:
        updated = None
    if updated is not None:
        metadata["update_time"] = updated.isoformat()
    if models_seen:
        metadata["model"] = Counter(models_seen).most_common(1)[0][0]
    if system_prompt:
        metadata["system_prompt"] = system_prompt

    participants = []
    if any(m.sender == USER for m in messages):
        participants.append(USER)
    if any(m.sender == ASSISTANT for m in messages):
        participants.append(ASSISTANT)

    return Conversation(
        id=conv.get("conversation_id") or conv.get("id") or f"conversation-{index}",
        title=(conv.get("title") or "").strip() or UNTITLED,
        source_format=SourceFormat.CHATGPT,
        participants=participants,
        messages=messages,
        warnings=warnings,
        metadata=metadata,
    )


class ChatGptParser(ExportParser):
    preview_messages = 3
    preview_chars = 200

    @property
    def source_format(self) -> SourceFormat:
        return SourceFormat.CHATGPT

    def parse(self, raw: RawExportFile) -> list[Conversation]:
        """Parse conversations.json (array or single conversation)."""
        suffix = PurePosixPath(raw.filename).suffix.lower()
        if suffix not in ("", ".json"):
            raise UnsupportedFormatError(
                f"{raw.filename} is not a ChatGPT export (expected conversations.json)"
            )
        try:
            data = load_json_bytes(raw.content)
        except ValueError as e:
            raise MalformedInputError(str(e)) from e

        items = data if isinstance(data, list) else [data]
        for i, conv in enumerate(items):
            if not isinstance(conv, dict) or not isinstance(conv.get("mapping"), dict):
                raise MalformedInputError(
                    f"Conversation {i} is not a ChatGPT conversation object with a 'mapping'"
                )

        conversations = [_parse_single(conv, i) for i, conv in enumerate(items)]
        dropped = sum(1 for c in conversations if not c.messages)
        conversations = [c for c in conversations if c.messages]
        # Most recently updated first, like the ChatGPT sidebar
        conversations.sort(
            key=lambda c: c.metadata.get("update_time") or c.date_range[1].isoformat(),
            reverse=True,
        )
        logger.info(
            "ChatGPT export %s: %d conversations (%d empty dropped)",
            raw.display_name, len(conversations), dropped,
        )
        return conversations
