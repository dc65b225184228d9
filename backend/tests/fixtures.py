"""Shared test helpers: export builders for every supported format."""

import io
import json
import zipfile
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4
from xml.sax.saxutils import quoteattr

from memoirark.importer.models import RawExportFile
from memoirark.models import ArtifactCreatedPayload, EventEnvelope, PersonCreatedPayload

# 2024-03-01T10:00:00Z and the same wall time on the next two days
DAY1_MS = 1709287200000
DAY_MS = 86_400_000
DAY2_MS = DAY1_MS + DAY_MS
DAY3_MS = DAY1_MS + 2 * DAY_MS


def raw_file(content: bytes, filename: str, mimetype: str | None = None) -> RawExportFile:
    return RawExportFile(content=content, filename=filename, mimetype=mimetype)


# ---------------------------------------------------------------------------
# Messenger
# ---------------------------------------------------------------------------


def facebook_encode(text: str) -> str:
    """Mangle text the way Facebook's exporter does (UTF-8 bytes as Latin-1)."""
    return text.encode("utf-8").decode("latin-1")


def messenger_message(
    sender: str,
    timestamp_ms: int,
    content: str | None = "Hello",
    **extra: Any,
) -> dict:
    msg: dict[str, Any] = {"sender_name": sender, "timestamp_ms": timestamp_ms, "type": "Generic"}
    if content is not None:
        msg["content"] = content
    msg.update(extra)
    return msg


def make_messenger_export(
    *,
    participants: list[str] | None = None,
    messages: list[dict] | None = None,
    title: str = "Alice Smith",
    thread_path: str = "inbox/alicesmith_abc123",
) -> dict:
    """Build a message_N.json object. Messages are stored newest first, like Facebook does."""
    participants = participants or ["Alice Smith", "Bob Jones"]
    if messages is None:
        messages = [
            messenger_message("Alice Smith", DAY1_MS, "Morning!"),
            messenger_message("Bob Jones", DAY1_MS + 60_000, "Hey Alice"),
            messenger_message("Alice Smith", DAY2_MS, "Lunch today?"),
            messenger_message("Bob Jones", DAY3_MS, "See you Sunday"),
        ]
    ordered = sorted(messages, key=lambda m: m.get("timestamp_ms", 0), reverse=True)
    return {
        "participants": [{"name": name} for name in participants],
        "messages": ordered,
        "title": title,
        "is_still_participant": True,
        "thread_path": thread_path,
    }


def messenger_bytes(data: dict) -> bytes:
    return json.dumps(data).encode("utf-8")


# ---------------------------------------------------------------------------
# SMS Backup & Restore
# ---------------------------------------------------------------------------


def sms_element(
    address: str,
    date_ms: int,
    body: str = "Hi",
    type_code: int = 1,
    contact_name: str | None = "Jane Doe",
) -> str:
    return (
        f'<sms protocol="0" address={quoteattr(address)} date="{date_ms}" type="{type_code}"'
        f' body={quoteattr(body)} read="1" status="-1"'
        f' contact_name={quoteattr(contact_name or "(Unknown)")} />'
    )


def mms_element(
    address: str,
    date: int,
    text: str | None = "Look at this",
    m_type: int = 132,
    with_image: bool = True,
    contact_name: str | None = "Jane Doe",
) -> str:
    parts = ['<part seq="-1" ct="application/smil" name="smil.xml" text="&lt;smil/&gt;" />']
    if text is not None:
        parts.append(f'<part seq="0" ct="text/plain" name="text_0.txt" text={quoteattr(text)} />')
    if with_image:
        parts.append('<part seq="0" ct="image/jpeg" name="IMG_0001.jpg" />')
    addr_type = "137" if m_type == 132 else "151"
    return (
        f'<mms date="{date}" m_type="{m_type}" address={quoteattr(address)}'
        f' contact_name={quoteattr(contact_name or "(Unknown)")}>'
        f"<parts>{''.join(parts)}</parts>"
        f'<addrs><addr address={quoteattr(address)} type="{addr_type}" charset="106" /></addrs>'
        f"</mms>"
    )


def make_sms_backup(elements: list[str] | None = None, backup_date: int = DAY3_MS) -> bytes:
    if elements is None:
        elements = [
            sms_element("+1 (555) 123-4567", DAY1_MS, "Are you coming?", type_code=1),
            sms_element("5551234567", DAY1_MS + 120_000, "On my way", type_code=2),
            sms_element("+15551234567", DAY2_MS, "Thanks for yesterday", type_code=1),
            sms_element("+15559876543", DAY2_MS, "Your code is 1234", contact_name=None),
        ]
    body = "\n  ".join(elements)
    return (
        "<?xml version='1.0' encoding='UTF-8' standalone='yes' ?>\n"
        f'<smses count="{len(elements)}" backup_set="test" backup_date="{backup_date}">\n'
        f"  {body}\n"
        "</smses>\n"
    ).encode("utf-8")


# ---------------------------------------------------------------------------
# ChatGPT
# ---------------------------------------------------------------------------


def chatgpt_node(
    node_id: str,
    parent: str | None,
    children: list[str],
    role: str = "user",
    content: str = "Hello",
    create_time: float | str | None = 1700000000.0,
    model_slug: str | None = None,
) -> dict:
    """Build a single ChatGPT mapping node."""
    msg = {
        "id": f"msg-{node_id}",
        "author": {"role": role},
        "create_time": create_time,
        "content": {"content_type": "text", "parts": [content]},
        "metadata": {"model_slug": model_slug} if model_slug else {},
    }
    return {"id": node_id, "message": msg, "parent": parent, "children": children}


def chatgpt_structural_node(node_id: str, parent: str | None, children: list[str]) -> dict:
    return {"id": node_id, "message": None, "parent": parent, "children": children}


def make_chatgpt_conversation(
    *,
    conv_id: str = "conv-1",
    title: str | None = "Learning Python",
    mapping: dict | None = None,
    current_node: str | None = "a2",
    update_time: float = 1700001000.0,
) -> dict:
    """Build a complete ChatGPT conversation object."""
    if mapping is None:
        mapping = {
            "root": chatgpt_structural_node("root", None, ["sys"]),
            "sys": chatgpt_node("sys", "root", ["u1"], role="system", content="You are helpful."),
            "u1": chatgpt_node("u1", "sys", ["a1"], content="What is Python?", create_time=1700000000.0),
            "a1": chatgpt_node("a1", "u1", ["u2"], role="assistant",
                               content="A programming language.", create_time=1700000010.5,
                               model_slug="gpt-4o"),
            "u2": chatgpt_node("u2", "a1", ["a2"], content="Tell me more.", create_time=1700000060.0),
            "a2": chatgpt_node("a2", "u2", [], role="assistant",
                               content="It was created by Guido van Rossum.",
                               create_time=1700000070.0, model_slug="gpt-4o"),
        }
    conv = {
        "id": conv_id,
        "conversation_id": conv_id,
        "title": title,
        "create_time": 1700000000.0,
        "update_time": update_time,
        "mapping": mapping,
    }
    if current_node is not None:
        conv["current_node"] = current_node
    return conv


def chatgpt_bytes(conversations: list[dict] | dict) -> bytes:
    return json.dumps(conversations).encode("utf-8")


# ---------------------------------------------------------------------------
# Archives and domain events
# ---------------------------------------------------------------------------


def make_zip(entries: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def make_person_created_envelope(
    person_id: str | None = None,
    name: str = "Alice Smith",
    identity_key: str = "name:alice smith",
    **payload_overrides: Any,
) -> EventEnvelope:
    person_id = person_id or str(uuid4())
    payload = PersonCreatedPayload(
        person_id=person_id, name=name, identity_key=identity_key, **payload_overrides,
    )
    return EventEnvelope(
        event_id=str(uuid4()),
        aggregate_id=person_id,
        timestamp=datetime.now(UTC),
        device_id="test",
        event_type="PersonCreated",
        payload=payload.model_dump(),
    )


def make_artifact_created_envelope(
    artifact_id: str | None = None,
    transcribed_text: str | None = "We walked along the harbour at dusk.",
    **payload_overrides: Any,
) -> EventEnvelope:
    artifact_id = artifact_id or str(uuid4())
    payload = ArtifactCreatedPayload(
        artifact_id=artifact_id,
        type=payload_overrides.pop("type", "document"),
        source_system=payload_overrides.pop("source_system", "test"),
        short_description=payload_overrides.pop("short_description", "Harbour walk"),
        transcribed_text=transcribed_text,
        **payload_overrides,
    )
    return EventEnvelope(
        event_id=str(uuid4()),
        aggregate_id=artifact_id,
        timestamp=datetime.now(UTC),
        device_id="test",
        event_type="ArtifactCreated",
        payload=payload.model_dump(),
    )
