"""Plain-text transcripts for conversation Artifacts.

Each format reads the way its source app shows it: Messenger lines with
attachments and reactions, SMS lines with a send/receive arrow, ChatGPT
turns as blocks separated by horizontal rules.
"""

from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from memoirark.importer.models import Conversation, Message, SourceFormat

UTC_ZONE = ZoneInfo("UTC")


def _stamp(ts: datetime, tz: tzinfo) -> str:
    return ts.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S")


def _messenger_line(m: Message, tz: tzinfo) -> str:
    line = f"[{_stamp(m.timestamp, tz)}] {m.sender.name}: {m.text or ''}"
    if m.media:
        line += " " + " ".join(f"[{media.type}]" for media in m.media)
    for reaction in m.reactions:
        line += f" ({reaction.symbol} by {reaction.actor})"
    return line


def _sms_line(m: Message, tz: tzinfo) -> str:
    arrow = "→" if m.direction == "sent" else "←"
    line = f"[{_stamp(m.timestamp, tz)}] {arrow} {m.sender.name}: {m.text or ''}"
    if m.media:
        line += " [media]"
    if m.is_mms:
        line += " (MMS)"
    return line


def _chatgpt_block(m: Message, tz: tzinfo) -> str:
    return f"[{m.timestamp.astimezone(tz).isoformat()}] {m.sender.name}:\n{m.text or ''}"


def render_transcript(conversation: Conversation, tz: tzinfo = UTC_ZONE) -> str:
    messages = conversation.ordered_messages()
    if conversation.source_format == SourceFormat.CHATGPT:
        return "\n\n---\n\n".join(_chatgpt_block(m, tz) for m in messages)
    if conversation.source_format == SourceFormat.SMS:
        return "\n".join(_sms_line(m, tz) for m in messages)
    return "\n".join(_messenger_line(m, tz) for m in messages)


def short_description(conversation: Conversation) -> str:
    return f"{conversation.source_format.label}: {conversation.title}"


def imported_from(conversation: Conversation) -> str:
    """Human-readable provenance, e.g. `Android SMS backup - Jane (+15551234567)`."""
    if conversation.source_format == SourceFormat.SMS:
        phone = conversation.metadata.get("phone_number") or conversation.id
        return f"Android SMS backup - {conversation.title} ({phone})"
    if conversation.source_format == SourceFormat.CHATGPT:
        return f"ChatGPT export - {conversation.title}"
    return f"Facebook Messenger export - {conversation.title}"
