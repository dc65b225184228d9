"""Day grouping: turns a conversation into candidate LifeEvents.

With group_by_day on, each calendar day (in the reference timezone) that
has messages becomes one EventDraft. With it off, the whole conversation
becomes a single draft dated at its first message.
"""

from datetime import tzinfo
from itertools import groupby
from zoneinfo import ZoneInfo

from memoirark.importer.models import (
    Conversation,
    EventDraft,
    Message,
    ParticipantRef,
    SourceFormat,
)

NOTES_MAX_LINES = 500
SUMMARY_MAX_CHARS = 300


def _note_line(m: Message, tz: tzinfo) -> str:
    body = m.text or " ".join(f"[{media.type}]" for media in m.media)
    return f"[{m.timestamp.astimezone(tz):%H:%M:%S}] {m.sender.name}: {body}"


def build_notes(messages: list[Message], tz: tzinfo, max_lines: int = NOTES_MAX_LINES) -> str:
    lines = [_note_line(m, tz) for m in messages[:max_lines]]
    if len(messages) > max_lines:
        lines.append(f"… ({len(messages) - max_lines} more messages)")
    return "\n".join(lines)


def _senders(messages: list[Message]) -> list[str]:
    seen: dict[str, None] = {}
    for m in messages:
        seen.setdefault(m.sender.name, None)
    return list(seen)


def _summary(conversation: Conversation, messages: list[Message], tz: tzinfo, whole: bool) -> str:
    if conversation.source_format == SourceFormat.CHATGPT:
        first = next((m.text for m in messages if m.sender.kind == "self" and m.text), None)
        if not first:
            return "ChatGPT conversation"
        if len(first) > SUMMARY_MAX_CHARS:
            return first[:SUMMARY_MAX_CHARS] + "..."
        return first

    count = len(messages)
    if conversation.source_format == SourceFormat.SMS and not whole:
        sent = sum(1 for m in messages if m.direction == "sent")
        received = sum(1 for m in messages if m.direction == "received")
        return f"{count} messages ({sent} sent, {received} received)"
    if whole:
        start = messages[0].timestamp.astimezone(tz).date()
        end = messages[-1].timestamp.astimezone(tz).date()
        return f"{count} messages from {start.isoformat()} to {end.isoformat()}"
    return f"{count} messages from {', '.join(_senders(messages))}"


def active_participants(conversation: Conversation, messages: list[Message]) -> list[ParticipantRef]:
    """Contacts who took part in these messages: senders and reaction actors.

    In a one-to-one thread the single contact is always included, even on
    days they only received messages.
    """
    active: dict[ParticipantRef, None] = {}
    contacts = conversation.contacts
    if len(contacts) == 1:
        active[contacts[0]] = None
    by_name = {p.name: p for p in contacts}
    for m in messages:
        if m.sender.kind == "contact":
            active.setdefault(m.sender, None)
        for reaction in m.reactions:
            ref = by_name.get(reaction.actor)
            if ref is not None:
                active.setdefault(ref, None)
    return list(active)


def _draft(
    conversation: Conversation,
    messages: list[Message],
    title: str,
    summary: str,
    tz: tzinfo,
    person_ids: dict[ParticipantRef, str],
) -> EventDraft:
    refs = active_participants(conversation, messages)
    return EventDraft(
        conversation_id=conversation.id,
        title=title,
        date=messages[0].timestamp.astimezone(tz).date(),
        summary=summary,
        notes=build_notes(messages, tz),
        messages=messages,
        participant_refs=refs,
        person_ids=[person_ids[r] for r in refs if r in person_ids],
    )


def synthesize(
    conversation: Conversation,
    *,
    group_by_day: bool = True,
    person_ids: dict[ParticipantRef, str] | None = None,
    tz: tzinfo | None = None,
) -> list[EventDraft]:
    """Build EventDrafts for a conversation, in chronological order."""
    tz = tz or ZoneInfo("UTC")
    person_ids = person_ids or {}
    messages = conversation.ordered_messages()
    if not messages:
        return []

    label = conversation.source_format.label
    if not group_by_day:
        return [_draft(
            conversation,
            messages,
            f"{label} conversation: {conversation.title}",
            _summary(conversation, messages, tz, whole=True),
            tz,
            person_ids,
        )]

    drafts = []
    # Sorted by instant, so local days arrive in order and contiguously
    for day, bucket in groupby(messages, key=lambda m: m.timestamp.astimezone(tz).date()):
        day_messages = list(bucket)
        drafts.append(_draft(
            conversation,
            day_messages,
            f"{label}: {conversation.title} ({day.isoformat()})",
            _summary(conversation, day_messages, tz, whole=False),
            tz,
            person_ids,
        ))
    return drafts
