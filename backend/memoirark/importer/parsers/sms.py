"""Parser for Android "SMS Backup & Restore" XML files.

Export location: SMS Backup & Restore (SyncTech) → Backup → Local backup.
The root `<smses>` element holds `<sms>` elements (one attribute per field)
and `<mms>` elements with nested `<parts>` and `<addrs>`. Messages are
grouped into one conversation per normalized phone number.
"""

import logging
import xml.etree.ElementTree as ET
from pathlib import PurePosixPath

from memoirark.importer.identity import normalize_phone
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
from memoirark.importer.timestamps import from_epoch_auto, from_epoch_millis

logger = logging.getLogger(__name__)

SELF = ParticipantRef(name="Me", kind="self")

_SMS_DIRECTIONS = {1: "received", 2: "sent", 3: "draft"}

# MMS m_type: 132 = retrieve-conf (received), 128 = send-req (sent)
_MMS_DIRECTIONS = {132: "received", 128: "sent"}
# MMS msg_box mirrors the SMS type codes and wins when present
_MMS_BOX_DIRECTIONS = {1: "received", 2: "sent", 3: "draft"}

# addr type: 137 = from, 151 = to
_ADDR_FROM = "137"
_ADDR_TO = "151"

_MEDIA_PREFIXES = {"image/": "photo", "video/": "video", "audio/": "audio"}


def _int_attr(element: ET.Element, name: str) -> int | None:
    value = element.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _contact_name(element: ET.Element) -> str | None:
    name = (element.get("contact_name") or "").strip()
    if not name or name == "(Unknown)" or name == "null":
        return None
    return name


class _Thread:
    """Messages collected for one phone number while scanning the file."""

    def __init__(self, key: str, address: str):
        self.key = key
        self.address = address
        self.name: str | None = None
        self.messages: list[Message] = []
        self.has_sent = False

    @property
    def contact(self) -> ParticipantRef:
        return ParticipantRef(name=self.name or self.address, handle=self.address)


class SmsParser(ExportParser):
    preview_messages = 20

    @property
    def source_format(self) -> SourceFormat:
        return SourceFormat.SMS

    def parse(self, raw: RawExportFile) -> list[Conversation]:
        suffix = PurePosixPath(raw.filename).suffix.lower()
        if suffix not in ("", ".xml"):
            raise UnsupportedFormatError(
                f"{raw.filename} is not an SMS backup (expected an .xml file)"
            )
        try:
            root = ET.fromstring(raw.content)
        except ET.ParseError as e:
            raise MalformedInputError(f"Invalid XML: {e}") from e
        if root.tag != "smses":
            raise UnsupportedFormatError(
                f"Expected an <smses> backup, found <{root.tag}>"
            )

        backup_date = None
        if root.get("backup_date"):
            try:
                backup_date = from_epoch_millis(root.get("backup_date")).isoformat()
            except ValueError:
                logger.debug("Ignoring unreadable backup_date %r", root.get("backup_date"))

        threads: dict[str, _Thread] = {}
        warnings: list[str] = []

        for sequence, element in enumerate(root):
            if element.tag == "sms":
                parsed = self._parse_sms(element, sequence)
            elif element.tag == "mms":
                parsed = self._parse_mms(element, sequence)
            else:
                continue
            if parsed is None:
                warnings.append(f"Skipped <{element.tag}> at position {sequence} without a readable date")
                continue

            address, name, message = parsed
            key = normalize_phone(address) or address.strip().casefold() or "unknown"
            thread = threads.get(key)
            if thread is None:
                thread = threads[key] = _Thread(key, address or "Unknown")
            if name and not thread.name:
                thread.name = name
            if message.direction != "received":
                thread.has_sent = True
            thread.messages.append(message)

        conversations = []
        for thread in threads.values():
            contact = thread.contact
            participants = [contact]
            if thread.has_sent:
                participants.append(SELF)
            for message in thread.messages:
                if message.direction == "received":
                    message.sender = contact
            conversations.append(Conversation(
                id=thread.key,
                title=contact.name,
                source_format=SourceFormat.SMS,
                participants=participants,
                messages=thread.messages,
                metadata={"phone_number": thread.address, "backup_date": backup_date},
            ))

        # Busiest threads first, the way the backup app lists them
        conversations.sort(key=lambda c: len(c.messages), reverse=True)
        if conversations and warnings:
            conversations[0].warnings.extend(warnings)
        logger.info(
            "SMS backup %s: %d conversations, %d skipped elements",
            raw.display_name, len(conversations), len(warnings),
        )
        return conversations

    def _parse_sms(self, element: ET.Element, sequence: int):
        date = element.get("date")
        type_code = _int_attr(element, "type")
        if not date or type_code is None:
            return None
        try:
            timestamp = from_epoch_millis(date)
        except ValueError:
            return None
        direction = _SMS_DIRECTIONS.get(type_code, "other")
        address = element.get("address") or "Unknown"
        message = Message(
            sender=SELF,
            timestamp=timestamp,
            sequence=sequence,
            text=element.get("body") or "",
            direction=direction,
        )
        return address, _contact_name(element), message

    def _parse_mms(self, element: ET.Element, sequence: int):
        date = element.get("date")
        if not date:
            return None
        try:
            # Some backup versions store MMS dates in seconds
            timestamp = from_epoch_auto(date)
        except ValueError:
            return None

        box = _int_attr(element, "msg_box")
        if box in _MMS_BOX_DIRECTIONS:
            direction = _MMS_BOX_DIRECTIONS[box]
        else:
            direction = _MMS_DIRECTIONS.get(_int_attr(element, "m_type") or 0, "other")

        addrs = element.findall("./addrs/addr")
        wanted = _ADDR_FROM if direction == "received" else _ADDR_TO
        address = element.get("address")
        if not address:
            match = next((a for a in addrs if a.get("type") == wanted), None)
            if match is None and addrs:
                match = addrs[0]
            address = match.get("address") if match is not None else "Unknown"

        texts: list[str] = []
        media: list[MediaRef] = []
        for part in element.findall("./parts/part"):
            content_type = (part.get("ct") or "").lower()
            if content_type == "text/plain":
                text = part.get("text")
                if text and text != "null":
                    texts.append(text)
                continue
            for prefix, media_type in _MEDIA_PREFIXES.items():
                if content_type.startswith(prefix):
                    media.append(MediaRef(type=media_type, uri=part.get("name") or part.get("cl")))
                    break

        text = "\n".join(texts)
        if not text:
            text = "[Media message]" if media else "[Empty MMS]"
        message = Message(
            sender=SELF,
            timestamp=timestamp,
            sequence=sequence,
            text=text,
            media=media,
            direction=direction,
            is_mms=True,
        )
        return address, _contact_name(element), message
