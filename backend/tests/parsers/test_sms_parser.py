"""Tests for the SMS Backup & Restore XML parser."""

from datetime import UTC, datetime

import pytest

from memoirark.importer.parsers.detection import MalformedInputError, UnsupportedFormatError
from memoirark.importer.parsers.sms import SmsParser
from tests.fixtures import (
    DAY1_MS,
    DAY2_MS,
    DAY3_MS,
    make_sms_backup,
    mms_element,
    raw_file,
    sms_element,
)


def _parse(content: bytes, filename: str = "sms-20240303.xml"):
    return SmsParser().parse(raw_file(content, filename))


class TestSmsGrouping:
    def test_groups_by_normalized_phone_number(self):
        """Three spellings of the same number land in one conversation."""
        conversations = _parse(make_sms_backup())
        assert len(conversations) == 2
        jane = conversations[0]
        assert jane.id == "5551234567"
        assert jane.title == "Jane Doe"
        assert len(jane.messages) == 3

    def test_sorted_by_message_count(self):
        conversations = _parse(make_sms_backup())
        counts = [len(c.messages) for c in conversations]
        assert counts == sorted(counts, reverse=True)

    def test_unknown_contact_uses_address_as_title(self):
        conversations = _parse(make_sms_backup())
        assert conversations[1].title == "+15559876543"

    def test_participants_include_self_only_when_sent(self):
        jane, unknown = _parse(make_sms_backup())
        assert [p.kind for p in jane.participants] == ["contact", "self"]
        assert [p.kind for p in unknown.participants] == ["contact"]
        assert jane.participants[0].handle is not None


class TestSmsMessages:
    def test_directions_and_senders(self):
        [conv] = _parse(make_sms_backup([
            sms_element("+15551234567", DAY1_MS, "in", type_code=1),
            sms_element("+15551234567", DAY1_MS + 1, "out", type_code=2),
            sms_element("+15551234567", DAY1_MS + 2, "draft", type_code=3),
            sms_element("+15551234567", DAY1_MS + 3, "queued", type_code=6),
        ]))
        messages = conv.ordered_messages()
        assert [m.direction for m in messages] == ["received", "sent", "draft", "other"]
        assert messages[0].sender.name == "Jane Doe"
        assert messages[0].sender.kind == "contact"
        assert all(m.sender.name == "Me" for m in messages[1:])

    def test_epoch_millis_strings_become_utc(self):
        [conv] = _parse(make_sms_backup([sms_element("+15551234567", 1700000000000)]))
        assert conv.messages[0].timestamp == datetime(2023, 11, 14, 22, 13, 20, tzinfo=UTC)

    def test_xml_entities_are_decoded(self):
        [conv] = _parse(make_sms_backup([
            sms_element("+15551234567", DAY1_MS, 'Fish & "chips"\nat 6?'),
        ]))
        assert conv.messages[0].text == 'Fish & "chips"\nat 6?'

    def test_sms_without_date_is_skipped(self):
        content = make_sms_backup([
            sms_element("+15551234567", DAY1_MS, "kept"),
            '<sms address="+15551234567" type="1" body="no date" />',
        ])
        [conv] = _parse(content)
        assert len(conv.messages) == 1
        assert len(conv.warnings) == 1

    def test_backup_date_in_metadata(self):
        [conv] = _parse(make_sms_backup([sms_element("+15551234567", DAY1_MS)], backup_date=DAY3_MS))
        assert conv.metadata["backup_date"] == "2024-03-03T10:00:00+00:00"


class TestMms:
    def test_received_mms_with_text_and_image(self):
        [conv] = _parse(make_sms_backup([mms_element("+15551234567", DAY1_MS)]))
        msg = conv.messages[0]
        assert msg.is_mms
        assert msg.direction == "received"
        assert msg.text == "Look at this"
        assert [m.type for m in msg.media] == ["photo"]

    def test_media_only_mms(self):
        [conv] = _parse(make_sms_backup([mms_element("+15551234567", DAY1_MS, text=None)]))
        assert conv.messages[0].text == "[Media message]"

    def test_empty_mms(self):
        [conv] = _parse(make_sms_backup([
            mms_element("+15551234567", DAY1_MS, text=None, with_image=False),
        ]))
        assert conv.messages[0].text == "[Empty MMS]"

    def test_sent_mms(self):
        [conv] = _parse(make_sms_backup([mms_element("+15551234567", DAY1_MS, m_type=128)]))
        assert conv.messages[0].direction == "sent"
        assert conv.messages[0].sender.kind == "self"

    def test_mms_date_in_seconds_is_tolerated(self):
        [conv] = _parse(make_sms_backup([mms_element("+15551234567", DAY2_MS // 1000)]))
        assert conv.messages[0].timestamp == datetime(2024, 3, 2, 10, 0, tzinfo=UTC)

    def test_mms_joins_sms_thread(self):
        [conv] = _parse(make_sms_backup([
            sms_element("+15551234567", DAY1_MS, "text"),
            mms_element("(555) 123-4567", DAY1_MS + 10),
        ]))
        assert len(conv.messages) == 2


class TestSmsValidation:
    def test_broken_xml_is_malformed(self):
        with pytest.raises(MalformedInputError):
            _parse(b"<smses><sms date='1' ")

    def test_other_xml_root_is_unsupported(self):
        with pytest.raises(UnsupportedFormatError):
            _parse(b"<?xml version='1.0'?><calls count='0'></calls>")

    def test_json_file_is_unsupported(self):
        with pytest.raises(UnsupportedFormatError):
            _parse(b"{}", filename="message_1.json")

    def test_empty_backup(self):
        assert _parse(make_sms_backup([])) == []
