"""Tests for format resolution: routes, filenames and structural sniffing."""

import pytest

from memoirark.importer.models import SourceFormat
from memoirark.importer.parsers.detection import (
    UnsupportedFormatError,
    detect_format,
    format_from_route,
    is_zip,
)
from memoirark.importer.parsers.registry import get_parser, list_parsers
from tests.fixtures import (
    chatgpt_bytes,
    make_chatgpt_conversation,
    make_messenger_export,
    make_sms_backup,
    make_zip,
    messenger_bytes,
    raw_file,
)


class TestFormatFromRoute:
    @pytest.mark.parametrize("name,expected", [
        ("messenger", SourceFormat.MESSENGER),
        ("SMS", SourceFormat.SMS),
        ("chatgpt", SourceFormat.CHATGPT),
    ])
    def test_known_formats(self, name, expected):
        assert format_from_route(name) == expected

    @pytest.mark.parametrize("name", ["whatsapp", "file", ""])
    def test_unknown_formats(self, name):
        with pytest.raises(UnsupportedFormatError):
            format_from_route(name)


class TestDetectFormat:
    def test_messenger_by_filename(self):
        assert detect_format(raw_file(b"", "message_3.json")) == SourceFormat.MESSENGER

    def test_chatgpt_by_filename(self):
        assert detect_format(raw_file(b"", "conversations.json")) == SourceFormat.CHATGPT

    def test_sms_by_root_element(self):
        assert detect_format(raw_file(make_sms_backup(), "backup.xml")) == SourceFormat.SMS

    def test_other_xml_is_file(self):
        assert detect_format(raw_file(b"<svg></svg>", "drawing.xml")) == SourceFormat.FILE

    def test_renamed_json_is_sniffed(self):
        messenger = raw_file(messenger_bytes(make_messenger_export()), "alice.json")
        chatgpt = raw_file(chatgpt_bytes([make_chatgpt_conversation()]), "chats.json")
        assert detect_format(messenger) == SourceFormat.MESSENGER
        assert detect_format(chatgpt) == SourceFormat.CHATGPT

    def test_unrelated_json_is_file(self):
        assert detect_format(raw_file(b'{"hello": "world"}', "data.json")) == SourceFormat.FILE

    def test_photo_is_file(self):
        assert detect_format(raw_file(b"\xff\xd8\xff", "IMG_0001.JPG")) == SourceFormat.FILE


class TestIsZip:
    def test_by_extension(self):
        assert is_zip(raw_file(b"", "export.ZIP"))

    def test_by_magic_bytes(self):
        assert is_zip(raw_file(make_zip({"a.txt": b"a"}), "upload"))

    def test_plain_file(self):
        assert not is_zip(raw_file(b"hello", "notes.txt"))


class TestRegistry:
    def test_every_conversation_format_has_a_parser(self):
        for fmt in (SourceFormat.MESSENGER, SourceFormat.SMS, SourceFormat.CHATGPT):
            assert get_parser(fmt).source_format == fmt

    def test_list_parsers(self):
        assert set(list_parsers()) == {SourceFormat.MESSENGER, SourceFormat.SMS, SourceFormat.CHATGPT}

    def test_file_format_has_no_parser(self):
        with pytest.raises(UnsupportedFormatError):
            get_parser(SourceFormat.FILE)
