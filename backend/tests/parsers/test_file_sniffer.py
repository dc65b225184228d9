"""Tests for the generic file sniffer used by bulk uploads."""

import pytest

from memoirark.importer.parsers.files import artifact_type_for, mimetype_for, sniff_file
from tests.fixtures import raw_file


class TestArtifactType:
    @pytest.mark.parametrize("filename,expected", [
        ("IMG_0001.JPG", "photo"),
        ("scan.heic", "photo"),
        ("voicemail.m4a", "audio"),
        ("birthday.mov", "video"),
        ("letter.pdf", "document"),
        ("journal.md", "document"),
        ("archive.7z", "other"),
    ])
    def test_by_extension(self, filename, expected):
        assert artifact_type_for(filename) == expected

    def test_mimetype_fallback(self):
        assert artifact_type_for("upload", "image/png") == "photo"
        assert artifact_type_for("upload", "text/plain") == "document"
        assert artifact_type_for("upload", "application/octet-stream") == "other"


class TestMimetype:
    def test_known_and_extra_types(self):
        assert mimetype_for("a.jpg") == "image/jpeg"
        assert mimetype_for("a.heic") == "image/heic"

    def test_unknown_is_octet_stream(self):
        assert mimetype_for("a.unknownext") == "application/octet-stream"


class TestSniffFile:
    def test_text_document_keeps_text(self):
        sniffed = sniff_file(raw_file(b"Dear diary,\nToday...", "2019-06-01.txt"))
        assert sniffed.artifact_type == "document"
        assert sniffed.text.startswith("Dear diary")
        assert sniffed.supported

    def test_byte_order_mark_stripped(self):
        sniffed = sniff_file(raw_file(b"\xef\xbb\xbfHello", "note.txt"))
        assert sniffed.text == "Hello"

    def test_cp1252_fallback(self):
        sniffed = sniff_file(raw_file("café".encode("cp1252"), "old.txt"))
        assert sniffed.text == "café"

    def test_photo_has_no_text(self):
        sniffed = sniff_file(raw_file(b"\xff\xd8\xff", "photo.jpg"))
        assert sniffed.text is None
        assert sniffed.size == 3
        assert sniffed.mimetype == "image/jpeg"

    def test_text_preview_is_truncated(self):
        sniffed = sniff_file(raw_file(b"x" * 2000, "long.txt"))
        assert len(sniffed.text_preview) == 500

    def test_unsupported_file(self):
        assert not sniff_file(raw_file(b"\x00", "backup.7z")).supported

    def test_archive_path_reduced_to_name(self):
        assert sniff_file(raw_file(b"x", "nested/dir/file.txt")).filename == "file.txt"
