"""Parser registry: one ExportParser instance per conversation format."""

from memoirark.importer.models import SourceFormat
from memoirark.importer.parsers.base import ExportParser
from memoirark.importer.parsers.chatgpt import ChatGptParser
from memoirark.importer.parsers.detection import UnsupportedFormatError
from memoirark.importer.parsers.messenger import MessengerParser
from memoirark.importer.parsers.sms import SmsParser

_parsers: dict[SourceFormat, ExportParser] = {}


def register_parser(parser: ExportParser) -> None:
    """Register a parser instance under its source format."""
    _parsers[parser.source_format] = parser


def get_parser(fmt: SourceFormat) -> ExportParser:
    """Get the parser for a format. Raises UnsupportedFormatError if none is registered."""
    try:
        return _parsers[fmt]
    except KeyError:
        available = ", ".join(_parsers.keys()) or "(none)"
        raise UnsupportedFormatError(
            f"No parser for '{fmt}'. Available: {available}"
        ) from None


def list_parsers() -> list[SourceFormat]:
    return list(_parsers.keys())


def register_default_parsers() -> None:
    for parser in (MessengerParser(), SmsParser(), ChatGptParser()):
        register_parser(parser)


register_default_parsers()
