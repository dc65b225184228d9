from memoirark.importer.parsers.detection import (
    ImportFormatError,
    MalformedInputError,
    UnsupportedFormatError,
    detect_format,
)
from memoirark.importer.parsers.registry import get_parser

__all__ = [
    "ImportFormatError",
    "MalformedInputError",
    "UnsupportedFormatError",
    "detect_format",
    "get_parser",
]
