"""Abstract parser interface shared by every export format."""

from abc import ABC, abstractmethod

from memoirark.importer.models import Conversation, RawExportFile, SourceFormat


class ExportParser(ABC):
    """Turns one raw export file into canonical Conversations.

    Parsers never touch the domain store. They validate the minimal
    structural signature of their format first and raise
    MalformedInputError instead of partially parsing garbage.
    """

    # Number of messages per conversation surfaced in the parse preview.
    preview_messages: int = 20
    # Characters per previewed message; None keeps the whole text.
    preview_chars: int | None = None

    @property
    @abstractmethod
    def source_format(self) -> SourceFormat:
        """The format this parser handles."""
        ...

    @abstractmethod
    def parse(self, raw: RawExportFile) -> list[Conversation]:
        """Parse the file into conversations, ordered for display."""
        ...

    def merge(self, conversations: list[Conversation]) -> list[Conversation]:
        """Combine conversations parsed from several files of one export.

        The default keeps them as-is; formats that split one thread over
        several files override this.
        """
        return conversations
