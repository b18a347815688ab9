"""In-memory chat document.

ChatDocument is the text provider the rest of the package works against:
it exposes the current text, converts offsets to line/column positions and
back, and applies sets of span replacements atomically. Every successful
edit bumps a version counter, which keys the cached block parse.
"""

from bisect import bisect_right
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from chatblocks.document.parser import parse
from chatblocks.models.block import Block, SourceSpan
from chatblocks.services.file_operations import atomic_write, read_text_with_mtime
from chatblocks.utils.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class Position:
    """Zero-based line/character position."""

    line: int
    character: int


@dataclass(frozen=True)
class TextEdit:
    """Replace the text in span with new_text."""

    span: SourceSpan
    new_text: str


class ChatDocument:
    """
    Chat document text with versioned edits.

    Example:
        >>> doc = ChatDocument('<U A id="u1">Hi</U>')
        >>> doc.blocks()[0].id
        'u1'
        >>> doc.apply_edits([TextEdit(SourceSpan(0, 0), "# Notes\\n")])
        True
        >>> doc.version
        1
    """

    def __init__(self, text: str = "", path: Optional[Path] = None, mtime: Optional[float] = None):
        """
        Initialize document.

        Args:
            text: Initial text
            path: File the document was read from (enables save())
            mtime: Modification time of path when it was read
        """
        self._text = text
        self.path = path
        self._mtime = mtime
        self._version = 0
        self._saved_version = 0
        self._blocks: Optional[list[Block]] = None
        self._blocks_version = -1
        self._line_starts: Optional[list[int]] = None

    @classmethod
    def open(cls, path: Path) -> "ChatDocument":
        """
        Load a document from disk.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        text, mtime = read_text_with_mtime(path)
        logger.info("document_opened", path=str(path), size=len(text))
        return cls(text, path=path, mtime=mtime)

    @property
    def text(self) -> str:
        return self._text

    @property
    def version(self) -> int:
        """Incremented on every applied edit."""
        return self._version

    @property
    def is_dirty(self) -> bool:
        return self._version != self._saved_version

    def get_text(self, span: Optional[SourceSpan] = None) -> str:
        if span is None:
            return self._text
        return self._text[span.start:span.end]

    def blocks(self) -> list[Block]:
        """Parsed blocks, cached until the next edit."""
        if self._blocks is None or self._blocks_version != self._version:
            self._blocks = parse(self._text)
            self._blocks_version = self._version
        return list(self._blocks)

    def _starts(self) -> list[int]:
        if self._line_starts is None:
            starts = [0]
            index = self._text.find("\n")
            while index != -1:
                starts.append(index + 1)
                index = self._text.find("\n", index + 1)
            self._line_starts = starts
        return self._line_starts

    @property
    def line_count(self) -> int:
        return len(self._starts())

    def position_at(self, offset: int) -> Position:
        """Convert a character offset to a line/character position (clamped)."""
        offset = max(0, min(offset, len(self._text)))
        starts = self._starts()
        line = bisect_right(starts, offset) - 1
        return Position(line, offset - starts[line])

    def offset_at(self, position: Position) -> int:
        """Convert a line/character position to an offset (clamped)."""
        starts = self._starts()
        if position.line < 0:
            return 0
        if position.line >= len(starts):
            return len(self._text)
        line_start = starts[position.line]
        line_end = starts[position.line + 1] - 1 if position.line + 1 < len(starts) else len(self._text)
        return line_start + max(0, min(position.character, line_end - line_start))

    def apply_edits(self, edits: Iterable[TextEdit]) -> bool:
        """
        Apply a set of edits atomically.

        Spans refer to the current text. Either every edit is applied or,
        if any span is out of bounds or two spans overlap, none is.

        Returns:
            True if the edits were applied, False if they were refused
        """
        ordered = sorted(edits, key=lambda e: (e.span.start, e.span.end))
        if not ordered:
            return True

        previous_end = 0
        for edit in ordered:
            span = edit.span
            if span.start < previous_end or span.start > span.end or span.end > len(self._text):
                logger.error(
                    "document_edit_refused",
                    path=str(self.path) if self.path else None,
                    start=span.start,
                    end=span.end,
                    length=len(self._text),
                )
                return False
            previous_end = span.end

        pieces = []
        cursor = 0
        for edit in ordered:
            pieces.append(self._text[cursor:edit.span.start])
            pieces.append(edit.new_text)
            cursor = edit.span.end
        pieces.append(self._text[cursor:])

        self._text = "".join(pieces)
        self._version += 1
        self._line_starts = None
        logger.debug("document_edits_applied", count=len(ordered), version=self._version)
        return True

    def insert(self, offset: int, text: str) -> bool:
        """Insert text at offset."""
        return self.apply_edits([TextEdit(SourceSpan(offset, offset), text)])

    def save(self) -> Path:
        """
        Write the document back to its file.

        Raises:
            ValueError: If the document has no path
            FileModifiedError: If the file changed on disk since it was read
        """
        if self.path is None:
            raise ValueError("Document has no path to save to")
        self._mtime = atomic_write(self.path, self._text, expected_mtime=self._mtime)
        self._saved_version = self._version
        logger.info("document_saved", path=str(self.path), version=self._version)
        return self.path
