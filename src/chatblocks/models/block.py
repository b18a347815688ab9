"""Block data model for chat documents.

A chat document is plain text holding tagged conversation blocks:

    <U A id="u1" name="Question">How do I reverse a list?</U>

Blocks are re-derived from the text on every parse; nothing here is
persisted outside the document itself.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class BlockType(str, Enum):
    """Semantic role of a block. Values are the grammar's tag letters."""

    SYSTEM = "S"
    USER = "U"
    ASSISTANT = "A"
    NOTE = "N"
    # No tag letter exists for tool blocks; they are built programmatically
    TOOL = "Tool"

    @property
    def taggable(self) -> bool:
        """Whether this type has a tag letter in the document grammar."""
        return self is not BlockType.TOOL


class BlockState(str, Enum):
    """Whether a block contributes to the assembled request context."""

    ACTIVE = "A"
    INACTIVE = "I"

    def flipped(self) -> "BlockState":
        """Return the opposite state."""
        return BlockState.INACTIVE if self is BlockState.ACTIVE else BlockState.ACTIVE


@dataclass(frozen=True)
class SourceSpan:
    """Half-open character span [start, end) in the source document."""

    start: int
    end: int

    def contains(self, offset: int) -> bool:
        """Check if offset falls inside the span (end inclusive, like a cursor)."""
        return self.start <= offset <= self.end

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Block:
    """Single tagged conversation block.

    Attributes:
        type: Block role (system, user, assistant, note, tool)
        state: Active or inactive
        id: Document-local identifier (uniqueness is not enforced)
        content: Inner text, trimmed of leading/trailing whitespace
        name: Optional display label; assistant blocks use it as role label
        model_alias: Optional label of the model that produced the block
        tool_call_id: Tool-call identifier (tool blocks only)
        tool_name: Tool name (tool blocks only)
        span: Where the full tagged block sits in the source text.
              Back-reference only, not part of equality.
    """

    type: BlockType
    state: BlockState
    id: str
    content: str
    name: Optional[str] = None
    model_alias: Optional[str] = None
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    span: Optional[SourceSpan] = field(default=None, compare=False)

    @property
    def is_active(self) -> bool:
        return self.state is BlockState.ACTIVE


@dataclass(frozen=True)
class Heading:
    """ATX-style markdown heading found in a document.

    Attributes:
        level: Number of leading '#' characters (1-6)
        text: Heading text after the hashes
        line: Zero-based line number
        length: Length of the full heading line
    """

    level: int
    text: str
    line: int
    length: int
