"""Chat document parsing and text handling."""

from chatblocks.document.parser import (
    block_at,
    describe_block,
    find_headings,
    parse,
    serialize,
)
from chatblocks.document.text import ChatDocument, Position, TextEdit

__all__ = [
    "ChatDocument",
    "Position",
    "TextEdit",
    "block_at",
    "describe_block",
    "find_headings",
    "parse",
    "serialize",
]
