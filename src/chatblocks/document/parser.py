"""Chat document block parser.

Documents hold flat, tagged blocks:

    <TYPE STATE id="ID" [name="NAME"] [model="ALIAS"]>CONTENT</TYPE>

TYPE is one of S, U, A, N and STATE is A or I. Content may span lines and
embed fenced code. The closing tag repeats the opening type letter. Text
between blocks, and anything malformed, is skipped without error.
"""

import re
from typing import Iterable, Optional

from chatblocks.models.block import Block, BlockState, BlockType, Heading, SourceSpan


BLOCK_PATTERN = re.compile(
    r'<(?P<type>[SUAN])\s+(?P<state>[AI])\s+id="(?P<id>[^"]+)"'
    r'(?:\s+name="(?P<name>[^"]+)")?'
    r'(?:\s+model="(?P<model>[^"]+)")?'
    r'\s*>(?P<content>.*?)</(?P=type)>',
    re.DOTALL,
)

HEADING_PATTERN = re.compile(r"^(#{1,6})[ \t]+(.+)$", re.MULTILINE)


def parse(text: str) -> list[Block]:
    """Parse document text into blocks, in document order.

    Args:
        text: Full document text

    Returns:
        Blocks ordered by ascending span start. Empty if nothing matched.

    Examples:
        >>> blocks = parse('<S A id="s1">Be brief.</S>')
        >>> blocks[0].type, blocks[0].content
        (<BlockType.SYSTEM: 'S'>, 'Be brief.')
    """
    blocks = []
    for match in BLOCK_PATTERN.finditer(text):
        blocks.append(
            Block(
                type=BlockType(match.group("type")),
                state=BlockState(match.group("state")),
                id=match.group("id"),
                name=match.group("name") or None,
                model_alias=match.group("model") or None,
                content=match.group("content").strip(),
                span=SourceSpan(match.start(), match.end()),
            )
        )
    return blocks


def serialize(block: Block) -> str:
    """Render a block back to its tag form.

    Attributes are emitted only when set, in the fixed order name, model.

    Raises:
        ValueError: If the block is a tool block, which has no tag letter,
            or an attribute value contains a double quote
    """
    if not block.type.taggable:
        raise ValueError(f"Block {block.id}: {block.type.value} blocks cannot be written as tags")

    attributes = [("id", block.id)]
    if block.name:
        attributes.append(("name", block.name))
    if block.model_alias:
        attributes.append(("model", block.model_alias))

    attrs = ""
    for key, value in attributes:
        # Attribute values are unescaped; a quote would end the value early
        if '"' in value:
            raise ValueError(f"Block {block.id}: {key} attribute cannot contain '\"'")
        attrs += f' {key}="{value}"'

    tag = block.type.value
    return f"<{tag} {block.state.value}{attrs}>{block.content}</{tag}>"


def find_headings(text: str) -> list[Heading]:
    """Locate ATX markdown headings (# to ######).

    Independent of block parsing; used for document outlines.
    """
    headings = []
    for match in HEADING_PATTERN.finditer(text):
        line = text.count("\n", 0, match.start())
        headings.append(
            Heading(
                level=len(match.group(1)),
                text=match.group(2),
                line=line,
                length=len(match.group(0)),
            )
        )
    return headings


def block_at(blocks: Iterable[Block], offset: int) -> Optional[Block]:
    """Find the block whose span contains the given offset."""
    for block in blocks:
        if block.span is not None and block.span.contains(offset):
            return block
    return None


def describe_block(block: Block) -> str:
    """Outline label: the block name, else type letter plus a content preview."""
    if block.name:
        return block.name
    return f"[{block.type.value}] {block.content[:30]}..."
