"""Assemble active blocks into a conversation.

Note blocks never contribute, whatever their state. Everything else that is
active is kept in document order.
"""

from typing import Collection, Iterable, Optional

from chatblocks.document.parser import serialize
from chatblocks.models.block import Block, BlockState, BlockType
from chatblocks.models.llm import ChatMessage
from chatblocks.utils.ids import generate_block_id
from chatblocks.utils.logging import get_logger


logger = get_logger(__name__)

ROLE_LABELS = {
    BlockType.SYSTEM: "[System] ",
    BlockType.USER: "[User] ",
    BlockType.ASSISTANT: "[Assistant] ",
    BlockType.TOOL: "[Tool] ",
}

MESSAGE_ROLES = {
    BlockType.SYSTEM: "system",
    BlockType.USER: "user",
    BlockType.ASSISTANT: "assistant",
    BlockType.TOOL: "tool",
}


def _context_blocks(blocks: Iterable[Block], active_ids: Collection[str]) -> list[Block]:
    return [
        block for block in blocks
        if block.id in active_ids and block.type is not BlockType.NOTE
    ]


def block_label(block: Block) -> str:
    """Role label prefixed to a block's content. Named assistant blocks use their name."""
    if block.type is BlockType.ASSISTANT and block.name:
        return f"[{block.name}] "
    return ROLE_LABELS.get(block.type, "")


def build_context(blocks: Iterable[Block], active_ids: Collection[str]) -> str:
    """
    Flatten the active, non-note blocks into labeled text.

    Args:
        blocks: Parsed blocks, in document order
        active_ids: Ids of active blocks (e.g. StateManager.get_active_blocks())

    Returns:
        Labeled contents joined by blank lines; "" if nothing qualifies

    Example:
        >>> from chatblocks.document.parser import parse
        >>> blocks = parse('<S A id="s1">Sys</S><U I id="u1">Hello</U>')
        >>> build_context(blocks, {"s1"})
        '[System] Sys'
    """
    return "\n\n".join(
        f"{block_label(block)}{block.content}"
        for block in _context_blocks(blocks, active_ids)
    )


def build_messages(blocks: Iterable[Block], active_ids: Collection[str]) -> list[ChatMessage]:
    """
    Convert the active, non-note blocks into role-tagged messages.

    Tool blocks carry their tool_call_id and tool name. A tool block without
    a tool_call_id cannot be sent to an OpenAI-compatible API and is skipped.
    """
    messages = []
    for block in _context_blocks(blocks, active_ids):
        role = MESSAGE_ROLES[block.type]
        if block.type is BlockType.TOOL:
            if not block.tool_call_id:
                logger.error("tool_block_missing_call_id", block_id=block.id)
                continue
            messages.append(
                ChatMessage(role=role, content=block.content, tool_call_id=block.tool_call_id, name=block.tool_name)
            )
        else:
            messages.append(ChatMessage(role=role, content=block.content))
    return messages


def create_block_id(block_type: BlockType) -> str:
    return generate_block_id(block_type.value)


def create_block(
    block_type: BlockType,
    content: str,
    name: Optional[str] = None,
    model_alias: Optional[str] = None,
) -> str:
    """
    Serialize a new block with a fresh id.

    Notes start Inactive; every other type starts Active.

    Raises:
        ValueError: For tool blocks, which have no tag form
    """
    block = Block(
        type=block_type,
        state=BlockState.INACTIVE if block_type is BlockType.NOTE else BlockState.ACTIVE,
        id=create_block_id(block_type),
        content=content,
        name=name,
        model_alias=model_alias,
    )
    return serialize(block)
