"""Data models for chatblocks."""

from chatblocks.models.block import Block, BlockState, BlockType, Heading, SourceSpan

__all__ = ["Block", "BlockState", "BlockType", "Heading", "SourceSpan"]
