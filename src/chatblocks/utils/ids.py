"""Block ID generation utilities for chatblocks."""

import time
import uuid


def generate_block_id(prefix: str) -> str:
    """
    Generate a fresh block ID.

    Composed from a nanosecond timestamp plus a short random component, so
    IDs are practically unique within a document. Collisions are not checked.

    Args:
        prefix: Leading tag for the ID (the block's type letter, lowercased)

    Returns:
        ID string (e.g., "u_1760870400123456789_3fa9c1")

    Example:
        >>> generate_block_id("u")
        "u_1760870400123456789_3fa9c1"
    """
    return f"{prefix.lower()}_{time.time_ns()}_{uuid.uuid4().hex[:6]}"
