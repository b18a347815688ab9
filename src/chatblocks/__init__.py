"""chatblocks - Tagged conversation blocks in plain-text chat documents.

A chat document holds blocks like:

    <S A id="s1">You are terse.</S>
    <U A id="u1">Name a prime.</U>
    <N I id="n1" name="Thinking chain">...</N>

Key features:
- Parse and serialize blocks, locate headings for outlines
- Track which blocks are active, with undo, and rewrite only what changed
- Rule engine for extracting, replacing and transforming text
- Build a request context from active blocks
- Split a model's thinking chain from its answer

Example:
    >>> from chatblocks.document import ChatDocument
    >>> from chatblocks.state.manager import StateManager
    >>> doc = ChatDocument('<U I id="u1">Hello</U>')
    >>> StateManager(doc).get_block_state("u1")
    <BlockState.INACTIVE: 'I'>
"""

__version__ = "0.1.0"
