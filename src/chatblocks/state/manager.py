"""Block activation state for one chat document.

StateManager holds the desired Active/Inactive state of every block id, an
undo stack of full-state snapshots, and works out the minimal set of edits
that would make the document text agree with the desired state.
"""

from dataclasses import replace
from typing import Optional

from chatblocks.document.parser import serialize
from chatblocks.document.text import ChatDocument, TextEdit
from chatblocks.models.block import BlockState
from chatblocks.services.exceptions import BlockNotFoundError
from chatblocks.utils.logging import get_logger


logger = get_logger(__name__)


class StateManager:
    """
    Activation state bound to a single document.

    Not thread-safe: callers sequence state changes and reconciles for one
    document (one user action or document-change notification at a time).

    Duplicate block ids are tolerated. On load the last occurrence in
    document order wins; on reconcile every occurrence is compared against
    the single desired state for that id.

    Example:
        >>> manager = StateManager(ChatDocument('<U I id="u1">Hello</U>'))
        >>> manager.set_block_state("u1", BlockState.ACTIVE)
        >>> [edit.new_text for edit in manager.reconcile()]
        ['<U A id="u1">Hello</U>']
    """

    def __init__(self, document: ChatDocument):
        """
        Bind to a document and load state from its current text.

        Args:
            document: The document whose blocks this manager tracks
        """
        self.document = document
        self._current: dict[str, BlockState] = {}
        self._stack: list[dict[str, BlockState]] = []
        self._load()

    def _load(self) -> None:
        self._current = {block.id: block.state for block in self.document.blocks()}
        logger.debug(
            "state_loaded",
            path=str(self.document.path) if self.document.path else None,
            blocks=len(self._current),
        )

    def reload_from_document(self) -> None:
        """Discard in-memory state and re-derive it from the document text."""
        self._load()

    def get_block_state(self, block_id: str) -> Optional[BlockState]:
        return self._current.get(block_id)

    def set_block_state(self, block_id: str, state: BlockState) -> None:
        """
        Set the desired state of a block (in memory only).

        Raises:
            BlockNotFoundError: If the id is not tracked
        """
        if block_id not in self._current:
            raise BlockNotFoundError(block_id)
        self._current[block_id] = state

    def toggle_block_state(self, block_id: str) -> BlockState:
        """
        Flip a block between Active and Inactive.

        Returns:
            The new desired state

        Raises:
            BlockNotFoundError: If the id is not tracked
        """
        current = self.get_block_state(block_id)
        if current is None:
            raise BlockNotFoundError(block_id)
        new_state = current.flipped()
        self._current[block_id] = new_state
        return new_state

    def push_state(self) -> None:
        """Push a copy of the current state onto the undo stack."""
        self._stack.append(dict(self._current))

    def pop_state(self) -> bool:
        """
        Restore the most recently pushed state.

        Returns:
            False (and no change) if the undo stack is empty
        """
        if not self._stack:
            return False
        self._current = self._stack.pop()
        return True

    @property
    def undo_depth(self) -> int:
        return len(self._stack)

    @property
    def states(self) -> dict[str, BlockState]:
        """Copy of the current id → state mapping."""
        return dict(self._current)

    def get_active_blocks(self) -> set[str]:
        """Ids whose desired state is Active. Unordered."""
        return {block_id for block_id, state in self._current.items() if state is BlockState.ACTIVE}

    def reconcile(self) -> list[TextEdit]:
        """
        Compute edits that bring the document in line with the desired state.

        Reparses the document. Blocks whose desired state equals their
        on-document state, or whose id is not tracked, are left alone.
        Nothing is applied here.

        Returns:
            One replacement edit per out-of-sync block, in document order
        """
        edits = []
        for block in self.document.blocks():
            desired = self._current.get(block.id)
            if desired is None or desired is block.state:
                continue
            logger.debug(
                "block_state_edit",
                block_id=block.id,
                from_state=block.state.value,
                to_state=desired.value,
            )
            edits.append(TextEdit(block.span, serialize(replace(block, state=desired))))
        return edits

    def sync_document(self) -> bool:
        """
        Apply reconcile() edits to the document.

        On success the state is reloaded from the rewritten text. If the
        document refuses the edits, in-memory state is left untouched.

        Returns:
            True if the document now reflects the desired state
        """
        edits = self.reconcile()
        if not edits:
            return True

        if not self.document.apply_edits(edits):
            logger.error("state_sync_failed", edits=len(edits))
            return False

        logger.info("state_synced", edits=len(edits), version=self.document.version)
        self.reload_from_document()
        return True
