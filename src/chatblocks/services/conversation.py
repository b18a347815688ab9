"""Chat session: the command flows over one open document.

Ties a ChatDocument to its StateManager and rule sets, and implements the
user-facing operations (toggle, undo, rename, insert, extract to note, send
the active context to a model and append the reply).
"""

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Sequence

from chatblocks.context.builder import build_context, build_messages, create_block
from chatblocks.document.parser import block_at, parse, serialize
from chatblocks.document.text import ChatDocument, TextEdit
from chatblocks.llm.client import LLMService
from chatblocks.models.block import Block, BlockState, BlockType, SourceSpan
from chatblocks.models.llm import ChatMessage, LLMRequest, LLMResponse
from chatblocks.models.rules import TextProcessingRule
from chatblocks.processing.engine import apply_rule
from chatblocks.processing.presets import (
    THINKING_BLOCK_NAME,
    THINKING_CHAIN_PURPOSE,
    get_rule_by_id,
    get_rules_by_purpose,
    load_all_rules,
)
from chatblocks.processing.thinking import ThinkingResult, extract_thinking
from chatblocks.services.exceptions import (
    BlockNotFoundError,
    LLMRequestError,
    NoActiveBlocksError,
)
from chatblocks.state.manager import StateManager
from chatblocks.utils.logging import get_logger


logger = get_logger(__name__)

EXTRACT_TO_NOTE_RULE = "extract-to-note"


@dataclass
class SendResult:
    """What send_context() appended to the document."""

    response: LLMResponse
    thinking: ThinkingResult
    assistant_block_id: str
    user_block_id: str
    note_block_id: Optional[str] = None


class ChatSession:
    """
    One open chat document with its activation state.

    Example:
        >>> session = ChatSession.open(Path("notes.chat"))
        >>> session.toggle_block("u1")
        True
        >>> session.document.save()
    """

    def __init__(
        self,
        document: ChatDocument,
        rules: Optional[Sequence[TextProcessingRule]] = None,
        thinking_rules: Optional[Sequence[TextProcessingRule]] = None,
    ):
        """
        Initialize session.

        Args:
            document: The chat document
            rules: Full rule set (defaults to the presets)
            thinking_rules: Rules for thinking-chain extraction
                            (defaults to the thinking-chain presets)
        """
        self.document = document
        self.state = StateManager(document)
        self.rules = list(rules) if rules is not None else load_all_rules()
        self.thinking_rules = (
            list(thinking_rules) if thinking_rules is not None
            else get_rules_by_purpose(THINKING_CHAIN_PURPOSE)
        )

    @classmethod
    def open(cls, path: Path, **kwargs) -> "ChatSession":
        return cls(ChatDocument.open(path), **kwargs)

    def refresh(self) -> None:
        """Reload activation state after an edit the session did not make."""
        self.state.reload_from_document()

    def blocks(self) -> list[Block]:
        return self.document.blocks()

    def get_block(self, block_id: str) -> Block:
        """
        Find a block by id (last occurrence wins for duplicate ids).

        Raises:
            BlockNotFoundError: If no block has the id
        """
        found = None
        for block in self.document.blocks():
            if block.id == block_id:
                found = block
        if found is None:
            raise BlockNotFoundError(block_id)
        return found

    def context(self) -> str:
        return build_context(self.document.blocks(), self.state.get_active_blocks())

    def messages(self) -> list[ChatMessage]:
        return build_messages(self.document.blocks(), self.state.get_active_blocks())

    def set_block_state(self, block_id: str, state: BlockState) -> bool:
        """Set a block's state and write it to the document."""
        self.state.set_block_state(block_id, state)
        return self.state.sync_document()

    def toggle_block(self, block_id: str) -> bool:
        """
        Flip a block between Active and Inactive and write it to the document.

        Returns:
            True if the document was updated

        Raises:
            BlockNotFoundError: If the id is not in the document
        """
        new_state = self.state.toggle_block_state(block_id)
        logger.info("block_toggled", block_id=block_id, state=new_state.value)
        return self.state.sync_document()

    def toggle_block_at(self, offset: int) -> bool:
        """
        Toggle the block under a cursor offset.

        Raises:
            BlockNotFoundError: If the offset is not inside a block
        """
        block = block_at(self.document.blocks(), offset)
        if block is None:
            raise BlockNotFoundError(f"<offset {offset}>")
        return self.toggle_block(block.id)

    def push_state(self) -> None:
        self.state.push_state()

    def undo(self) -> bool:
        """
        Restore the last pushed state and write it to the document.

        Returns:
            False if there was nothing to undo or the edit was refused
        """
        if not self.state.pop_state():
            return False
        return self.state.sync_document()

    def _replace_block(self, block: Block, new_text: str) -> bool:
        applied = self.document.apply_edits([TextEdit(block.span, new_text)])
        if applied:
            self.state.reload_from_document()
        return applied

    def rename_block(self, block_id: str, name: Optional[str]) -> bool:
        """
        Set (or clear, with an empty name) a block's display name.

        Returns:
            False if the name cannot be written as a tag attribute or the
            edit was refused

        Raises:
            BlockNotFoundError: If the id is not in the document
        """
        block = self.get_block(block_id)
        try:
            new_text = serialize(replace(block, name=name or None))
        except ValueError as e:
            logger.warning("block_rename_refused", block_id=block_id, error=str(e))
            return False
        return self._replace_block(block, new_text)

    def _append_separator(self) -> str:
        text = self.document.text
        if not text:
            return ""
        last_line = text.rsplit("\n", 1)[-1]
        return "\n\n" if last_line.strip() else ""

    def insert_block(
        self,
        block_type: BlockType,
        content: str = "",
        offset: Optional[int] = None,
        name: Optional[str] = None,
    ) -> str:
        """
        Insert a new block.

        Args:
            block_type: Type of the new block
            content: Block content
            offset: Where to insert; appended after a blank line when None
            name: Optional display name

        Returns:
            The new block's id
        """
        block_text = create_block(block_type, content, name=name)
        if offset is None:
            offset = len(self.document.text)
            block_text = self._append_separator() + block_text
        self.document.insert(offset, block_text)
        self.state.reload_from_document()
        return parse(block_text)[0].id

    def extract_to_note(self, start: int, end: int) -> Optional[str]:
        """
        Move the text between start and end into a new note block in place.

        Returns:
            The note block's id, or None if nothing was extracted
        """
        selection = self.document.get_text(SourceSpan(start, end))
        result = apply_rule(selection, get_rule_by_id(self.rules, EXTRACT_TO_NOTE_RULE))
        extracted = result.extracted_block
        if extracted is None or not extracted.content.strip():
            return None

        note_text = create_block(extracted.type, extracted.content, name=extracted.name)
        if not self.document.apply_edits([TextEdit(SourceSpan(start, end), result.processed_text + note_text)]):
            return None
        self.state.reload_from_document()
        return parse(note_text)[0].id

    async def send_context(self, service: LLMService, model_id: Optional[str] = None) -> SendResult:
        """
        Send the active blocks to a model and append its reply.

        Appends, in order: a note block with the thinking chain (if any), an
        assistant block labeled with the model alias, and an empty user block.

        Args:
            service: LLM service to send through
            model_id: Model id or alias (defaults to the service's current model)

        Raises:
            NoActiveBlocksError: If no active, non-note block exists
            LLMRequestError: If the service reports an error (document untouched)
        """
        messages = self.messages()
        if not messages:
            raise NoActiveBlocksError()

        response = await service.send_request(LLMRequest(model_id=model_id, messages=messages))
        if response.error:
            logger.error("send_context_failed", error=response.error)
            raise LLMRequestError(response.error)

        thinking = extract_thinking(response, self.thinking_rules)

        model_alias = None
        if response.model_id and response.model_id in service.registry.models:
            model = service.registry.models[response.model_id]
            model_alias = model.alias or model.name

        pieces = []
        note_text = None
        if thinking.thinking_content:
            note_text = create_block(BlockType.NOTE, thinking.thinking_content, name=THINKING_BLOCK_NAME)
            pieces.append(note_text)
        assistant_text = create_block(BlockType.ASSISTANT, thinking.main_content, model_alias=model_alias)
        user_text = create_block(BlockType.USER, "")
        pieces += [assistant_text, user_text]

        self.document.insert(len(self.document.text), self._append_separator() + "\n\n".join(pieces))
        self.state.reload_from_document()

        logger.info(
            "send_context_completed",
            model_id=response.model_id,
            has_thinking=note_text is not None,
        )
        return SendResult(
            response=response,
            thinking=thinking,
            assistant_block_id=parse(assistant_text)[0].id,
            user_block_id=parse(user_text)[0].id,
            note_block_id=parse(note_text)[0].id if note_text else None,
        )
