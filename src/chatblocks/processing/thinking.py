"""Separate a model's thinking chain from its main answer.

Precedence, first match wins:

1. A dedicated reasoning field next to the answer (reasoning_content,
   reasoning, or Ollama's thinking). The answer is returned unmodified.
2. The configured thinking rules. The first extracted block becomes the
   thinking chain and the processed text the answer, both stripped.
3. A plain <think>...</think> tag pair.

Responses that do not look like a provider response come back verbatim as
the main content, without thinking.
"""

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from chatblocks.models.llm import LLMResponse
from chatblocks.models.rules import TextProcessingRule
from chatblocks.processing.engine import apply_rules
from chatblocks.utils.logging import get_logger


logger = get_logger(__name__)

THINK_TAG_PATTERN = re.compile(r"<think>(.*?)</think>", re.DOTALL)

REASONING_FIELDS = ("reasoning_content", "reasoning", "thinking")


@dataclass(frozen=True)
class ThinkingResult:
    """Answer text plus the thinking chain, if one was found."""

    main_content: str
    thinking_content: Optional[str] = None


def _has_text_content(message: Mapping) -> bool:
    content = message.get("content")
    return content is None or isinstance(content, str)


def _message_of(response: Any) -> Optional[Mapping]:
    """
    Locate the assistant message in a raw provider response.

    OpenAI-compatible: {"choices": [{"message": {...}}]}
    Ollama native:     {"message": {...}}
    """
    if not isinstance(response, Mapping):
        return None

    choices = response.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], Mapping):
        message = choices[0].get("message")
        if isinstance(message, Mapping) and _has_text_content(message):
            return message
        return None

    message = response.get("message")
    if isinstance(message, Mapping) and _has_text_content(message):
        return message
    return None


def _raw_text(response: Any) -> str:
    if isinstance(response, str):
        return response
    if isinstance(response, Mapping) and isinstance(response.get("content"), str):
        return response["content"]
    if response is None:
        return ""
    if isinstance(response, (Mapping, list)):
        return json.dumps(response, ensure_ascii=False, default=str)
    return str(response)


def extract_from_content(content: str, thinking_rules: Iterable[TextProcessingRule]) -> ThinkingResult:
    """Run tiers 2 and 3 over an answer that has no dedicated reasoning field."""
    pipeline = apply_rules(content, thinking_rules)
    if pipeline.extracted_blocks:
        return ThinkingResult(
            main_content=pipeline.final_text.strip(),
            thinking_content=pipeline.extracted_blocks[0].content.strip(),
        )

    match = THINK_TAG_PATTERN.search(content)
    if match:
        return ThinkingResult(
            main_content=(content[:match.start()] + content[match.end():]).strip(),
            thinking_content=match.group(1).strip(),
        )

    return ThinkingResult(main_content=content)


def extract_thinking(response: Any, thinking_rules: Iterable[TextProcessingRule]) -> ThinkingResult:
    """
    Split thinking content from main content.

    Args:
        response: An LLMResponse, a raw provider response dict, or raw text
        thinking_rules: Rules tried when there is no reasoning field

    Returns:
        ThinkingResult. Never raises.

    Example:
        >>> extract_thinking({"choices": [{"message": {
        ...     "content": "<think>hmm</think>Paris"}}]}, [])
        ThinkingResult(main_content='Paris', thinking_content='hmm')
    """
    if isinstance(response, LLMResponse):
        if response.reasoning_content:
            return ThinkingResult(response.content, response.reasoning_content)
        if response.raw_response is not None:
            response = response.raw_response
        else:
            return extract_from_content(response.content, thinking_rules)

    message = _message_of(response)
    if message is None:
        logger.debug("thinking_unrecognized_response", response_type=type(response).__name__)
        return ThinkingResult(main_content=_raw_text(response))

    content = message.get("content") or ""

    for field_name in REASONING_FIELDS:
        reasoning = message.get(field_name)
        if isinstance(reasoning, str) and reasoning:
            logger.debug("thinking_from_reasoning_field", field=field_name)
            return ThinkingResult(main_content=content, thinking_content=reasoning)

    return extract_from_content(content, thinking_rules)
