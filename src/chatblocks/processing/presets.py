"""Built-in text processing rules and rule-set assembly."""

from typing import Iterable

from chatblocks.models.block import BlockType
from chatblocks.models.rules import (
    CustomPattern,
    ExtractProcessor,
    MatchResult,
    RegexPattern,
    TextProcessingRule,
)
from chatblocks.services.exceptions import RuleNotFoundError
from chatblocks.utils.logging import get_logger


logger = get_logger(__name__)

THINKING_CHAIN_PURPOSE = "thinking-chain"
THINKING_BLOCK_NAME = "Thinking chain"


def _match_everything(text: str) -> MatchResult:
    return MatchResult(matched=True, content=text, start=0, end=len(text))


def thinking_chain_rules() -> list[TextProcessingRule]:
    """Default rules for pulling a model's thinking chain out of its answer."""
    return [
        TextProcessingRule(
            id="openai-thinking-tag",
            name="Extract thinking chain (<think> tag)",
            description="Move the content of a <think> tag into a note block",
            pattern=RegexPattern(regex=r"<think>([\s\S]*?)</think>", capture_group=1),
            processor_type="extract",
            processor=ExtractProcessor(
                block_type=BlockType.NOTE,
                block_name=THINKING_BLOCK_NAME,
                remove_from_source=True,
            ),
        )
    ]


def preset_rules() -> list[TextProcessingRule]:
    """Rules that always exist. Their ids cannot be overridden by config."""
    return [
        *thinking_chain_rules(),
        TextProcessingRule(
            id="extract-to-note",
            name="Extract to note block",
            description="Move the whole (selected) text into a note block",
            pattern=CustomPattern(matcher=_match_everything),
            processor_type="extract",
            processor=ExtractProcessor(block_type=BlockType.NOTE, remove_from_source=True),
        ),
    ]


def template_rules() -> list[TextProcessingRule]:
    """Example data rules, suitable as a starting point for config.yaml."""
    return [
        TextProcessingRule(
            id="extract-markdown-code-blocks",
            name="Extract markdown code blocks",
            description="Extract a fenced markdown code block",
            pattern=RegexPattern(regex=r"```([a-zA-Z0-9]*)\n([\s\S]*?)\n```", flags="g", capture_group=2),
            processor_type="extract",
            processor=ExtractProcessor(block_type=BlockType.NOTE, block_name="Code block", remove_from_source=True),
        ),
        TextProcessingRule(
            id="extract-json-data",
            name="Extract JSON data",
            description="Extract a JSON object from the text",
            pattern=RegexPattern(regex=r"\{[\s\S]*?\}", flags="g"),
            processor_type="extract",
            processor=ExtractProcessor(block_type=BlockType.NOTE, block_name="JSON data", remove_from_source=False),
        ),
        TextProcessingRule(
            id="extract-python-function",
            name="Extract Python function",
            description="Extract a Python function definition",
            pattern=RegexPattern(
                regex=r"def\s+[a-zA-Z_][a-zA-Z0-9_]*\s*\([^)]*\)\s*:[\s\S]*?(?=\n\S|$)",
                flags="g",
            ),
            processor_type="extract",
            processor=ExtractProcessor(block_type=BlockType.NOTE, block_name="Python function", remove_from_source=True),
        ),
        TextProcessingRule(
            id="extract-thinking-chain-xml",
            name="Extract thinking chain (<thinking> tag)",
            description="Move the content of a <thinking> tag into a note block",
            pattern=RegexPattern(regex=r"<thinking>(\s*.*?\s*)</thinking>", flags="s", capture_group=1),
            processor_type="extract",
            processor=ExtractProcessor(
                block_type=BlockType.NOTE,
                block_name=THINKING_BLOCK_NAME,
                remove_from_source=True,
            ),
        ),
    ]


def load_all_rules(custom_rules: Iterable[TextProcessingRule] = ()) -> list[TextProcessingRule]:
    """
    Assemble the full rule set: presets first, then custom rules.

    Custom rules are deduplicated by id. A custom rule whose id collides with
    a preset (or an earlier custom rule) is dropped; presets always win.

    Args:
        custom_rules: User rules, typically from config.yaml

    Returns:
        Ordered rule list
    """
    rules = preset_rules()
    seen = {rule.id for rule in rules}

    for rule in custom_rules:
        if rule.id in seen:
            logger.warning("custom_rule_skipped", rule_id=rule.id, reason="duplicate_id")
            continue
        rules.append(rule)
        seen.add(rule.id)

    return rules


def get_rule_by_id(rules: Iterable[TextProcessingRule], rule_id: str) -> TextProcessingRule:
    """
    Look up a rule by id.

    Raises:
        RuleNotFoundError: If no rule has that id
    """
    for rule in rules:
        if rule.id == rule_id:
            return rule
    raise RuleNotFoundError(rule_id)


def get_rules_by_purpose(purpose: str) -> list[TextProcessingRule]:
    """Rules for a named purpose ("thinking-chain"); empty for unknown purposes."""
    if purpose == THINKING_CHAIN_PURPOSE:
        return thinking_chain_rules()
    return []
