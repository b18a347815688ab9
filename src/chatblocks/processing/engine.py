"""Rule-based text processing.

apply_rule() runs one rule over a text: find the first match, then extract,
replace or transform it. apply_rules() folds an ordered rule set over a text,
feeding each rule the previous rule's output.

Nothing in here raises on bad input. A rule whose regex does not compile, or
whose matcher/replacer/transformer throws, is logged and counts as no match.
"""

import re
from collections.abc import Mapping
from functools import lru_cache
from typing import Iterable

from chatblocks.models.rules import (
    NO_MATCH,
    CustomPattern,
    ExtractedBlock,
    MatchResult,
    PipelineResult,
    RegexPattern,
    RuleResult,
    TextProcessingRule,
)
from chatblocks.utils.logging import get_logger


logger = get_logger(__name__)

_FLAG_BITS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}


@lru_cache(maxsize=256)
def compile_regex(regex: str, flags: str = "") -> re.Pattern:
    """
    Compile a pattern with single-letter flags.

    Raises:
        re.error: If the regex is malformed
    """
    bits = 0
    for letter in flags:
        bits |= _FLAG_BITS.get(letter, 0)
    return re.compile(regex, bits)


def find_match(text: str, pattern: RegexPattern | CustomPattern) -> MatchResult:
    """
    Run a pattern over text and return the first match only.

    A global flag does not change this: only the first match is reported.
    """
    if isinstance(pattern, CustomPattern):
        result = pattern.matcher(text)
        if isinstance(result, Mapping):
            result = MatchResult(**result)
        return result

    compiled = compile_regex(pattern.regex, pattern.flags)
    # Sticky: the match must begin at offset 0
    match = compiled.match(text) if "y" in pattern.flags else compiled.search(text)
    if match is None:
        return NO_MATCH

    return MatchResult(
        matched=True,
        content=match.group(pattern.capture_group),
        start=match.start(),
        end=match.end(),
        groups=match.groups(),
    )


def _splice(text: str, match: MatchResult, replacement: str) -> str:
    return text[:match.start] + replacement + text[match.end:]


def _process(text: str, rule: TextProcessingRule, match: MatchResult) -> RuleResult:
    result = RuleResult(
        processed_text=text,
        success=True,
        extracted_content=match.content,
    )
    processor = rule.processor

    if rule.processor_type == "extract":
        result.extracted_block = ExtractedBlock(
            type=processor.block_type,
            content=match.content,
            name=processor.block_name,
        )
        if processor.remove_from_source and match.has_span:
            result.processed_text = _splice(text, match, "")

    elif rule.processor_type == "replace":
        if match.has_span:
            replacement = processor.replacement
            if not isinstance(replacement, str):
                replacement = replacement(text[match.start:match.end], *match.groups)
            result.processed_text = _splice(text, match, replacement)

    elif rule.processor_type == "transform":
        if match.has_span:
            result.processed_text = _splice(text, match, processor.transform(match.content))

    return result


def apply_rule(text: str, rule: TextProcessingRule) -> RuleResult:
    """
    Apply a single rule to text.

    Args:
        text: Input text
        rule: Rule to apply

    Returns:
        RuleResult. success is False and processed_text is the input when
        nothing matched or the rule failed.

    Example:
        >>> rule = TextProcessingRule(
        ...     id="shout", name="Shout",
        ...     pattern=RegexPattern(regex=r"hello"),
        ...     processor_type="transform",
        ...     processor=TransformProcessor(transform=str.upper),
        ... )
        >>> apply_rule("say hello", rule).processed_text
        'say HELLO'
    """
    try:
        match = find_match(text, rule.pattern)
        if not match.matched or match.content is None:
            return RuleResult(processed_text=text)

        result = _process(text, rule, match)
        logger.debug(
            "text_rule_matched",
            rule_id=rule.id,
            processor_type=rule.processor_type,
            start=match.start,
            end=match.end,
        )
        return result

    except Exception as e:
        logger.warning(
            "text_rule_failed",
            rule_id=rule.id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return RuleResult(processed_text=text)


def apply_rules(text: str, rules: Iterable[TextProcessingRule]) -> PipelineResult:
    """
    Apply rules in order, piping each rule's output into the next.

    Each rule runs exactly once. Extracted blocks are collected in rule order.

    Args:
        text: Input text
        rules: Ordered rule set

    Returns:
        PipelineResult with the final text, per-rule results and all
        extracted blocks
    """
    pipeline = PipelineResult(final_text=text)

    for rule in rules:
        result = apply_rule(pipeline.final_text, rule)
        pipeline.results.append(result)
        pipeline.final_text = result.processed_text
        if result.extracted_block is not None:
            pipeline.extracted_blocks.append(result.extracted_block)

    return pipeline
