"""Text processing rule models.

A rule is a matcher plus an action. Regex rules are plain data and can be
loaded from config.yaml; rules built around a custom matcher, replacer or
transformer function are programmatic and only constructed in code.
"""

from dataclasses import dataclass, field
from typing import Callable, Literal, Optional, Protocol, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from chatblocks.models.block import BlockType


@dataclass(frozen=True)
class MatchResult:
    """Outcome of running a matcher over a text.

    Attributes:
        matched: Whether anything matched
        content: The content to act on (capture group or whole match)
        start: Start offset of the full match, if known
        end: End offset of the full match, if known
        groups: Capture groups of the full match, passed to replacers
    """

    matched: bool
    content: Optional[str] = None
    start: Optional[int] = None
    end: Optional[int] = None
    groups: tuple[Optional[str], ...] = ()

    @property
    def has_span(self) -> bool:
        return self.start is not None and self.end is not None


NO_MATCH = MatchResult(matched=False)


class Matcher(Protocol):
    def __call__(self, text: str) -> MatchResult: ...


class Replacer(Protocol):
    def __call__(self, full_match: str, *groups: Optional[str]) -> str: ...


class Transformer(Protocol):
    def __call__(self, content: str) -> str: ...


# Single-letter flags accepted on regex patterns; "g" and "u" have no effect
REGEX_FLAGS = frozenset("gimsuy")


class RegexPattern(BaseModel):
    """Regex-based pattern (serializable)."""

    regex: str = Field(..., description="Regular expression source")

    flags: str = Field(
        default="",
        description="Flag letters: i (ignore case), m (multiline), s (dot matches newline), "
        "y (anchor at start); g and u are accepted and ignored",
    )

    capture_group: int = Field(
        default=0,
        ge=0,
        description="Group whose text becomes the matched content (0 = whole match)",
    )

    @field_validator("flags")
    @classmethod
    def validate_flags(cls, v: str) -> str:
        unknown = set(v) - REGEX_FLAGS
        if unknown:
            raise ValueError(f"Unknown regex flags: {''.join(sorted(unknown))}")
        return v

    model_config = {"frozen": True, "extra": "forbid"}


class CustomPattern(BaseModel):
    """Programmatic pattern backed by a matcher function."""

    matcher: Callable[[str], MatchResult]

    model_config = {"frozen": True, "extra": "forbid"}


class ExtractProcessor(BaseModel):
    """Extract the matched content into a new block."""

    block_type: BlockType = Field(..., description="Type of the extracted block")

    block_name: Optional[str] = Field(default=None, description="Name for the extracted block")

    remove_from_source: bool = Field(
        default=False,
        description="Splice the matched span out of the source text",
    )

    @field_validator("block_type")
    @classmethod
    def validate_block_type(cls, v: BlockType) -> BlockType:
        if not v.taggable:
            raise ValueError("Extracted blocks must be one of S, U, A, N")
        return v

    model_config = {"frozen": True, "extra": "forbid"}


class ReplaceProcessor(BaseModel):
    """Replace the matched span with a literal or a computed string."""

    replacement: Union[str, Callable[..., str]]

    model_config = {"frozen": True, "extra": "forbid"}


class TransformProcessor(BaseModel):
    """Replace the matched span with transform(matched content)."""

    transform: Callable[[str], str]

    model_config = {"frozen": True, "extra": "forbid"}


ProcessorType = Literal["extract", "replace", "transform"]

_PROCESSOR_KINDS = {
    "extract": ExtractProcessor,
    "replace": ReplaceProcessor,
    "transform": TransformProcessor,
}


class TextProcessingRule(BaseModel):
    """Configured matcher + action applied to a text."""

    id: str = Field(..., description="Unique rule identifier")

    name: str = Field(..., description="Human-readable rule name")

    description: str = Field(default="", description="What the rule does")

    pattern: Union[RegexPattern, CustomPattern]

    processor_type: ProcessorType

    processor: Union[ExtractProcessor, ReplaceProcessor, TransformProcessor]

    @model_validator(mode="after")
    def check_processor_kind(self) -> "TextProcessingRule":
        expected = _PROCESSOR_KINDS[self.processor_type]
        if not isinstance(self.processor, expected):
            raise ValueError(
                f"Rule {self.id}: processor_type '{self.processor_type}' "
                f"requires a {expected.__name__}"
            )
        return self

    @property
    def is_programmatic(self) -> bool:
        """True if the rule carries functions and cannot be written back to YAML."""
        if isinstance(self.pattern, CustomPattern):
            return True
        return isinstance(self.processor, TransformProcessor) or (
            isinstance(self.processor, ReplaceProcessor)
            and not isinstance(self.processor.replacement, str)
        )

    model_config = {"frozen": True}


@dataclass(frozen=True)
class ExtractedBlock:
    """Block content pulled out of a text by an extract rule."""

    type: BlockType
    content: str
    name: Optional[str] = None


@dataclass
class RuleResult:
    """Result of applying a single rule."""

    processed_text: str
    success: bool = False
    extracted_content: Optional[str] = None
    extracted_block: Optional[ExtractedBlock] = None


@dataclass
class PipelineResult:
    """Result of applying an ordered rule set."""

    final_text: str
    results: list[RuleResult] = field(default_factory=list)
    extracted_blocks: list[ExtractedBlock] = field(default_factory=list)
