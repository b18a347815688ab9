"""Text processing rules, presets and thinking-chain extraction."""

from chatblocks.processing.engine import apply_rule, apply_rules
from chatblocks.processing.presets import load_all_rules, preset_rules, thinking_chain_rules
from chatblocks.processing.thinking import ThinkingResult, extract_thinking

__all__ = [
    "ThinkingResult",
    "apply_rule",
    "apply_rules",
    "extract_thinking",
    "load_all_rules",
    "preset_rules",
    "thinking_chain_rules",
]
