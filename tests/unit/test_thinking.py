"""Unit tests for thinking-chain extraction."""

from chatblocks.models.llm import LLMResponse
from chatblocks.processing.presets import thinking_chain_rules, template_rules
from chatblocks.processing.thinking import ThinkingResult, extract_thinking


def openai_response(message):
    return {"choices": [{"message": {"role": "assistant", **message}}]}


class TestReasoningField:
    """Tier 1: dedicated reasoning fields."""

    def test_reasoning_content_field(self):
        """Test reasoning_content wins and the answer is untouched."""
        response = openai_response({
            "content": "<think>ignored</think>Answer",
            "reasoning_content": "deep thoughts",
        })

        result = extract_thinking(response, thinking_chain_rules())

        assert result == ThinkingResult("<think>ignored</think>Answer", "deep thoughts")

    def test_reasoning_field(self):
        """Test the alternative reasoning field name."""
        result = extract_thinking(openai_response({"content": "A", "reasoning": "R"}), [])

        assert result == ThinkingResult("A", "R")

    def test_ollama_thinking_field(self):
        """Test Ollama's native message.thinking."""
        response = {"model": "qwen3", "message": {"role": "assistant", "content": "A", "thinking": "T"}}

        assert extract_thinking(response, []) == ThinkingResult("A", "T")

    def test_empty_reasoning_falls_through(self):
        """Test an empty reasoning field is ignored."""
        response = openai_response({"content": "<think>T</think>A", "reasoning_content": ""})

        assert extract_thinking(response, thinking_chain_rules()) == ThinkingResult("A", "T")

    def test_llm_response_reasoning(self):
        """Test an LLMResponse with reasoning_content."""
        response = LLMResponse(content="A", reasoning_content="R")

        assert extract_thinking(response, []) == ThinkingResult("A", "R")


class TestThinkingRules:
    """Tier 2: configured thinking rules."""

    def test_default_rule_extracts(self):
        """Test the think-tag preset splits thinking from the answer."""
        response = openai_response({"content": "<think>\nplan\n</think>\n\nParis"})

        result = extract_thinking(response, thinking_chain_rules())

        assert result.main_content == "Paris"
        assert result.thinking_content == "plan"

    def test_rule_and_fallback_trim_alike(self):
        """Test the same think tag yields the same thinking text from either tier."""
        response = openai_response({"content": "<think>\n  plan  \n</think>Paris"})

        from_rules = extract_thinking(response, thinking_chain_rules())
        from_fallback = extract_thinking(response, [])

        assert from_rules == from_fallback == ThinkingResult("Paris", "plan")

    def test_custom_rule_set(self):
        """Test a different rule set is honoured."""
        rules = [r for r in template_rules() if r.id == "extract-thinking-chain-xml"]
        response = openai_response({"content": "<thinking>plan</thinking> Paris"})

        result = extract_thinking(response, rules)

        assert result.main_content == "Paris"
        assert result.thinking_content == "plan"

    def test_first_extracted_block_wins(self):
        """Test only the first extracted block becomes the thinking chain."""
        rules = [*thinking_chain_rules(), *[r for r in template_rules() if r.id == "extract-thinking-chain-xml"]]
        response = openai_response({"content": "<think>one</think><thinking>two</thinking>Answer"})

        result = extract_thinking(response, rules)

        assert result.thinking_content == "one"
        assert result.main_content == "Answer"


class TestThinkTagFallback:
    """Tier 3: plain <think> tags."""

    def test_fallback_without_rules(self):
        """Test a think tag is split out even with no rules."""
        result = extract_thinking(openai_response({"content": "Before <think> T </think> After"}), [])

        assert result == ThinkingResult("Before  After", "T")

    def test_llm_response_without_raw(self):
        """Test an LLMResponse with only content falls through to the tag search."""
        result = extract_thinking(LLMResponse(content="<think>T</think>A"), [])

        assert result == ThinkingResult("A", "T")


class TestNoThinking:
    """Responses without thinking, and unrecognized input."""

    def test_plain_answer(self):
        """Test an answer with no thinking comes back unchanged."""
        result = extract_thinking(openai_response({"content": "  Paris  "}), thinking_chain_rules())

        assert result == ThinkingResult("  Paris  ")

    def test_null_content(self):
        """Test null content is treated as empty."""
        assert extract_thinking(openai_response({"content": None}), []) == ThinkingResult("")

    def test_raw_string(self):
        """Test an unrecognized string is returned as main content."""
        assert extract_thinking("just text", []) == ThinkingResult("just text")

    def test_unrecognized_dict(self):
        """Test a dict without a message is returned verbatim via its text."""
        assert extract_thinking({"content": "plain"}, []) == ThinkingResult("plain")

    def test_unrecognized_dict_as_json(self):
        """Test a dict with no text content comes back as its JSON text."""
        result = extract_thinking({"output": "hi", "note": "caf\u00e9"}, [])

        assert result == ThinkingResult('{"output": "hi", "note": "caf\u00e9"}')

    def test_non_text_content(self):
        """Test structured (non-string) content is not treated as an answer."""
        response = openai_response({"content": [{"type": "text", "text": "hi"}]})

        result = extract_thinking(response, [])

        assert result.thinking_content is None

    def test_never_raises_on_garbage(self):
        """Test odd inputs do not raise."""
        for garbage in (None, 42, [], {"choices": []}, {"choices": ["x"]}):
            assert extract_thinking(garbage, thinking_chain_rules()).thinking_content is None
