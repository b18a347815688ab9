"""Integration tests for CLI module."""

import json
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest
import yaml
from click.testing import CliRunner

from chatblocks.cli import cli
from chatblocks.document.parser import parse
from chatblocks.models.config import TextProcessingConfig


CONFIG = """
llm:
  default_model: gpt4o
  providers:
    - id: openai
      name: OpenAI
      url: https://api.test.com/v1/chat/completions
      api_key: sk-test-key
      models:
        - id: gpt4o
          name: gpt-4o
          alias: GPT-4o
"""

COMPLETION = {
    "id": "chatcmpl-1",
    "model": "gpt-4o",
    "created": 1760870400,
    "choices": [{"message": {"role": "assistant", "content": "<think>small primes</think>Seven."}}],
    "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
}


def mock_async_client(data):
    response = Mock()
    response.raise_for_status = Mock()
    response.json = Mock(return_value=data)

    client = AsyncMock()
    client.post = AsyncMock(return_value=response)
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=None)
    return client


@pytest.fixture
def runner(fake_home, tmp_path, monkeypatch):
    """CliRunner with logs and the default config path under a temp home."""
    monkeypatch.setattr("chatblocks.cli.DEFAULT_CONFIG_PATH", fake_home / ".config" / "chatblocks" / "config.yaml")
    return CliRunner()


@pytest.fixture
def config_file(tmp_path, write_config):
    return write_config(tmp_path / "config.yaml", CONFIG)


class TestDocumentCommands:
    """Test commands that read and edit a chat document."""

    def test_version(self, runner):
        """Test --version."""
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_blocks_lists_ids(self, runner, chat_file):
        """Test blocks prints a row per block."""
        result = runner.invoke(cli, ["blocks", str(chat_file)])

        assert result.exit_code == 0
        for block_id in ("s1", "u1", "a1", "n1"):
            assert block_id in result.output

    def test_outline(self, runner, chat_file):
        """Test outline shows headings and block labels in line order."""
        result = runner.invoke(cli, ["outline", str(chat_file)])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert "# Prime numbers" in lines[0]
        assert "Question" in result.output
        assert "Scratch" in lines[-1]

    def test_context(self, runner, chat_file):
        """Test context prints the active, non-note blocks."""
        result = runner.invoke(cli, ["context", str(chat_file)])

        assert result.exit_code == 0
        assert result.output == "[System] You are terse.\n\n[User] Name a prime.\n"

    def test_toggle_saves_document(self, runner, chat_file):
        """Test toggle rewrites the file."""
        result = runner.invoke(cli, ["toggle", str(chat_file), "a1"])

        assert result.exit_code == 0
        assert "a1: active" in result.output
        assert '<A A id="a1" model="GPT-4o">Seven.</A>' in chat_file.read_text()

    def test_toggle_unknown_block(self, runner, chat_file):
        """Test toggling an unknown block fails without touching the file."""
        before = chat_file.read_text()

        result = runner.invoke(cli, ["toggle", str(chat_file), "zzz"])

        assert result.exit_code == 1
        assert "Block not found: zzz" in result.output
        assert chat_file.read_text() == before

    def test_set_state(self, runner, chat_file):
        """Test set-state inactive."""
        result = runner.invoke(cli, ["set-state", str(chat_file), "s1", "inactive"])

        assert result.exit_code == 0
        assert '<S I id="s1">You are terse.</S>' in chat_file.read_text()

    def test_set_state_already_in_state(self, runner, chat_file):
        """Test a no-op state change leaves the file as is."""
        before = chat_file.read_text()

        result = runner.invoke(cli, ["set-state", str(chat_file), "s1", "active"])

        assert result.exit_code == 0
        assert chat_file.read_text() == before

    def test_new_block(self, runner, chat_file):
        """Test new appends a block and prints its id."""
        result = runner.invoke(cli, ["new", str(chat_file), "--type", "note", "--content", "remember"])

        assert result.exit_code == 0
        block_id = result.output.strip()
        block = next(b for b in parse(chat_file.read_text()) if b.id == block_id)
        assert block.content == "remember"
        assert block.id.startswith("n_")

    def test_new_block_from_stdin(self, runner, chat_file):
        """Test --content - reads stdin."""
        result = runner.invoke(cli, ["new", str(chat_file), "--content", "-"], input="From stdin\n")

        assert result.exit_code == 0
        assert "From stdin</U>" in chat_file.read_text()

    def test_rename(self, runner, chat_file):
        """Test rename sets the name attribute."""
        result = runner.invoke(cli, ["rename", str(chat_file), "s1", "Persona"])

        assert result.exit_code == 0
        assert '<S A id="s1" name="Persona">' in chat_file.read_text()

    def test_rename_with_quote_refused(self, runner, chat_file):
        """Test rename refuses a name that would break the tag."""
        before = chat_file.read_text()

        result = runner.invoke(cli, ["rename", str(chat_file), "s1", 'the "best" one'])

        assert result.exit_code == 1
        assert "Could not rename block s1" in result.output
        assert chat_file.read_text() == before

    def test_new_block_with_quoted_name(self, runner, chat_file):
        """Test new refuses a name that would break the tag."""
        before = chat_file.read_text()

        result = runner.invoke(cli, ["new", str(chat_file), "--name", 'say "hi"'])

        assert result.exit_code == 1
        assert "cannot contain" in result.output
        assert chat_file.read_text() == before

    def test_missing_document(self, runner, tmp_path):
        """Test a missing document is a usage error."""
        result = runner.invoke(cli, ["blocks", str(tmp_path / "missing.chat")])

        assert result.exit_code == 2


class TestRuleCommands:
    """Test rules, apply-rule and thinking."""

    def test_rules_without_config(self, runner):
        """Test rules lists presets when no config exists."""
        result = runner.invoke(cli, ["rules"])

        assert result.exit_code == 0
        assert "openai-thinking-tag" in result.output
        assert "extract-to-note" in result.output

    def test_rules_templates_are_loadable(self, runner):
        """Test --templates output validates as config."""
        result = runner.invoke(cli, ["rules", "--templates"])

        assert result.exit_code == 0
        data = yaml.safe_load(result.output)
        config = TextProcessingConfig(**data["text_processing"])
        assert [rule.id for rule in config.rules][0] == "extract-markdown-code-blocks"

    def test_apply_rule_stdin(self, runner):
        """Test apply-rule over stdin."""
        result = runner.invoke(cli, ["apply-rule", "openai-thinking-tag"], input="<think>hmm</think>Answer")

        assert result.exit_code == 0
        assert "hmm" in result.output
        assert result.output.rstrip().endswith("Answer")

    def test_apply_rule_unknown(self, runner):
        """Test an unknown rule id fails."""
        result = runner.invoke(cli, ["apply-rule", "nope"], input="x")

        assert result.exit_code == 1
        assert "Rule nope not found" in result.output

    def test_thinking_from_json(self, runner, tmp_path):
        """Test thinking splits a saved provider response."""
        response_file = tmp_path / "response.json"
        response_file.write_text(json.dumps(COMPLETION))

        result = runner.invoke(cli, ["thinking", str(response_file)])

        assert result.exit_code == 0
        assert "small primes" in result.output
        assert result.output.rstrip().endswith("Seven.")

    def test_thinking_from_text(self, runner):
        """Test thinking accepts raw text."""
        result = runner.invoke(cli, ["thinking"], input="plain answer")

        assert result.exit_code == 0
        assert result.output.strip() == "plain answer"


class TestLLMCommands:
    """Test send and verify."""

    def test_send_appends_reply(self, runner, chat_file, config_file):
        """Test send appends the thinking note, the reply and a new user block."""
        mock_client = mock_async_client(COMPLETION)

        with patch("httpx.AsyncClient", return_value=mock_client):
            result = runner.invoke(cli, ["--config", str(config_file), "send", str(chat_file)])

        assert result.exit_code == 0, result.output
        assert "15 tokens" in result.output

        blocks = parse(chat_file.read_text())
        assert [b.type.value for b in blocks[-3:]] == ["N", "A", "U"]
        note, reply, user = blocks[-3:]
        assert note.content == "small primes"
        assert note.name == "Thinking chain"
        assert reply.content == "Seven."
        assert reply.model_alias == "GPT-4o"
        assert user.content == ""

        body = mock_client.post.call_args.kwargs["json"]
        assert body["messages"] == [
            {"role": "system", "content": "You are terse."},
            {"role": "user", "content": "Name a prime."},
        ]

    def test_send_without_config(self, runner, chat_file):
        """Test send needs a config file."""
        result = runner.invoke(cli, ["send", str(chat_file)])

        assert result.exit_code == 1
        assert "Configuration file not found" in result.output

    def test_send_http_error_keeps_document(self, runner, chat_file, config_file):
        """Test a failed request leaves the document untouched."""
        before = chat_file.read_text()
        mock_client = mock_async_client(None)
        mock_client.post = AsyncMock(side_effect=httpx.ConnectError("Connection refused"))

        with patch("httpx.AsyncClient", return_value=mock_client):
            result = runner.invoke(cli, ["--config", str(config_file), "send", str(chat_file)])

        assert result.exit_code == 1
        assert "Request failed: Connection refused" in result.output
        assert chat_file.read_text() == before

    def test_verify(self, runner, config_file):
        """Test verify prints a markdown report."""
        with patch("httpx.AsyncClient", return_value=mock_async_client(COMPLETION)):
            result = runner.invoke(cli, ["--config", str(config_file), "verify", "openai", "gpt4o"])

        assert result.exit_code == 0, result.output
        assert "# LLM provider verification report" in result.output
        assert "chatcmpl-1" in result.output

    def test_verify_unknown_provider(self, runner, config_file):
        """Test verify with an unknown provider fails."""
        result = runner.invoke(cli, ["--config", str(config_file), "verify", "azure", "gpt4o"])

        assert result.exit_code == 1
        assert "Provider azure not found" in result.output
