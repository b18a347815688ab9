"""Unit tests for ModelRegistry."""

import pytest

from chatblocks.llm.registry import ModelRegistry
from chatblocks.models.config import LLMConfig
from chatblocks.services.exceptions import ModelNotFoundError, ProviderNotFoundError


@pytest.fixture
def llm_config():
    return LLMConfig(
        providers=[
            {
                "id": "openai",
                "name": "OpenAI",
                "url": "https://api.openai.com/v1/chat/completions",
                "api_key": "sk-openai",
                "models": [
                    {"id": "gpt4o", "name": "gpt-4o", "alias": "GPT-4o"},
                    {"id": "mini", "name": "gpt-4o-mini"},
                ],
            },
            {
                "id": "deepseek",
                "name": "DeepSeek",
                "url": "https://api.deepseek.com/chat/completions",
                "api_key": "sk-ds",
                "models": [{"id": "r1", "name": "deepseek-reasoner", "alias": "R1"}],
            },
        ]
    )


class TestModelRegistry:
    """Test ModelRegistry lookups."""

    def test_from_config(self, llm_config):
        """Test providers and models are indexed."""
        registry = ModelRegistry.from_config(llm_config)

        assert set(registry.providers) == {"openai", "deepseek"}
        assert set(registry.models) == {"gpt4o", "mini", "r1"}
        assert registry.model_providers["r1"] == "deepseek"

    def test_resolve_by_id_and_alias(self, llm_config):
        """Test models resolve by id or alias."""
        registry = ModelRegistry.from_config(llm_config)

        assert registry.resolve("gpt4o").name == "gpt-4o"
        assert registry.resolve("R1").id == "r1"

    def test_resolve_unknown(self, llm_config):
        """Test unknown model raises ModelNotFoundError."""
        registry = ModelRegistry.from_config(llm_config)

        with pytest.raises(ModelNotFoundError, match="Model gpt5 not found"):
            registry.resolve("gpt5")

    def test_provider_for(self, llm_config):
        """Test a model maps to the provider it is listed under."""
        registry = ModelRegistry.from_config(llm_config)

        assert registry.provider_for("mini").id == "openai"
        with pytest.raises(ModelNotFoundError):
            registry.provider_for("missing")

    def test_get_provider_unknown(self, llm_config):
        """Test unknown provider raises ProviderNotFoundError."""
        with pytest.raises(ProviderNotFoundError):
            ModelRegistry.from_config(llm_config).get_provider("azure")

    def test_redeclared_model_last_wins(self):
        """Test a model id declared by two providers belongs to the later one."""
        config = LLMConfig(
            providers=[
                {"id": "a", "name": "A", "url": "https://a.example/v1", "models": [{"id": "m", "name": "m-a"}]},
                {"id": "b", "name": "B", "url": "https://b.example/v1", "models": [{"id": "m", "name": "m-b"}]},
            ]
        )

        registry = ModelRegistry.from_config(config)

        assert registry.get_model("m").name == "m-b"
        assert registry.provider_for("m").id == "b"

    def test_registry_is_read_only(self, llm_config):
        """Test the lookup tables cannot be mutated."""
        registry = ModelRegistry.from_config(llm_config)

        with pytest.raises(TypeError):
            registry.models["new"] = None

    def test_empty(self):
        """Test an empty registry."""
        registry = ModelRegistry.empty()

        assert len(registry.models) == 0
        with pytest.raises(ModelNotFoundError):
            registry.get_model("x")
