"""Configuration models for chatblocks."""

from pydantic import BaseModel, Field, HttpUrl, field_validator, model_validator
from pathlib import Path
from typing import Any, Optional
import yaml
import os
import stat

from chatblocks.models.rules import TextProcessingRule


class ModelConfig(BaseModel):
    """A model exposed by a provider."""

    id: str = Field(..., description="Unique model identifier used for selection")

    name: str = Field(
        ...,
        description="Model name sent to the provider (e.g., 'gpt-4o', 'deepseek-reasoner')"
    )

    alias: Optional[str] = Field(
        default=None,
        description="Short label recorded on assistant blocks and accepted for selection"
    )

    parameters: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra request parameters (temperature, max_tokens, ...)"
    )

    @field_validator("name", "alias")
    @classmethod
    def validate_label(cls, v: Optional[str]) -> Optional[str]:
        # Alias, else name, is written into a model="..." tag attribute
        if v is not None and '"' in v:
            raise ValueError("Model name and alias cannot contain '\"'")
        return v

    model_config = {"frozen": True}


class ProviderConfig(BaseModel):
    """An OpenAI-compatible chat completions endpoint."""

    id: str = Field(..., description="Unique provider identifier")

    name: str = Field(..., description="Display name")

    url: HttpUrl = Field(
        ...,
        description="Full chat completions URL (e.g., https://api.openai.com/v1/chat/completions)"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="API key for authentication"
    )

    api_key_env: Optional[str] = Field(
        default=None,
        description="Environment variable holding the API key (used when api_key is unset)"
    )

    models: list[ModelConfig] = Field(default_factory=list)

    def resolve_api_key(self) -> Optional[str]:
        """Return the configured API key, falling back to api_key_env."""
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.environ.get(self.api_key_env) or None
        return None

    model_config = {"frozen": True}


class LLMConfig(BaseModel):
    """Providers and their models."""

    providers: list[ProviderConfig] = Field(default_factory=list)

    default_model: Optional[str] = Field(
        default=None,
        description="Model id or alias selected at startup"
    )

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "LLMConfig":
        provider_ids = [p.id for p in self.providers]
        if len(provider_ids) != len(set(provider_ids)):
            raise ValueError("Provider ids must be unique")
        return self

    model_config = {"frozen": True}


class TextProcessingConfig(BaseModel):
    """User-supplied text processing rules (appended after the presets)."""

    rules: list[TextProcessingRule] = Field(default_factory=list)

    thinking_rule_ids: list[str] = Field(
        default_factory=lambda: ["openai-thinking-tag"],
        description="Ids of the rules (preset or custom) used to extract thinking chains, in order"
    )

    @field_validator("rules")
    @classmethod
    def validate_data_rules(cls, v: list[TextProcessingRule]) -> list[TextProcessingRule]:
        for rule in v:
            if rule.is_programmatic:
                raise ValueError(f"Rule {rule.id}: config rules must be regex-based data rules")
        return v

    model_config = {"frozen": True}


class Config(BaseModel):
    """Root configuration for chatblocks."""

    llm: LLMConfig = Field(default_factory=LLMConfig, description="LLM provider settings")
    text_processing: TextProcessingConfig = Field(
        default_factory=TextProcessingConfig,
        description="Custom text processing rules"
    )

    @classmethod
    def load(cls, path: Path) -> "Config":
        """
        Load configuration from YAML file.

        Validates file permissions before loading, since the file may hold
        API keys. Raises PermissionError if file is group/world accessible.

        Args:
            path: Path to config.yaml file

        Returns:
            Validated Config instance

        Raises:
            PermissionError: If file permissions are too open
            FileNotFoundError: If config file doesn't exist
            ValueError: If YAML is invalid or validation fails
        """
        if not path.exists():
            raise FileNotFoundError(
                f"Configuration file not found at {path}\n\n"
                f"Please create the file with the following format:\n\n"
                f"llm:\n"
                f"  default_model: gpt4o\n"
                f"  providers:\n"
                f"    - id: openai\n"
                f"      name: OpenAI\n"
                f"      url: https://api.openai.com/v1/chat/completions\n"
                f"      api_key: YOUR_API_KEY_HERE\n"
                f"      models:\n"
                f"        - id: gpt4o\n"
                f"          name: gpt-4o\n"
                f"          alias: GPT-4o\n"
            )

        mode = os.stat(path).st_mode
        if mode & (stat.S_IRWXG | stat.S_IRWXO):
            raise PermissionError(
                f"Config file has overly permissive permissions: {oct(mode)}\n"
                f"Run: chmod 600 {path}"
            )

        with open(path) as f:
            data = yaml.safe_load(f)

        return cls(**(data or {}))

    model_config = {"frozen": True}
