"""Configuration management with lazy validation."""

from pathlib import Path
from functools import cached_property

from chatblocks.models.config import Config, LLMConfig, TextProcessingConfig
from chatblocks.models.rules import TextProcessingRule
from chatblocks.processing.presets import get_rule_by_id, load_all_rules
from chatblocks.services.exceptions import RuleNotFoundError
from chatblocks.utils.logging import get_logger


logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "chatblocks" / "config.yaml"


class ConfigManager:
    """
    Configuration manager with lazy validation.

    Loads the config file and exposes its sections on first access.

    Example:
        >>> config_mgr = ConfigManager.load_default()
        >>> llm_config = config_mgr.llm
        >>> rules = config_mgr.rules  # presets + custom rules
    """

    def __init__(self, config: Config):
        """
        Initialize config manager with loaded config.

        Args:
            config: Loaded and validated Config instance
        """
        self._config = config

    @classmethod
    def load_default(cls) -> "ConfigManager":
        """
        Load configuration from default path (~/.config/chatblocks/config.yaml).

        Raises:
            FileNotFoundError: If config file doesn't exist
            PermissionError: If config file has wrong permissions
            ValueError: If config is invalid
        """
        return cls.load_from_path(DEFAULT_CONFIG_PATH)

    @classmethod
    def load_from_path(cls, path: Path) -> "ConfigManager":
        """
        Load configuration from specific path.

        Args:
            path: Path to config.yaml file

        Returns:
            ConfigManager instance with loaded config

        Raises:
            FileNotFoundError: If config file doesn't exist
            PermissionError: If config file has wrong permissions
            ValueError: If config is invalid
        """
        logger.info("config_loading", path=str(path))

        try:
            config = Config.load(path)
            logger.info("config_loaded", path=str(path))
            return cls(config)

        except FileNotFoundError as e:
            logger.error("config_not_found", path=str(path), error=str(e))
            raise

        except PermissionError as e:
            logger.error("config_permission_error", path=str(path), error=str(e))
            raise

        except Exception as e:
            logger.error("config_validation_error", path=str(path), error=str(e))
            raise ValueError(f"Configuration validation failed: {e}") from e

    @cached_property
    def llm(self) -> LLMConfig:
        """LLM provider configuration."""
        return self._config.llm

    @cached_property
    def text_processing(self) -> TextProcessingConfig:
        """Custom rule configuration (uses defaults if not specified)."""
        return self._config.text_processing

    @cached_property
    def rules(self) -> list[TextProcessingRule]:
        """Preset rules followed by the custom rules, deduplicated by id."""
        return load_all_rules(self.text_processing.rules)

    @cached_property
    def thinking_rules(self) -> list[TextProcessingRule]:
        """
        Rules used for thinking-chain extraction, resolved from thinking_rule_ids.

        Raises:
            ValueError: If an id names no preset or custom rule
        """
        try:
            return [get_rule_by_id(self.rules, rule_id) for rule_id in self.text_processing.thinking_rule_ids]
        except RuleNotFoundError as e:
            logger.error("thinking_rule_not_found", rule_id=e.rule_id)
            raise ValueError(f"Text processing configuration invalid: {e}") from e
