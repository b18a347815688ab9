"""Provider/model lookup tables.

A ModelRegistry is an immutable value built from configuration. When the
configuration changes a new registry is built and swapped in whole; an
existing registry is never mutated while someone may be reading it.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from chatblocks.models.config import LLMConfig, ModelConfig, ProviderConfig
from chatblocks.services.exceptions import ModelNotFoundError, ProviderNotFoundError
from chatblocks.utils.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class ModelRegistry:
    """
    Read-only provider and model tables.

    Attributes:
        providers: Provider id → provider
        models: Model id → model
        model_providers: Model id → id of the provider it was declared under
        aliases: Model alias → model id
    """

    providers: Mapping[str, ProviderConfig]
    models: Mapping[str, ModelConfig]
    model_providers: Mapping[str, str]
    aliases: Mapping[str, str]

    @classmethod
    def from_config(cls, config: LLMConfig) -> "ModelRegistry":
        """
        Build a registry from LLM configuration.

        A model always belongs to the provider it is listed under. If two
        providers declare the same model id, the later one wins.
        """
        providers: dict[str, ProviderConfig] = {}
        models: dict[str, ModelConfig] = {}
        model_providers: dict[str, str] = {}
        aliases: dict[str, str] = {}

        for provider in config.providers:
            providers[provider.id] = provider
            for model in provider.models:
                if model.id in models:
                    logger.warning(
                        "model_id_redeclared",
                        model_id=model.id,
                        previous_provider=model_providers[model.id],
                        provider=provider.id,
                    )
                models[model.id] = model
                model_providers[model.id] = provider.id
                if model.alias:
                    aliases[model.alias] = model.id

        logger.info("model_registry_built", providers=len(providers), models=len(models))
        return cls(
            providers=MappingProxyType(providers),
            models=MappingProxyType(models),
            model_providers=MappingProxyType(model_providers),
            aliases=MappingProxyType(aliases),
        )

    @classmethod
    def empty(cls) -> "ModelRegistry":
        return cls.from_config(LLMConfig())

    def get_provider(self, provider_id: str) -> ProviderConfig:
        """
        Raises:
            ProviderNotFoundError: If the provider id is unknown
        """
        try:
            return self.providers[provider_id]
        except KeyError:
            raise ProviderNotFoundError(provider_id) from None

    def get_model(self, model_id: str) -> ModelConfig:
        """
        Raises:
            ModelNotFoundError: If the model id is unknown
        """
        try:
            return self.models[model_id]
        except KeyError:
            raise ModelNotFoundError(model_id) from None

    def resolve(self, model_id_or_alias: str) -> ModelConfig:
        """
        Look up a model by id, falling back to its alias.

        Raises:
            ModelNotFoundError: If neither matches
        """
        if model_id_or_alias in self.models:
            return self.models[model_id_or_alias]
        if model_id_or_alias in self.aliases:
            return self.models[self.aliases[model_id_or_alias]]
        raise ModelNotFoundError(model_id_or_alias)

    def provider_for(self, model_id: str) -> ProviderConfig:
        """
        Provider that serves a model.

        Raises:
            ModelNotFoundError: If the model id is unknown
        """
        if model_id not in self.model_providers:
            raise ModelNotFoundError(model_id)
        return self.get_provider(self.model_providers[model_id])
