"""LLM service for OpenAI-compatible chat completions endpoints."""

import httpx
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from chatblocks.llm.registry import ModelRegistry
from chatblocks.models.config import LLMConfig, ModelConfig, ProviderConfig
from chatblocks.models.llm import ChatMessage, LLMRequest, LLMResponse, Usage
from chatblocks.services.exceptions import (
    LLMRequestError,
    ModelNotFoundError,
    ProviderNotFoundError,
)
from chatblocks.utils.logging import get_logger


logger = get_logger(__name__)

VERIFICATION_PROMPT = "Say this is a test!"


def parse_completion(data: Any) -> tuple[str, Optional[str], Optional[Usage]]:
    """
    Pull answer, reasoning and usage out of a provider response body.

    OpenAI-compatible bodies look like:
    {
        "choices": [{"message": {"content": "...", "reasoning_content": "..."}}],
        "usage": {"prompt_tokens": 1, "completion_tokens": 2, "total_tokens": 3}
    }
    Ollama's native /api/chat returns {"message": {"content": "...", "thinking": "..."}}.

    Raises:
        ValueError: If the body has neither shape
    """
    if not isinstance(data, Mapping):
        raise ValueError(f"Expected JSON object, got {type(data).__name__}")

    choices = data.get("choices")
    if isinstance(choices, list) and choices:
        message = choices[0].get("message") if isinstance(choices[0], Mapping) else None
    else:
        message = data.get("message")

    if not isinstance(message, Mapping):
        raise ValueError("Response has no assistant message")

    content = message.get("content") or ""
    reasoning = message.get("reasoning_content") or message.get("reasoning") or message.get("thinking")

    usage = None
    if isinstance(data.get("usage"), Mapping):
        usage = Usage(**{k: v for k, v in data["usage"].items() if k in Usage.model_fields})

    return content, reasoning or None, usage


@dataclass
class VerificationReport:
    """Outcome of a provider verification probe."""

    provider_name: str
    model_name: str
    url: str
    response_id: Optional[str]
    response_model: Optional[str]
    created: Optional[int]
    usage: Optional[Usage]
    content: str

    def to_markdown(self) -> str:
        created = (
            datetime.fromtimestamp(self.created).isoformat(sep=" ") if self.created else "unknown"
        )
        lines = [
            "# LLM provider verification report",
            "",
            "## Provider",
            f"- **Provider**: {self.provider_name}",
            f"- **Model**: {self.model_name}",
            f"- **URL**: {self.url}",
            "",
            "## Response",
            f"- **ID**: {self.response_id}",
            f"- **Model**: {self.response_model}",
            f"- **Created**: {created}",
        ]
        if self.usage:
            lines += [
                "",
                "## Usage",
                f"- **Prompt tokens**: {self.usage.prompt_tokens}",
                f"- **Completion tokens**: {self.usage.completion_tokens}",
                f"- **Total tokens**: {self.usage.total_tokens}",
            ]
        lines += ["", "## Content", "```", self.content, "```"]
        return "\n".join(lines)


class LLMService:
    """
    Sends conversations to the configured providers.

    Holds the current model selection and a ModelRegistry. Request failures
    are reported through LLMResponse.error rather than raised. Retries are
    left to the caller.
    """

    def __init__(self, config: LLMConfig, timeout: float = 120.0):
        """
        Initialize the service.

        Args:
            config: Providers and models
            timeout: Read timeout in seconds for a completion
        """
        self._registry = ModelRegistry.from_config(config)
        self._current_model_id: Optional[str] = None
        self.timeout = httpx.Timeout(
            connect=10.0,
            read=timeout,
            write=10.0,
            pool=10.0
        )

        if config.default_model:
            try:
                self.set_current_model(config.default_model)
            except ModelNotFoundError:
                logger.warning("default_model_not_found", model_id=config.default_model)

    @property
    def registry(self) -> ModelRegistry:
        return self._registry

    def reload(self, config: LLMConfig) -> None:
        """
        Swap in a registry built from new configuration.

        The current model stays selected if it still exists.
        """
        registry = ModelRegistry.from_config(config)
        if self._current_model_id and self._current_model_id not in registry.models:
            logger.warning("current_model_removed", model_id=self._current_model_id)
            self._current_model_id = None
        self._registry = registry

    @property
    def current_model(self) -> Optional[ModelConfig]:
        if self._current_model_id is None:
            return None
        return self._registry.models.get(self._current_model_id)

    def set_current_model(self, model_id: str) -> ModelConfig:
        """
        Select the model used when a request names none.

        Args:
            model_id: Model id or alias

        Raises:
            ModelNotFoundError: If the model is unknown
        """
        model = self._registry.resolve(model_id)
        self._current_model_id = model.id
        logger.info("model_selected", model_id=model.id)
        return model

    def available_models(self) -> list[ModelConfig]:
        return list(self._registry.models.values())

    def providers(self) -> list[ProviderConfig]:
        return list(self._registry.providers.values())

    async def _post(self, url: str, api_key: str, body: dict[str, Any]) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                url,
                json=body,
                headers={"Authorization": f"Bearer {api_key}"},
            )
            response.raise_for_status()
            return response.json()

    async def send_request(self, request: LLMRequest) -> LLMResponse:
        """
        Send a conversation to a model.

        Args:
            request: Messages plus optional model id/alias and extra parameters

        Returns:
            LLMResponse with content (and reasoning, usage, raw body), or with
            error set if anything went wrong
        """
        registry = self._registry
        try:
            model = registry.resolve(request.model_id) if request.model_id else self.current_model
            if model is None:
                return LLMResponse(error="No model selected")
            provider = registry.provider_for(model.id)
        except (ModelNotFoundError, ProviderNotFoundError) as e:
            return LLMResponse(error=str(e))

        api_key = provider.resolve_api_key()
        if not api_key:
            return LLMResponse(error=f"Provider {provider.id} API key not found", provider_id=provider.id)

        body = {
            "model": model.name,
            "messages": [message.to_payload() for message in request.messages],
            **model.parameters,
            **request.parameters,
        }

        logger.info(
            "llm_request_started",
            provider=provider.id,
            model=model.name,
            message_count=len(request.messages),
        )
        logger.debug("llm_request_payload", payload=body)

        failure = LLMResponse(provider_id=provider.id, model_id=model.id)
        try:
            data = await self._post(str(provider.url), api_key, body)
            content, reasoning, usage = parse_completion(data)

        except httpx.HTTPStatusError as e:
            logger.error(
                "llm_http_error",
                provider=provider.id,
                status_code=e.response.status_code,
                error=str(e),
            )
            return failure.model_copy(update={"error": f"HTTP error! status: {e.response.status_code}"})

        except httpx.HTTPError as e:
            logger.error("llm_request_failed", provider=provider.id, error=str(e), error_type=type(e).__name__)
            return failure.model_copy(update={"error": str(e) or type(e).__name__})

        except ValueError as e:
            logger.error("llm_malformed_response", provider=provider.id, error=str(e))
            return failure.model_copy(update={"error": f"Malformed response: {e}"})

        logger.info(
            "llm_request_completed",
            provider=provider.id,
            model=model.name,
            total_tokens=usage.total_tokens if usage else None,
        )
        logger.debug("llm_response_body", body=data)

        return LLMResponse(
            content=content,
            reasoning_content=reasoning,
            raw_response=data,
            provider_id=provider.id,
            model_id=model.id,
            usage=usage,
        )

    async def verify_provider(
        self,
        provider_id: str,
        model_id: str,
        api_key: Optional[str] = None,
    ) -> VerificationReport:
        """
        Send a probe message to check a provider/model pair works.

        Args:
            provider_id: Provider to probe
            model_id: Model id or alias declared under that provider
            api_key: Key to use instead of the configured one

        Raises:
            ProviderNotFoundError: If the provider is unknown
            ModelNotFoundError: If the model is unknown
            LLMRequestError: If there is no key or the probe fails
        """
        provider = self._registry.get_provider(provider_id)
        model = self._registry.resolve(model_id)
        key = api_key or provider.resolve_api_key()
        if not key:
            raise LLMRequestError(f"Provider {provider.id} API key not found")

        body = {
            "model": model.name,
            "messages": [ChatMessage(role="user", content=VERIFICATION_PROMPT).to_payload()],
            "temperature": 0.7,
        }

        logger.info("llm_provider_verification_started", provider=provider.id, model=model.name)
        try:
            data = await self._post(str(provider.url), key, body)
            content, _, usage = parse_completion(data)
        except httpx.HTTPStatusError as e:
            raise LLMRequestError(f"HTTP error! status: {e.response.status_code}\n{e.response.text}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise LLMRequestError(str(e) or type(e).__name__) from e

        return VerificationReport(
            provider_name=provider.name,
            model_name=model.name,
            url=str(provider.url),
            response_id=data.get("id"),
            response_model=data.get("model"),
            created=data.get("created"),
            usage=usage,
            content=content,
        )
