"""Language model provider for the tutor bot and study tools."""

import logging
from typing import Protocol

from pydantic import BaseModel

from campus_ai.core.ai_constants import (
    REASONING_MAX_COMPLETION_TOKENS,
    REASONING_MODEL_PREFIXES,
    STANDARD_MAX_COMPLETION_TOKENS,
)
from campus_ai.core.config import Settings, get_settings
from campus_ai.core.errors import ProviderError, ProviderUnavailable, TruncatedEmptyResponse
from campus_ai.core.providers import provider_call

logger = logging.getLogger(__name__)


class Completion(BaseModel):
    """Raw output of one completion call."""

    text: str
    finish_reason: str | None = None
    tokens_used: int | None = None
    model: str


class LanguageModelProvider(Protocol):
    provider_name: str
    model: str

    async def complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> Completion:
        """Run a single-turn completion.

        Raises:
            ProviderUnavailable: No credential is configured.
            ProviderError: Transport or API failure.
        """
        ...


def is_reasoning_model(model: str) -> bool:
    return model.lower().startswith(REASONING_MODEL_PREFIXES)


def max_tokens_for_model(model: str) -> int:
    """Completion budget for a model family.

    Reasoning models spend part of the budget on hidden reasoning tokens and
    return empty text when the budget is too small.
    """
    if is_reasoning_model(model):
        return REASONING_MAX_COMPLETION_TOKENS
    return STANDARD_MAX_COMPLETION_TOKENS


def ensure_visible_text(completion: Completion, provider_name: str, max_tokens: int) -> None:
    """Reject a completion with no visible text.

    Raises:
        TruncatedEmptyResponse: The token budget ran out before any output,
            typically spent on hidden reasoning.
        ProviderError: Empty output for any other reason.
    """
    if completion.text.strip():
        return
    if completion.finish_reason == "length":
        raise TruncatedEmptyResponse(provider_name, max_tokens)
    raise ProviderError(provider_name, "empty response")


class OpenAIChatProvider:
    """Chat completions through OpenAI."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: str | None,
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 60.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._client = None

    def _get_client(self):
        if not self.api_key:
            raise ProviderUnavailable(self.provider_name, "OpenAI API key not configured")
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(
                api_key=self.api_key,
                timeout=self.timeout_seconds,
                max_retries=0,
            )
        return self._client

    async def complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> Completion:
        client = self._get_client()

        async with provider_call(self.provider_name, "chat.completions", self.timeout_seconds):
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_completion_tokens=max_tokens,
            )

        if not response.choices:
            raise ProviderError(self.provider_name, "completion response contained no choices")

        choice = response.choices[0]
        return Completion(
            text=choice.message.content or "",
            finish_reason=choice.finish_reason,
            tokens_used=response.usage.total_tokens if response.usage else None,
            model=response.model or self.model,
        )


# Global provider instance
_language_model: LanguageModelProvider | None = None


def build_language_model(settings: Settings) -> LanguageModelProvider:
    return OpenAIChatProvider(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout_seconds=settings.ai_request_timeout_seconds,
    )


def get_language_model() -> LanguageModelProvider:
    """Get the process-wide language model provider, creating it on first use."""
    global _language_model
    if _language_model is None:
        _language_model = build_language_model(get_settings())
        logger.info("Language model initialized: %s", _language_model.model)
    return _language_model
