"""Embedding providers for knowledge entries and search queries.

Supports OpenAI (text-embedding-3-small) and Google (text-embedding-004) models.
"""

import asyncio
import logging
from enum import Enum
from typing import Protocol

from campus_ai.core.config import Settings, get_settings
from campus_ai.core.errors import ProviderError, ProviderUnavailable
from campus_ai.core.providers import provider_call

logger = logging.getLogger(__name__)


class EmbeddingTask(str, Enum):
    """What the embedding will be used for."""

    QUERY = "retrieval_query"
    DOCUMENT = "retrieval_document"


class EmbeddingProvider(Protocol):
    """Converts text into a fixed-length vector."""

    provider_name: str
    model: str

    async def embed(self, text: str, task: EmbeddingTask = EmbeddingTask.QUERY) -> list[float]:
        """Embed a single text.

        Raises:
            ProviderUnavailable: No credential is configured.
            ProviderError: Transport or API failure.
        """
        ...


class OpenAIEmbeddingProvider:
    """Embeddings through OpenAI's embeddings endpoint."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: str | None,
        model: str = "text-embedding-3-small",
        timeout_seconds: float = 20.0,
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

    async def embed(self, text: str, task: EmbeddingTask = EmbeddingTask.QUERY) -> list[float]:
        client = self._get_client()

        async with provider_call(self.provider_name, "embeddings", self.timeout_seconds):
            response = await client.embeddings.create(model=self.model, input=text)

        if not response.data:
            raise ProviderError(self.provider_name, "embedding response contained no data")
        return list(response.data[0].embedding)


class GoogleEmbeddingProvider:
    """Embeddings through Google's generative AI SDK.

    Uses the ``retrieval_query`` task type for searches and
    ``retrieval_document`` for knowledge entries.
    """

    provider_name = "google"

    def __init__(
        self,
        api_key: str | None,
        model: str = "text-embedding-004",
        timeout_seconds: float = 20.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds

    async def embed(self, text: str, task: EmbeddingTask = EmbeddingTask.QUERY) -> list[float]:
        if not self.api_key:
            raise ProviderUnavailable(self.provider_name, "Google AI API key not configured")

        import google.generativeai as genai

        genai.configure(api_key=self.api_key)

        async with provider_call(self.provider_name, "embed_content", self.timeout_seconds):
            # The SDK call is blocking; keep it off the event loop.
            result = await asyncio.wait_for(
                asyncio.to_thread(
                    genai.embed_content,
                    model=f"models/{self.model}",
                    content=text,
                    task_type=task.value,
                ),
                timeout=self.timeout_seconds,
            )

        embedding = result.get("embedding") if result else None
        if not embedding:
            raise ProviderError(self.provider_name, "embedding response contained no data")
        return [float(value) for value in embedding]


def build_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """Create the embedding provider selected in settings.

    Raises:
        ValueError: If the configured provider is not supported.
    """
    if settings.embedding_provider == "openai":
        return OpenAIEmbeddingProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_embedding_model,
            timeout_seconds=settings.embedding_timeout_seconds,
        )
    if settings.embedding_provider == "google":
        return GoogleEmbeddingProvider(
            api_key=settings.google_ai_api_key,
            model=settings.google_embedding_model,
            timeout_seconds=settings.embedding_timeout_seconds,
        )
    raise ValueError(f"Unsupported embedding provider: {settings.embedding_provider}")


# Global provider instance
_embedding_provider: EmbeddingProvider | None = None


def get_embedding_provider() -> EmbeddingProvider:
    """Get the process-wide embedding provider, creating it on first use."""
    global _embedding_provider
    if _embedding_provider is None:
        _embedding_provider = build_embedding_provider(get_settings())
        logger.info(
            "Embedding provider initialized: %s (%s)",
            _embedding_provider.provider_name,
            _embedding_provider.model,
        )
    return _embedding_provider
