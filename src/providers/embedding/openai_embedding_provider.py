"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`
for one registry model.  Works with real OpenAI and any service exposing an
OpenAI-compatible ``/embeddings`` endpoint (SiliconFlow, TogetherAI, Ollama,
vLLM) through the model's ``base_url``.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.models.vectorization import AIModel
from src.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    One :meth:`embed` call is one ``embeddings.create`` request; batching is
    the vectorization worker's job, so the batch sent here is never split.

    Parameters
    ----------
    model:
        Registry record naming the provider-side model, its endpoint and
        credentials.
    timeout:
        Per-request timeout in seconds passed to the client.
    http_client:
        Shared connection pool owned by the application.  When omitted the
        SDK creates its own, which lives as long as this provider.
    """

    def __init__(
        self,
        model: AIModel,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._model = model
        client_kwargs: dict = {"api_key": model.api_key or "not-set", "timeout": timeout}
        if model.base_url:
            client_kwargs["base_url"] = model.base_url
        if http_client is not None:
            client_kwargs["http_client"] = http_client
        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._provider_label = (
            "openai-compatible_embedding" if model.base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in a single request.

        Raises
        ------
        EmbeddingError
            Wrapping any ``openai.APIError``.  The original exception is
            chained so callers can classify it.
        """
        if not texts:
            return []

        try:
            response = await self._client.embeddings.create(
                input=texts,
                model=self._model.model,
            )
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "embedding_request_completed",
            model=self._model.model,
            provider=self._provider_label,
            batch_size=len(texts),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return [item.embedding for item in response.data]

    async def embed_single(self, text: str) -> list[float]:
        """Embed one text string."""
        result = await self.embed([text])
        if not result:
            raise EmbeddingError(
                message="Embedding response contained no vectors",
                provider_name=self.get_provider_name(),
            )
        return result[0]

    def get_model_name(self) -> str:
        return self._model.model

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured or a custom endpoint is set."""
        return bool(self._model.api_key or self._model.base_url)
