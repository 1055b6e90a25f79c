"""Abstract base class for text-embedding providers.

Defines the contract the vectorization worker and the retrieval engine use
to turn text into vectors.  One provider instance is bound to one registry
model (see :class:`~src.models.vectorization.AIModel`); the model registry
builds it on demand for each job or query.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (src/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for embedding services.

    The worker sends at most ``max_chunks`` texts per :meth:`embed` call;
    implementations must not split or merge batches so that one call maps
    to exactly one provider request.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            Texts to embed, sent in a single provider request.

        Returns
        -------
        list[list[float]]
            One vector per input text, in input order.

        Raises
        ------
        src.utils.errors.EmbeddingError
            If the provider call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Embed one text (e.g. a search query)."""

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the provider-side model name, e.g. ``"text-embedding-3-small"``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials needed for a call are present."""
