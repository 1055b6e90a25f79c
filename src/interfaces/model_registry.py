"""Abstract base class for the AI model registry.

Model and provider management is owned by the surrounding console; the
engine only needs to look a model up by id and get a client bound to it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.rerank_provider import IRerankProvider
from src.models.vectorization import AIModel, ModelType


# Concrete implementation: YAMLModelRegistry (src/providers/model_registry/)
class IModelRegistry(ABC):
    """Contract for resolving model records and building provider clients."""

    @abstractmethod
    async def get_active_model(self, model_id: str | None, model_type: ModelType) -> AIModel | None:
        """Return the model when it exists, is active and has *model_type*.

        Returns ``None`` for unknown, inactive or mistyped models; callers
        turn that into a :class:`~src.utils.errors.ModelUnavailableError`.
        """

    @abstractmethod
    def create_embedding_provider(self, model: AIModel) -> IEmbeddingProvider:
        """Return the embedding client bound to *model*, reused across calls."""

    @abstractmethod
    def create_rerank_provider(self, model: AIModel) -> IRerankProvider:
        """Return the rerank client bound to *model*, reused across calls."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"yaml_model_registry"``."""
