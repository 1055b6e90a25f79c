"""Model registry backed by the ``models:`` section of config/config.yaml.

Each entry becomes an :class:`~src.models.vectorization.AIModel`.  Blank
credentials fall back to the ``OPENAI_*`` settings for embedding models and
``RERANK_*`` settings for rerank models, so secrets can stay in ``.env``
while the model list is checked in.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.model_registry import IModelRegistry
from src.interfaces.rerank_provider import IRerankProvider
from src.models.vectorization import AIModel, ModelType
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.rerank.http_rerank_provider import HTTPRerankProvider
from src.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


class YAMLModelRegistry(IModelRegistry):
    """In-memory registry built from configuration entries.

    Parameters
    ----------
    entries:
        Raw dicts from the ``models:`` config list.
    settings:
        Source of fallback credentials.
    http_client:
        Shared client handed to every embedding and rerank provider.

    Providers are cached per model id, so repeated queries and jobs reuse one
    SDK client instead of opening a new connection pool each time.
    """

    def __init__(
        self,
        entries: list[dict[str, Any]],
        settings: Settings,
        http_client: httpx.AsyncClient,
    ) -> None:
        self._http = http_client
        self._models: dict[str, AIModel] = {}
        self._embedding_providers: dict[str, IEmbeddingProvider] = {}
        self._rerank_providers: dict[str, IRerankProvider] = {}
        for entry in entries:
            try:
                model = AIModel.model_validate(entry)
            except ValueError as exc:
                raise ConfigurationError(
                    message=f"Invalid model registry entry {entry.get('id')!r}: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
            self._models[model.id] = self._with_fallback_credentials(model, settings)
        logger.info("model_registry_loaded", models=sorted(self._models))

    @staticmethod
    def _with_fallback_credentials(model: AIModel, settings: Settings) -> AIModel:
        if model.model_type == ModelType.TEXT_EMBEDDING:
            api_key, base_url = settings.openai_api_key, settings.openai_base_url
        else:
            api_key, base_url = settings.rerank_api_key, settings.rerank_base_url
        return model.model_copy(
            update={
                "api_key": model.api_key or api_key,
                "base_url": model.base_url or base_url,
            }
        )

    async def get_active_model(self, model_id: str | None, model_type: ModelType) -> AIModel | None:
        if not model_id:
            return None
        model = self._models.get(model_id)
        if model is None or not model.is_active or model.model_type != model_type:
            logger.warning(
                "model_not_available",
                model_id=model_id,
                model_type=model_type.value,
                known=model is not None,
            )
            return None
        return model

    def create_embedding_provider(self, model: AIModel) -> IEmbeddingProvider:
        provider = self._embedding_providers.get(model.id)
        if provider is None:
            provider = OpenAIEmbeddingProvider(model, http_client=self._http)
            self._embedding_providers[model.id] = provider
        return provider

    def create_rerank_provider(self, model: AIModel) -> IRerankProvider:
        provider = self._rerank_providers.get(model.id)
        if provider is None:
            provider = HTTPRerankProvider(model, self._http)
            self._rerank_providers[model.id] = provider
        return provider

    def get_provider_name(self) -> str:
        return "yaml_model_registry"
