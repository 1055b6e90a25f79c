"""Rerank post-processing for retrieval results.

:class:`RerankHelper` resolves a rerank model from the registry, asks it to
score the candidate contents against the query and rebuilds the chunk list
in relevance order with ``relevance_score`` set.

A missing or inactive rerank model is a configuration problem and raises
:class:`ModelUnavailableError`.  A failing rerank *call* is not: the helper
logs it and returns the candidates thresholded on their original score and
cut to ``top_k``, so retrieval keeps working when the rerank service is
down.
"""

from __future__ import annotations

import structlog

from src.interfaces.model_registry import IModelRegistry
from src.models.retrieval import RankedChunk
from src.models.vectorization import ModelType
from src.services.retrieval.fusion import apply_threshold, relevance_key, sort_and_truncate
from src.utils.errors import ModelUnavailableError

logger = structlog.get_logger(logger_name=__name__)


class RerankHelper:
    """Applies a registry rerank model to a list of candidates."""

    def __init__(self, registry: IModelRegistry) -> None:
        self._registry = registry

    async def rerank(
        self,
        query: str,
        chunks: list[RankedChunk],
        model_id: str,
        top_k: int,
        score_threshold: float,
        score_threshold_enabled: bool,
    ) -> list[RankedChunk]:
        """Return *chunks* reordered by the rerank model's relevance score.

        Raises
        ------
        ModelUnavailableError
            If *model_id* is not an active rerank model.
        """
        if not chunks:
            return []

        model = await self._registry.get_active_model(model_id, ModelType.RERANK)
        if model is None:
            raise ModelUnavailableError(f"No available rerank model: {model_id}")

        provider = self._registry.create_rerank_provider(model)
        try:
            items = await provider.rerank(query, [c.content for c in chunks], top_n=top_k)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "rerank_failed_using_fallback",
                model_id=model_id,
                provider=provider.get_provider_name(),
                error=str(exc),
            )
            return apply_threshold(chunks, score_threshold, score_threshold_enabled)[:top_k]

        scored: list[RankedChunk] = []
        for item in items:
            if item.index >= len(chunks):
                logger.warning("rerank_index_out_of_range", index=item.index, candidates=len(chunks))
                continue
            scored.append(chunks[item.index].model_copy(update={"relevance_score": item.relevance_score}))

        kept = apply_threshold(
            scored,
            score_threshold,
            score_threshold_enabled,
            score_of=lambda c: c.relevance_score or 0.0,
        )
        result = sort_and_truncate(kept, top_k, key=relevance_key)
        logger.debug("rerank_complete", model_id=model_id, candidates=len(chunks), returned=len(result))
        return result
