"""Dataset retrieval: query text in, ranked chunks out.

:meth:`RetrievalService.query_dataset` picks a search routine from a table
keyed by retrieval mode:

    vector    embed the query, cosine similarity over retrievable segments
    fullText  jieba terms ANDed against the FTS index, rank x multiplier
    hybrid    both of the above concurrently with 2 x top_k candidates each,
              combined by the configured strategy:
                  weighted_score  raw-score weighted sum (see fusion.py)
                  rerank          deduplicated pool scored by a rerank model

Single-mode results are post-processed by the rerank model when the config
enables rerank with a model id.  Score thresholds are only applied when
``score_threshold_enabled`` is set, and never to hybrid sub-searches.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

from src.interfaces.dataset_store import IDatasetStore
from src.interfaces.model_registry import IModelRegistry
from src.models.dataset import (
    Dataset,
    HybridStrategy,
    RetrievalConfig,
    RetrievalMode,
    WeightConfig,
)
from src.models.retrieval import RankedChunk, RetrievalResult
from src.models.vectorization import ModelType
from src.services.retrieval.fusion import (
    apply_threshold,
    merge_candidates,
    sort_and_truncate,
    weighted_score_fusion,
)
from src.services.retrieval.rerank import RerankHelper
from src.utils.errors import BadRequestError, ModelUnavailableError, NotFoundError
from src.utils.tokenizer import query_terms

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_FULLTEXT_SCORE_MULTIPLIER = 10.0
HYBRID_CANDIDATE_MULTIPLIER = 2

SearchRoutine = Callable[[Dataset, str, RetrievalConfig], Awaitable[list[RankedChunk]]]
HybridRoutine = Callable[
    [str, list[RankedChunk], list[RankedChunk], RetrievalConfig],
    Awaitable[list[RankedChunk]],
]


class RetrievalService:
    """Answers queries against one dataset."""

    def __init__(
        self,
        store: IDatasetStore,
        registry: IModelRegistry,
        rerank_helper: RerankHelper | None = None,
        fulltext_score_multiplier: float = DEFAULT_FULLTEXT_SCORE_MULTIPLIER,
    ) -> None:
        self._store = store
        self._registry = registry
        self._rerank = rerank_helper or RerankHelper(registry)
        self._fulltext_multiplier = fulltext_score_multiplier

        self._modes: dict[str, SearchRoutine] = {
            RetrievalMode.VECTOR.value: self._vector_search,
            RetrievalMode.FULL_TEXT.value: self._full_text_search,
            RetrievalMode.HYBRID.value: self._hybrid_search,
        }
        self._hybrid_strategies: dict[str, HybridRoutine] = {
            HybridStrategy.WEIGHTED_SCORE.value: self._weighted_fusion,
            HybridStrategy.RERANK.value: self._rerank_fusion,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def query_dataset(
        self,
        dataset_id: str,
        query: str,
        config: RetrievalConfig | None = None,
    ) -> RetrievalResult:
        """Return up to ``top_k`` chunks of *dataset_id* ranked for *query*.

        *config* replaces the dataset's stored retrieval config for this
        call; its ``retrieval_mode``, when set, replaces the dataset's mode.

        Raises
        ------
        NotFoundError
            If the dataset does not exist.
        BadRequestError
            For an empty query or an unsupported mode or hybrid strategy.
        ModelUnavailableError
            If the embedding or rerank model the query needs is unavailable.
        RetrievalUnavailableError
            If the store cannot run the similarity or text-rank operator.
        """
        start = time.perf_counter()
        if not query or not query.strip():
            raise BadRequestError("Query must not be empty")

        dataset = await self._store.get_dataset(dataset_id)
        if dataset is None:
            raise NotFoundError(f"Dataset not found: {dataset_id}")

        effective = config or dataset.retrieval_config
        mode = (config.retrieval_mode if config else None) or dataset.retrieval_mode

        routine = self._modes.get(mode)
        if routine is None:
            raise BadRequestError(f"Unsupported retrieval mode: {mode}")

        try:
            chunks = await routine(dataset, query, effective)
        except Exception as exc:
            logger.error("retrieval_failed", dataset_id=dataset_id, mode=mode, error=str(exc))
            raise

        total_time = int((time.perf_counter() - start) * 1000)
        logger.info(
            "retrieval_completed",
            dataset_id=dataset_id,
            mode=mode,
            top_k=effective.top_k,
            returned=len(chunks),
            total_time_ms=total_time,
        )
        return RetrievalResult(chunks=chunks, total_time=total_time)

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    async def _vector_search(
        self, dataset: Dataset, query: str, config: RetrievalConfig
    ) -> list[RankedChunk]:
        threshold = config.score_threshold if config.score_threshold_enabled else None
        chunks = await self._vector_candidates(dataset, query, config.top_k, threshold)
        return await self._maybe_rerank(query, chunks, config)

    async def _full_text_search(
        self, dataset: Dataset, query: str, config: RetrievalConfig
    ) -> list[RankedChunk]:
        chunks = await self._full_text_candidates(dataset, query, config.top_k)
        chunks = apply_threshold(chunks, config.score_threshold, config.score_threshold_enabled)
        return await self._maybe_rerank(query, chunks, config)

    async def _hybrid_search(
        self, dataset: Dataset, query: str, config: RetrievalConfig
    ) -> list[RankedChunk]:
        strategy = config.strategy or HybridStrategy.WEIGHTED_SCORE.value
        combine = self._hybrid_strategies.get(strategy)
        if combine is None:
            raise BadRequestError(f"Unsupported hybrid retrieval strategy: {strategy}")

        limit = config.top_k * HYBRID_CANDIDATE_MULTIPLIER
        vector, full_text = await asyncio.gather(
            self._vector_candidates(dataset, query, limit),
            self._full_text_candidates(dataset, query, limit),
        )
        logger.debug(
            "hybrid_candidates",
            strategy=strategy,
            vector=len(vector),
            full_text=len(full_text),
        )
        return await combine(query, vector, full_text, config)

    # ------------------------------------------------------------------
    # Hybrid strategies
    # ------------------------------------------------------------------

    async def _weighted_fusion(
        self,
        query: str,
        vector: list[RankedChunk],
        full_text: list[RankedChunk],
        config: RetrievalConfig,
    ) -> list[RankedChunk]:
        weights = config.weight_config or WeightConfig()
        return weighted_score_fusion(
            vector,
            full_text,
            weights.semantic_weight,
            weights.keyword_weight,
            config.top_k,
        )

    async def _rerank_fusion(
        self,
        query: str,
        vector: list[RankedChunk],
        full_text: list[RankedChunk],
        config: RetrievalConfig,
    ) -> list[RankedChunk]:
        candidates = merge_candidates(vector, full_text)
        rerank = config.rerank_config
        if rerank is not None and rerank.enabled and rerank.model_id:
            return await self._rerank.rerank(
                query,
                candidates,
                rerank.model_id,
                config.top_k,
                config.score_threshold,
                config.score_threshold_enabled,
            )

        kept = apply_threshold(candidates, config.score_threshold, config.score_threshold_enabled)
        return sort_and_truncate(kept, config.top_k)

    # ------------------------------------------------------------------
    # Sub-searches
    # ------------------------------------------------------------------

    async def _vector_candidates(
        self,
        dataset: Dataset,
        query: str,
        limit: int,
        score_threshold: float | None = None,
    ) -> list[RankedChunk]:
        model = await self._registry.get_active_model(
            dataset.embedding_model_id, ModelType.TEXT_EMBEDDING
        )
        if model is None:
            raise ModelUnavailableError(
                f"No available embedding model for dataset {dataset.id} "
                f"(model id: {dataset.embedding_model_id})"
            )

        embedding = await self._registry.create_embedding_provider(model).embed_single(query)
        return await self._store.vector_search(dataset.id, embedding, limit, score_threshold)

    async def _full_text_candidates(
        self, dataset: Dataset, query: str, limit: int
    ) -> list[RankedChunk]:
        terms = query_terms(query) or [query.strip()]
        raw = await self._store.full_text_search(dataset.id, terms, limit)
        return [c.model_copy(update={"score": c.score * self._fulltext_multiplier}) for c in raw]

    async def _maybe_rerank(
        self, query: str, chunks: list[RankedChunk], config: RetrievalConfig
    ) -> list[RankedChunk]:
        rerank = config.rerank_config
        if rerank is None or not rerank.enabled or not rerank.model_id:
            return chunks
        return await self._rerank.rerank(
            query,
            chunks,
            rerank.model_id,
            config.top_k,
            config.score_threshold,
            config.score_threshold_enabled,
        )
