"""Validation and normalisation of retrieval configs before they are stored.

Rules, applied in :meth:`RetrievalConfigBuilder.build`:

* the retrieval mode must be vector, fullText or hybrid;
* vector mode forces weights to 1.0 / 0.0, full-text mode to 0.0 / 1.0;
* hybrid mode defaults weights to 0.7 / 0.3 and rejects weights whose sum
  is more than 0.01 away from 1;
* the hybrid strategy must be weighted_score or rerank, and the rerank
  strategy requires rerank to be enabled;
* enabling rerank requires a model id.
"""

from __future__ import annotations

from src.models.dataset import (
    HybridStrategy,
    RerankConfig,
    RetrievalConfig,
    RetrievalMode,
    WeightConfig,
)
from src.utils.errors import BadRequestError

_WEIGHT_TOLERANCE = 0.01

_FIXED_WEIGHTS: dict[RetrievalMode, WeightConfig] = {
    RetrievalMode.VECTOR: WeightConfig(semantic_weight=1.0, keyword_weight=0.0),
    RetrievalMode.FULL_TEXT: WeightConfig(semantic_weight=0.0, keyword_weight=1.0),
}


def _parse_mode(value: str) -> RetrievalMode:
    try:
        return RetrievalMode(value)
    except ValueError:
        raise BadRequestError(f"Unsupported retrieval mode: {value}") from None


def _parse_strategy(value: str) -> HybridStrategy:
    try:
        return HybridStrategy(value)
    except ValueError:
        raise BadRequestError(f"Unsupported hybrid retrieval strategy: {value}") from None


class RetrievalConfigBuilder:
    """Builds a validated :class:`RetrievalConfig` for a retrieval mode."""

    @staticmethod
    def build(mode: str, config: RetrievalConfig | None = None) -> RetrievalConfig:
        """Return a normalised copy of *config* for *mode*.

        Raises
        ------
        BadRequestError
            If any rule in the module docstring is violated.
        """
        retrieval_mode = _parse_mode(mode)
        config = config or RetrievalConfig()
        rerank = config.rerank_config or RerankConfig()

        if rerank.enabled and not rerank.model_id:
            raise BadRequestError("Model ID must be specified when enabling rerank")

        if retrieval_mode is RetrievalMode.HYBRID:
            strategy = _parse_strategy(config.strategy or HybridStrategy.WEIGHTED_SCORE.value)
            if strategy is HybridStrategy.RERANK and not rerank.enabled:
                raise BadRequestError("Rerank must be enabled when using the rerank hybrid strategy")

            weights = config.weight_config or WeightConfig()
            total = weights.semantic_weight + weights.keyword_weight
            if abs(total - 1.0) > _WEIGHT_TOLERANCE:
                raise BadRequestError(
                    f"Semantic and keyword weights must sum to 1, got {total:.2f}"
                )
        else:
            strategy = HybridStrategy.WEIGHTED_SCORE
            weights = _FIXED_WEIGHTS[retrieval_mode]

        return config.model_copy(
            update={
                "retrieval_mode": retrieval_mode.value,
                "strategy": strategy.value,
                "weight_config": weights,
                "rerank_config": rerank,
            }
        )
