"""Unit tests for RerankHelper: ordering, thresholds and fallback."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.retrieval import RerankItem
from src.services.retrieval.rerank import RerankHelper
from src.utils.errors import ModelUnavailableError, RerankError
from tests.conftest import make_chunk


def _candidates() -> list:
    return [make_chunk("A", 0.9), make_chunk("B", 0.6), make_chunk("C", 0.3)]


class TestRerankHelper:
    @pytest.mark.asyncio
    async def test_reorders_by_relevance(self, registry: MagicMock, rerank_provider: MagicMock) -> None:
        rerank_provider.rerank = AsyncMock(
            return_value=[
                RerankItem(index=2, relevance_score=0.95),
                RerankItem(index=0, relevance_score=0.40),
                RerankItem(index=1, relevance_score=0.10),
            ]
        )
        result = await RerankHelper(registry).rerank("q", _candidates(), "rerank-1", 2, 0.5, False)

        assert [c.id for c in result] == ["C", "A"]
        assert result[0].relevance_score == 0.95
        assert result[0].score == 0.3
        rerank_provider.rerank.assert_awaited_once_with(
            "q", ["content of A", "content of B", "content of C"], top_n=2
        )

    @pytest.mark.asyncio
    async def test_threshold_applies_to_relevance(
        self, registry: MagicMock, rerank_provider: MagicMock
    ) -> None:
        rerank_provider.rerank = AsyncMock(
            return_value=[
                RerankItem(index=0, relevance_score=0.7),
                RerankItem(index=1, relevance_score=0.2),
            ]
        )
        result = await RerankHelper(registry).rerank("q", _candidates(), "rerank-1", 3, 0.5, True)
        assert [c.id for c in result] == ["A"]

    @pytest.mark.asyncio
    async def test_out_of_range_index_skipped(
        self, registry: MagicMock, rerank_provider: MagicMock
    ) -> None:
        rerank_provider.rerank = AsyncMock(
            return_value=[RerankItem(index=9, relevance_score=0.9), RerankItem(index=1, relevance_score=0.5)]
        )
        result = await RerankHelper(registry).rerank("q", _candidates(), "rerank-1", 3, 0.0, False)
        assert [c.id for c in result] == ["B"]

    @pytest.mark.asyncio
    async def test_empty_input_skips_provider(
        self, registry: MagicMock, rerank_provider: MagicMock
    ) -> None:
        assert await RerankHelper(registry).rerank("q", [], "rerank-1", 3, 0.0, False) == []
        rerank_provider.rerank.assert_not_awaited()
        registry.get_active_model.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_model_raises(self, registry: MagicMock) -> None:
        with pytest.raises(ModelUnavailableError, match="missing-model"):
            await RerankHelper(registry).rerank("q", _candidates(), "missing-model", 3, 0.0, False)

    @pytest.mark.asyncio
    async def test_provider_failure_falls_back(
        self, registry: MagicMock, rerank_provider: MagicMock
    ) -> None:
        rerank_provider.rerank = AsyncMock(side_effect=RerankError("service down"))
        result = await RerankHelper(registry).rerank("q", _candidates(), "rerank-1", 2, 0.5, True)
        assert [c.id for c in result] == ["A", "B"]
        assert all(c.relevance_score is None for c in result)

    @pytest.mark.asyncio
    async def test_fallback_without_threshold_truncates(
        self, registry: MagicMock, rerank_provider: MagicMock
    ) -> None:
        rerank_provider.rerank = AsyncMock(side_effect=TimeoutError())
        result = await RerankHelper(registry).rerank("q", _candidates(), "rerank-1", 1, 0.99, False)
        assert [c.id for c in result] == ["A"]
