"""Abstract base class for rerank providers.

A rerank model scores (query, document) pairs and returns the documents'
positions ordered by relevance.  The retrieval engine uses it to refine a
candidate pool produced by vector and/or full-text search.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.retrieval import RerankItem


# Concrete implementation: HTTPRerankProvider (src/providers/rerank/)
class IRerankProvider(ABC):
    """Contract for rerank services."""

    @abstractmethod
    async def rerank(
        self,
        query: str,
        documents: list[str],
        top_n: int,
    ) -> list[RerankItem]:
        """Score *documents* against *query*.

        Parameters
        ----------
        query:
            The user query.
        documents:
            Candidate texts.  ``RerankItem.index`` refers to positions in
            this list.
        top_n:
            Maximum number of items the provider should return.

        Returns
        -------
        list[RerankItem]
            Scored items in provider order (callers sort them).

        Raises
        ------
        src.utils.errors.RerankError
            If the provider call fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"http_rerank"``."""
