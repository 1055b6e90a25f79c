"""Retrieval result models.

``RankedChunk`` is ephemeral: it is produced per query and never persisted.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RankedChunk(BaseModel):
    """A segment returned by a query together with its score.

    ``score`` is cosine similarity for vector search, the rescaled rank for
    full-text search and the fused score for hybrid weighted search.
    ``relevance_score`` is only set when a rerank model scored the chunk.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    content: str
    score: float
    relevance_score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    chunk_index: int
    content_length: int
    file_name: str | None = None
    vector_score: float | None = None
    full_text_score: float | None = None
    sources: frozenset[str] | None = Field(
        default=None,
        description='Sub-searches that produced the chunk in hybrid mode ("vector", "full_text").',
    )


class RetrievalResult(BaseModel):
    """Ranked chunks for one query.  ``total_time`` is in milliseconds."""

    model_config = ConfigDict(frozen=True)

    chunks: list[RankedChunk]
    total_time: int


class RerankItem(BaseModel):
    """One entry of a rerank provider response."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0, description="Position of the document in the request.")
    relevance_score: float
