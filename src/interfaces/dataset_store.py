"""Abstract base class for the relational dataset store.

The store owns the Dataset / Document / Segment tables and exposes the two
search operators retrieval needs: cosine similarity over segment embeddings
and a tokenized text-rank query over segment content.

All coordination state lives here.  Services hold no in-process state
between calls, so every status transition and counter update is a store
call.  Dataset counters (``document_count``, ``chunk_count``,
``storage_size``) are always changed with in-database increments, never by
read-modify-write in Python.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.dataset import Dataset, Document, ProcessingStatus, Segment, StatusCounts
from src.models.retrieval import RankedChunk


# Concrete implementation: SQLiteDatasetStore (src/providers/store/)
class IDatasetStore(ABC):
    """Contract for dataset persistence and search."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if they do not exist.  Idempotent."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"sqlite_dataset_store"``."""

    # ------------------------------------------------------------------
    # Datasets
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_dataset(self, dataset: Dataset) -> Dataset:
        """Insert *dataset* and return it as stored."""

    @abstractmethod
    async def get_dataset(self, dataset_id: str) -> Dataset | None:
        """Return the dataset or ``None``."""

    @abstractmethod
    async def delete_dataset(self, dataset_id: str) -> bool:
        """Delete the dataset, cascading to its documents and segments."""

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_document(self, document: Document, segments: list[Segment]) -> Document:
        """Insert a document with its segments and bump the dataset counters.

        The inserts and the counter increments happen in one transaction.

        Raises
        ------
        src.utils.errors.NotFoundError
            If the owning dataset does not exist.
        """

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        """Return the document or ``None``."""

    @abstractmethod
    async def list_documents(self, dataset_id: str, document_id: str | None = None) -> list[Document]:
        """Return the dataset's documents, or just *document_id* when given."""

    @abstractmethod
    async def delete_document(self, document_id: str) -> Document | None:
        """Delete a document and its segments, decrementing dataset counters.

        Returns the deleted document, or ``None`` if it did not exist.
        ``storage_size`` never drops below zero.
        """

    @abstractmethod
    async def set_document_enabled(self, document_id: str, enabled: bool) -> bool:
        """Toggle retrieval visibility of a document.  Returns ``False`` if missing."""

    @abstractmethod
    async def update_document_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        progress: int,
        error: str | None = None,
    ) -> None:
        """Persist an aggregated document status."""

    @abstractmethod
    async def clear_document_errors(self, dataset_id: str, document_id: str | None = None) -> None:
        """Clear ``error`` on the documents in scope."""

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_segment(self, segment_id: str) -> Segment | None:
        """Return the segment (including its embedding) or ``None``."""

    @abstractmethod
    async def list_segments(self, document_id: str) -> list[Segment]:
        """Return a document's segments ordered by ``chunk_index``."""

    @abstractmethod
    async def get_pending_segments(
        self,
        dataset_id: str,
        document_id: str | None = None,
    ) -> list[Segment]:
        """Return pending segments in scope ordered by ``chunk_index``."""

    @abstractmethod
    async def claim_segments(self, segment_ids: list[str]) -> list[str]:
        """Move still-pending segments to ``processing``.

        Returns the ids that were actually claimed; rows another worker has
        already moved out of ``pending`` are left alone.
        """

    @abstractmethod
    async def save_embeddings(
        self,
        embeddings: dict[str, list[float]],
        embedding_model_id: str,
    ) -> None:
        """Store vectors, mark the segments completed and clear their errors."""

    @abstractmethod
    async def fail_segments(self, segment_ids: list[str], error: str) -> None:
        """Mark segments failed with *error* and drop any embedding."""

    @abstractmethod
    async def fail_unfinished_segments(
        self,
        dataset_id: str,
        document_id: str | None,
        error: str,
    ) -> int:
        """Mark pending/processing segments in scope failed.  Returns the row count."""

    @abstractmethod
    async def reset_failed_segments(self, dataset_id: str, document_id: str | None = None) -> int:
        """Flip failed segments in scope back to pending with errors cleared.

        Completed segments are untouched.  Returns the row count.
        """

    @abstractmethod
    async def count_segment_statuses(self, document_ids: list[str]) -> dict[str, StatusCounts]:
        """Return per-document status counts.  Documents without segments map to zeros."""

    @abstractmethod
    async def update_segment_content(self, segment_id: str, content: str) -> Segment | None:
        """Replace content, reset to pending and drop the embedding."""

    @abstractmethod
    async def set_segment_enabled(self, segment_id: str, enabled: bool) -> bool:
        """Toggle retrieval visibility of a segment.  Returns ``False`` if missing."""

    # ------------------------------------------------------------------
    # Search operators
    # ------------------------------------------------------------------

    @abstractmethod
    async def vector_search(
        self,
        dataset_id: str,
        query_embedding: list[float],
        limit: int,
        score_threshold: float | None = None,
    ) -> list[RankedChunk]:
        """Rank retrievable segments by ``1 - cosine_distance``.

        Only completed, enabled segments with an embedding whose document is
        enabled are considered.  Results are ordered by score descending,
        filtered by *score_threshold* when given and cut to *limit*.

        Raises
        ------
        src.utils.errors.RetrievalUnavailableError
            If the similarity operator cannot run.
        """

    @abstractmethod
    async def full_text_search(
        self,
        dataset_id: str,
        terms: list[str],
        limit: int,
    ) -> list[RankedChunk]:
        """Rank retrievable segments matching all *terms* by text rank.

        Scores are the raw rank in ``[0, 1)``; callers rescale them.

        Raises
        ------
        src.utils.errors.RetrievalUnavailableError
            If the text-rank operator is unavailable.
        """
