"""Dataset, document and segment models for the kbForge knowledge base.

Defines the persisted entities and the structured configuration stored on a
dataset row.  All models are frozen Pydantic v2 models; updated copies are
produced with ``model_copy(update={...})``.

Ownership:
    Dataset --(cascade)--> Document --(cascade)--> Segment

State machine:
    Segment.status   pending -> processing -> completed | failed
                     failed  -> pending            (explicit reset)
                     completed -> pending          (content edited)
    Document.status  aggregated from its segments by the vectorization
                     worker (see src/services/vectorization/status.py).

Invariant: ``segment.embedding is not None`` iff ``segment.status == completed``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ProcessingStatus(str, Enum):  # noqa: UP042
    """Status values shared by segments and documents.

    ``ERROR`` is only ever set on documents: it marks partial failure, where
    some segments completed and others failed.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    ERROR = "error"


class RetrievalMode(str, Enum):  # noqa: UP042
    """How a dataset answers queries."""

    VECTOR = "vector"
    FULL_TEXT = "fullText"
    HYBRID = "hybrid"


class HybridStrategy(str, Enum):  # noqa: UP042
    """How hybrid retrieval combines its two candidate lists."""

    WEIGHTED_SCORE = "weighted_score"
    RERANK = "rerank"


class DocumentMode(str, Enum):  # noqa: UP042
    """Segmentation mode: flat segments or parent blocks with child segments."""

    NORMAL = "normal"
    HIERARCHICAL = "hierarchical"


class ParentContextMode(str, Enum):  # noqa: UP042
    """Where hierarchical parents come from: the whole text or length-bounded paragraphs."""

    FULL_TEXT = "fullText"
    PARAGRAPH = "paragraph"


# ---------------------------------------------------------------------------
# Configuration value objects
# ---------------------------------------------------------------------------
class WeightConfig(BaseModel):
    """Weights for hybrid weighted_score fusion.  Must sum to 1 (±0.01)."""

    model_config = ConfigDict(frozen=True)

    semantic_weight: float = Field(default=0.7, ge=0.0, le=1.0)
    keyword_weight: float = Field(default=0.3, ge=0.0, le=1.0)


class RerankConfig(BaseModel):
    """Rerank settings.  ``model_id`` references a registry model of type rerank."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    model_id: str | None = None


class RetrievalConfig(BaseModel):
    """Retrieval settings persisted on a dataset or supplied per query.

    ``retrieval_mode`` and ``strategy`` are kept as plain strings so that a
    stored value the engine does not recognise surfaces as a BadRequestError
    from the dispatcher rather than a row that cannot be loaded.
    """

    model_config = ConfigDict(frozen=True)

    retrieval_mode: str | None = Field(
        default=None,
        description="Overrides the dataset's retrieval mode when set (vector, fullText, hybrid).",
    )
    top_k: int = Field(default=3, ge=1, description="Maximum number of chunks returned.")
    score_threshold: float = Field(default=0.5, description="Minimum score when enabled.")
    score_threshold_enabled: bool = False
    weight_config: WeightConfig | None = None
    rerank_config: RerankConfig | None = None
    strategy: str = Field(
        default=HybridStrategy.WEIGHTED_SCORE.value,
        description="Hybrid strategy: weighted_score or rerank.",
    )


class SegmentationConfig(BaseModel):
    """Delimiter and window settings for the segmenter.

    ``segment_identifier`` may contain the literal escape sequences
    ``\\n``, ``\\t`` and ``\\r``; they are resolved before splitting.
    """

    model_config = ConfigDict(frozen=True)

    segment_identifier: str = Field(default="\\n\\n", min_length=1)
    max_segment_length: int = Field(default=500, ge=1)
    segment_overlap: int = Field(default=50, ge=0)


class PreprocessingRules(BaseModel):
    """Optional text clean-up applied to every emitted chunk."""

    model_config = ConfigDict(frozen=True)

    replace_consecutive_whitespace: bool = False
    remove_urls_and_emails: bool = False


class IndexingConfig(BaseModel):
    """Segmentation settings persisted on a dataset."""

    model_config = ConfigDict(frozen=True)

    document_mode: DocumentMode = DocumentMode.NORMAL
    segmentation: SegmentationConfig = Field(default_factory=SegmentationConfig)
    parent_context_mode: ParentContextMode | None = None
    sub_segmentation: SegmentationConfig | None = None
    preprocessing_rules: PreprocessingRules | None = None


# ---------------------------------------------------------------------------
# Persisted entities
# ---------------------------------------------------------------------------
class Dataset(BaseModel):
    """A knowledge base: documents, segments and how they are retrieved."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    retrieval_mode: str = RetrievalMode.VECTOR.value
    retrieval_config: RetrievalConfig = Field(default_factory=RetrievalConfig)
    indexing_config: IndexingConfig = Field(default_factory=IndexingConfig)
    embedding_model_id: str | None = None
    document_count: int = Field(default=0, ge=0)
    chunk_count: int = Field(default=0, ge=0)
    storage_size: int = Field(default=0, ge=0)


class Document(BaseModel):
    """One ingested file inside a dataset."""

    model_config = ConfigDict(frozen=True)

    id: str
    dataset_id: str
    file_id: str
    file_name: str = ""
    file_type: str = ""
    file_size: int = 0
    status: ProcessingStatus = ProcessingStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    chunk_count: int = 0
    character_count: int = 0
    embedding_model_id: str | None = None
    error: str | None = None
    enabled: bool = True


class Segment(BaseModel):
    """The atomic retrievable unit of document text."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    dataset_id: str
    content: str
    chunk_index: int = Field(ge=0)
    content_length: int = Field(default=0, ge=0)
    children: list[str] | None = Field(
        default=None,
        description="Child segment texts when the dataset uses hierarchical mode.",
    )
    embedding: list[float] | None = None
    vector_dimension: int | None = None
    embedding_model_id: str | None = None
    status: ProcessingStatus = ProcessingStatus.PENDING
    error: str | None = None
    enabled: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)


class StatusCounts(BaseModel):
    """Per-status segment counts for one document."""

    model_config = ConfigDict(frozen=True)

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.processing + self.completed + self.failed
