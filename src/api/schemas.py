"""Pydantic request/response schemas for the kbForge API.

Domain models (``Dataset``, ``Document``, ``RetrievalResult``,
``IndexSegmentsResult`` ...) are returned as-is; the classes here only
cover request bodies and the few responses that have no domain model.

Convention: request schemas end with "Request", response schemas end with
"Response".
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from src.models.dataset import Document, IndexingConfig, RetrievalConfig, RetrievalMode


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None


class HealthResponse(BaseModel):
    """Application health and the providers wired at startup."""

    status: str
    version: str
    providers: dict[str, str] = Field(default_factory=dict)


class CreateDatasetRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    embedding_model_id: str | None = None
    retrieval_mode: str = RetrievalMode.VECTOR.value
    retrieval_config: RetrievalConfig | None = None
    indexing_config: IndexingConfig | None = None


class FileUploadResponse(BaseModel):
    """The stored file's id, to be passed to indexing endpoints."""

    file_id: str
    name: str
    size: int
    extension: str


class CreateDocumentsRequest(BaseModel):
    file_ids: list[str] = Field(..., min_length=1)
    vectorize: bool = Field(default=True, description="Enqueue a vectorization job per document.")


class DocumentListResponse(BaseModel):
    documents: list[Document]


class SetEnabledRequest(BaseModel):
    enabled: bool


class UpdateSegmentRequest(BaseModel):
    content: str = Field(..., min_length=1)


class VectorizeRequest(BaseModel):
    """Vectorize a whole dataset, or only one document when ``document_id`` is set."""

    document_id: str | None = None


class VectorizeResponse(BaseModel):
    job_id: str


class ResetVectorizationResponse(BaseModel):
    reset_count: int = Field(description="Number of failed segments flipped back to pending.")


class QueryRequest(BaseModel):
    """A retrieval query; ``config`` overrides the dataset's stored config."""

    query: str = Field(..., min_length=1, max_length=2000)
    config: RetrievalConfig | None = None
