"""Vectorization job, model registry and result models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.models.dataset import ProcessingStatus


class VectorizationJobType(str, Enum):  # noqa: UP042
    """Scope of a vectorization job."""

    DATASET = "dataset"
    DOCUMENT = "document"


class VectorizationParams(BaseModel):
    """Job payload.  ``document_id`` narrows the scope to one document."""

    model_config = ConfigDict(frozen=True)

    dataset_id: str
    document_id: str | None = None


class VectorizationResult(BaseModel):
    """Summary of one vectorization run.  ``processing_time`` is in milliseconds."""

    model_config = ConfigDict(frozen=True)

    success: bool
    total_segments: int = 0
    success_count: int = 0
    failure_count: int = 0
    processing_time: int = 0
    final_status: ProcessingStatus | None = Field(
        default=None,
        description="Aggregated status of the document for document-scoped jobs.",
    )


class JobOptions(BaseModel):
    """Retry policy attached to an enqueued vectorization job."""

    model_config = ConfigDict(frozen=True)

    attempts: int = Field(default=3, ge=1)
    backoff_delay_ms: int = Field(default=2000, ge=0, description="First retry delay; doubles each attempt.")


class ModelType(str, Enum):  # noqa: UP042
    TEXT_EMBEDDING = "text-embedding"
    RERANK = "rerank"


class AIModel(BaseModel):
    """A model record from the model registry.

    ``max_chunks`` caps how many texts one embedding call may carry;
    ``dimension`` is the declared embedding size, checked against responses
    when set.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    model: str
    model_type: ModelType
    is_active: bool = True
    base_url: str = ""
    api_key: str = Field(default="", repr=False)
    max_chunks: int | None = Field(default=None, ge=1)
    dimension: int | None = Field(default=None, ge=1)


class ErrorCategory(str, Enum):  # noqa: UP042
    """Classification of embedding failures, used for logging and retry decisions."""

    RATE_LIMIT = "rate_limit"
    AUTH_FAILED = "auth_failed"
    MODEL_NOT_FOUND = "model_not_found"
    INVALID_INPUT = "invalid_input"
    TRANSIENT = "transient"
    FATAL = "fatal"


class JobState(str, Enum):  # noqa: UP042
    """Lifecycle of a job inside the in-process queue."""

    WAITING = "waiting"
    ACTIVE = "active"
    DELAYED = "delayed"
    COMPLETED = "completed"
    FAILED = "failed"


class JobInfo(BaseModel):
    """Snapshot of a queued vectorization job."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    job_type: VectorizationJobType
    params: VectorizationParams
    state: JobState = JobState.WAITING
    progress: int = Field(default=0, ge=0, le=100)
    attempts_made: int = 0
    error: str | None = None
    result: VectorizationResult | None = None
