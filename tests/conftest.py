"""Shared pytest fixtures for the kbForge test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.job_queue import IJobHandle
from src.interfaces.model_registry import IModelRegistry
from src.interfaces.rerank_provider import IRerankProvider
from src.models.dataset import Dataset, Document, Segment
from src.models.retrieval import RankedChunk
from src.models.vectorization import AIModel, ModelType
from src.providers.store.sqlite_dataset_store import SQLiteDatasetStore

# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_model(
    model_id: str = "embed-1",
    model_type: ModelType = ModelType.TEXT_EMBEDDING,
    **overrides: Any,
) -> AIModel:
    defaults: dict[str, Any] = {
        "id": model_id,
        "model": "text-embedding-3-small",
        "model_type": model_type,
        "base_url": "https://api.example.test/v1",
        "api_key": "sk-test",
    }
    defaults.update(overrides)
    return AIModel(**defaults)


def make_dataset(dataset_id: str = "ds-1", **overrides: Any) -> Dataset:
    defaults: dict[str, Any] = {
        "id": dataset_id,
        "name": "handbook",
        "embedding_model_id": "embed-1",
    }
    defaults.update(overrides)
    return Dataset(**defaults)


def make_document(
    document_id: str = "doc-1",
    dataset_id: str = "ds-1",
    **overrides: Any,
) -> Document:
    defaults: dict[str, Any] = {
        "id": document_id,
        "dataset_id": dataset_id,
        "file_id": f"file-{document_id}",
        "file_name": f"{document_id}.txt",
        "file_type": "TXT",
        "file_size": 100,
    }
    defaults.update(overrides)
    return Document(**defaults)


def make_segment(
    segment_id: str,
    document_id: str = "doc-1",
    dataset_id: str = "ds-1",
    chunk_index: int = 0,
    content: str | None = None,
    **overrides: Any,
) -> Segment:
    text = content if content is not None else f"segment {segment_id} text"
    defaults: dict[str, Any] = {
        "id": segment_id,
        "document_id": document_id,
        "dataset_id": dataset_id,
        "content": text,
        "chunk_index": chunk_index,
        "content_length": len(text),
    }
    defaults.update(overrides)
    return Segment(**defaults)


def make_chunk(chunk_id: str, score: float, **overrides: Any) -> RankedChunk:
    defaults: dict[str, Any] = {
        "id": chunk_id,
        "document_id": "doc-1",
        "content": f"content of {chunk_id}",
        "score": score,
        "chunk_index": 0,
        "content_length": 20,
    }
    defaults.update(overrides)
    return RankedChunk(**defaults)


class RecordingJobHandle(IJobHandle):
    """Job handle that remembers every progress value it was given."""

    def __init__(self) -> None:
        self.values: list[int] = []

    async def progress(self, percent: int) -> None:
        self.values.append(percent)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def store(tmp_path: Path) -> SQLiteDatasetStore:
    """A freshly initialized SQLite dataset store in a temp directory."""
    s = SQLiteDatasetStore(db_path=tmp_path / "kbforge-test.db")
    await s.initialize()
    return s


@pytest.fixture
def embedding_provider() -> MagicMock:
    """Embedding provider returning a fixed 3-dim vector per input text."""
    provider = MagicMock(spec=IEmbeddingProvider)
    provider.embed = AsyncMock(side_effect=lambda texts: [[1.0, 0.0, 0.0] for _ in texts])
    provider.embed_single = AsyncMock(return_value=[1.0, 0.0, 0.0])
    provider.get_provider_name.return_value = "mock_embedding"
    return provider


@pytest.fixture
def rerank_provider() -> MagicMock:
    provider = MagicMock(spec=IRerankProvider)
    provider.rerank = AsyncMock(return_value=[])
    provider.get_provider_name.return_value = "mock_rerank"
    return provider


@pytest.fixture
def registry(embedding_provider: MagicMock, rerank_provider: MagicMock) -> MagicMock:
    """Model registry that knows one embedding model and one rerank model."""
    models = {
        ("embed-1", ModelType.TEXT_EMBEDDING): make_model(),
        ("rerank-1", ModelType.RERANK): make_model(
            "rerank-1", ModelType.RERANK, model="bge-reranker"
        ),
    }

    async def _get_active_model(model_id: str | None, model_type: ModelType) -> AIModel | None:
        return models.get((model_id, model_type))

    reg = MagicMock(spec=IModelRegistry)
    reg.get_active_model = AsyncMock(side_effect=_get_active_model)
    reg.create_embedding_provider.return_value = embedding_provider
    reg.create_rerank_provider.return_value = rerank_provider
    reg.get_provider_name.return_value = "mock_registry"
    return reg


@pytest.fixture
def job_handle() -> RecordingJobHandle:
    return RecordingJobHandle()

