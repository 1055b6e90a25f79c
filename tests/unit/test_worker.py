"""Unit tests for VectorizationQueueWorker.

Runs against a real temp-file SQLite store so segment and document state
transitions are checked end to end; the embedding provider is mocked.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.dataset import ProcessingStatus
from src.models.vectorization import VectorizationJobType, VectorizationParams
from src.providers.store.sqlite_dataset_store import SQLiteDatasetStore
from src.services.vectorization.worker import VectorizationQueueWorker
from src.utils.errors import BadRequestError, EmbeddingError, ModelUnavailableError, NotFoundError
from tests.conftest import (
    RecordingJobHandle,
    make_dataset,
    make_document,
    make_model,
    make_segment,
)


async def _seed(
    store: SQLiteDatasetStore,
    segment_count: int,
    document_id: str = "doc-1",
    create_dataset: bool = True,
    **dataset_overrides,
) -> None:
    if create_dataset:
        await store.create_dataset(make_dataset(**dataset_overrides))
    segments = [
        make_segment(f"{document_id}-s{i}", document_id=document_id, chunk_index=i)
        for i in range(segment_count)
    ]
    await store.create_document(make_document(document_id), segments)


def _document_job(document_id: str = "doc-1") -> tuple[VectorizationJobType, VectorizationParams]:
    return VectorizationJobType.DOCUMENT, VectorizationParams(dataset_id="ds-1", document_id=document_id)


# ======================================================================
# Batching
# ======================================================================


class TestBatching:
    @pytest.mark.asyncio
    async def test_ceil_n_over_b_provider_calls(
        self,
        store: SQLiteDatasetStore,
        registry: MagicMock,
        embedding_provider: MagicMock,
        job_handle: RecordingJobHandle,
    ) -> None:
        await _seed(store, 25)
        worker = VectorizationQueueWorker(store, registry, batch_size=10)

        result = await worker.process_vectorization(*_document_job(), job_handle)

        assert embedding_provider.embed.await_count == 3
        assert [len(c.args[0]) for c in embedding_provider.embed.await_args_list] == [10, 10, 5]
        assert result.success is True
        assert result.total_segments == 25
        assert result.success_count == 25
        assert result.final_status == ProcessingStatus.COMPLETED

        document = await store.get_document("doc-1")
        assert document.status == ProcessingStatus.COMPLETED
        assert document.progress == 100
        assert document.error is None
        segments = await store.list_segments("doc-1")
        assert all(s.status == ProcessingStatus.COMPLETED for s in segments)
        assert all(s.embedding == [1.0, 0.0, 0.0] for s in segments)
        assert all(s.embedding_model_id == "embed-1" for s in segments)

    @pytest.mark.asyncio
    async def test_model_max_chunks_lowers_batch_size(
        self,
        store: SQLiteDatasetStore,
        registry: MagicMock,
        embedding_provider: MagicMock,
        job_handle: RecordingJobHandle,
    ) -> None:
        await _seed(store, 4)
        registry.get_active_model = AsyncMock(return_value=make_model(max_chunks=1))
        worker = VectorizationQueueWorker(store, registry, batch_size=10)

        await worker.process_vectorization(*_document_job(), job_handle)

        assert embedding_provider.embed.await_count == 4

    @pytest.mark.asyncio
    async def test_segments_embedded_in_chunk_order(
        self,
        store: SQLiteDatasetStore,
        registry: MagicMock,
        embedding_provider: MagicMock,
        job_handle: RecordingJobHandle,
    ) -> None:
        await _seed(store, 3)
        await VectorizationQueueWorker(store, registry).process_vectorization(
            *_document_job(), job_handle
        )
        texts = embedding_provider.embed.await_args.args[0]
        assert texts == ["segment doc-1-s0 text", "segment doc-1-s1 text", "segment doc-1-s2 text"]

    @pytest.mark.asyncio
    async def test_progress_milestones(
        self,
        store: SQLiteDatasetStore,
        registry: MagicMock,
        job_handle: RecordingJobHandle,
    ) -> None:
        await _seed(store, 4)
        worker = VectorizationQueueWorker(store, registry, batch_size=2)

        await worker.process_vectorization(*_document_job(), job_handle)

        assert job_handle.values == [10, 20, 30, 40, 65, 90, 90, 100]
        assert job_handle.values == sorted(job_handle.values)

    @pytest.mark.asyncio
    async def test_nothing_pending(
        self,
        store: SQLiteDatasetStore,
        registry: MagicMock,
        embedding_provider: MagicMock,
        job_handle: RecordingJobHandle,
    ) -> None:
        await _seed(store, 0)
        result = await VectorizationQueueWorker(store, registry).process_vectorization(
            *_document_job(), job_handle
        )
        assert result.success is True
        assert result.total_segments == 0
        embedding_provider.embed.assert_not_awaited()
        assert job_handle.values[-1] == 100

    @pytest.mark.asyncio
    async def test_dataset_job_covers_every_document(
        self,
        store: SQLiteDatasetStore,
        registry: MagicMock,
        job_handle: RecordingJobHandle,
    ) -> None:
        await _seed(store, 2, document_id="doc-1")
        await _seed(store, 3, document_id="doc-2", create_dataset=False)

        result = await VectorizationQueueWorker(store, registry).process_vectorization(
            VectorizationJobType.DATASET, VectorizationParams(dataset_id="ds-1"), job_handle
        )

        assert result.total_segments == 5
        assert result.final_status is None
        for doc_id in ("doc-1", "doc-2"):
            assert (await store.get_document(doc_id)).status == ProcessingStatus.COMPLETED


# ======================================================================
# Failures
# ======================================================================


class TestFailures:
    @pytest.mark.asyncio
    async def test_failed_batch_does_not_stop_job(
        self,
        store: SQLiteDatasetStore,
        registry: MagicMock,
        embedding_provider: MagicMock,
        job_handle: RecordingJobHandle,
    ) -> None:
        await _seed(store, 4)
        embedding_provider.embed = AsyncMock(
            side_effect=[[[0.1, 0.2, 0.3]] * 2, EmbeddingError("Rate limit exceeded")]
        )
        worker = VectorizationQueueWorker(store, registry, batch_size=2)

        result = await worker.process_vectorization(*_document_job(), job_handle)

        assert result.success is False
        assert result.success_count == 2
        assert result.failure_count == 2
        assert result.final_status == ProcessingStatus.ERROR

        statuses = [s.status for s in await store.list_segments("doc-1")]
        assert statuses == [
            ProcessingStatus.COMPLETED,
            ProcessingStatus.COMPLETED,
            ProcessingStatus.FAILED,
            ProcessingStatus.FAILED,
        ]
        failed = (await store.list_segments("doc-1"))[3]
        assert failed.error == "Rate limit exceeded"
        assert failed.embedding is None

        document = await store.get_document("doc-1")
        assert document.status == ProcessingStatus.ERROR
        assert document.progress == 50
        assert document.error == "2 of 4 segments failed to vectorize"

    @pytest.mark.asyncio
    async def test_invalid_embeddings_fail_the_batch(
        self,
        store: SQLiteDatasetStore,
        registry: MagicMock,
        embedding_provider: MagicMock,
        job_handle: RecordingJobHandle,
    ) -> None:
        await _seed(store, 2)
        embedding_provider.embed = AsyncMock(return_value=[[0.1, 0.2]])

        result = await VectorizationQueueWorker(store, registry).process_vectorization(
            *_document_job(), job_handle
        )

        assert result.failure_count == 2
        document = await store.get_document("doc-1")
        assert document.status == ProcessingStatus.FAILED
        assert document.progress == 0

    @pytest.mark.asyncio
    async def test_missing_model_fails_unfinished_and_reraises(
        self,
        store: SQLiteDatasetStore,
        registry: MagicMock,
        job_handle: RecordingJobHandle,
    ) -> None:
        await _seed(store, 3, embedding_model_id="retired-model")
        worker = VectorizationQueueWorker(store, registry)

        with pytest.raises(ModelUnavailableError):
            await worker.process_vectorization(*_document_job(), job_handle)

        segments = await store.list_segments("doc-1")
        assert all(s.status == ProcessingStatus.FAILED for s in segments)
        document = await store.get_document("doc-1")
        assert document.status == ProcessingStatus.FAILED
        assert "No available embedding model" in document.error

    @pytest.mark.asyncio
    async def test_missing_dataset(
        self, store: SQLiteDatasetStore, registry: MagicMock, job_handle: RecordingJobHandle
    ) -> None:
        with pytest.raises(NotFoundError):
            await VectorizationQueueWorker(store, registry).process_vectorization(
                VectorizationJobType.DATASET, VectorizationParams(dataset_id="nope"), job_handle
            )

    @pytest.mark.asyncio
    async def test_document_job_requires_document_id(
        self, store: SQLiteDatasetStore, registry: MagicMock, job_handle: RecordingJobHandle
    ) -> None:
        with pytest.raises(BadRequestError):
            await VectorizationQueueWorker(store, registry).process_vectorization(
                VectorizationJobType.DOCUMENT, VectorizationParams(dataset_id="ds-1"), job_handle
            )
        assert job_handle.values == []

    @pytest.mark.asyncio
    async def test_progress_100_only_with_completed(
        self,
        store: SQLiteDatasetStore,
        registry: MagicMock,
        embedding_provider: MagicMock,
        job_handle: RecordingJobHandle,
    ) -> None:
        await _seed(store, 3)
        embedding_provider.embed = AsyncMock(
            side_effect=[[[1.0, 0.0, 0.0]] * 2, RuntimeError("connection reset")]
        )
        await VectorizationQueueWorker(store, registry, batch_size=2).process_vectorization(
            *_document_job(), job_handle
        )
        document = await store.get_document("doc-1")
        assert document.status == ProcessingStatus.ERROR
        assert document.progress == 66


# ======================================================================
# Reset
# ======================================================================


class TestResetVectorizationStatus:
    @pytest.mark.asyncio
    async def test_reset_then_rerun_reprocesses_only_failed(
        self,
        store: SQLiteDatasetStore,
        registry: MagicMock,
        embedding_provider: MagicMock,
        job_handle: RecordingJobHandle,
    ) -> None:
        await _seed(store, 4)
        embedding_provider.embed = AsyncMock(
            side_effect=[[[1.0, 0.0, 0.0]] * 2, EmbeddingError("Request timed out")]
        )
        worker = VectorizationQueueWorker(store, registry, batch_size=2)
        await worker.process_vectorization(*_document_job(), job_handle)

        reset = await worker.reset_vectorization_status("ds-1", "doc-1")

        assert reset == 2
        statuses = [s.status for s in await store.list_segments("doc-1")]
        assert statuses.count(ProcessingStatus.COMPLETED) == 2
        assert statuses.count(ProcessingStatus.PENDING) == 2
        document = await store.get_document("doc-1")
        assert document.status == ProcessingStatus.PENDING
        assert document.progress == 50
        assert document.error is None

        embedding_provider.embed = AsyncMock(side_effect=lambda texts: [[0.0, 1.0, 0.0] for _ in texts])
        result = await worker.process_vectorization(*_document_job(), RecordingJobHandle())

        assert result.total_segments == 2
        assert embedding_provider.embed.await_args.args[0] == [
            "segment doc-1-s2 text",
            "segment doc-1-s3 text",
        ]
        assert (await store.get_document("doc-1")).status == ProcessingStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_reset_is_idempotent(
        self, store: SQLiteDatasetStore, registry: MagicMock, job_handle: RecordingJobHandle
    ) -> None:
        await _seed(store, 2)
        worker = VectorizationQueueWorker(store, registry)
        await worker.process_vectorization(*_document_job(), job_handle)

        assert await worker.reset_vectorization_status("ds-1") == 0
        assert await worker.reset_vectorization_status("ds-1") == 0
        document = await store.get_document("doc-1")
        assert document.status == ProcessingStatus.COMPLETED
        assert document.progress == 100
