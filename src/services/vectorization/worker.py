"""Vectorization worker: pending segments in, embeddings and statuses out.

One call to :meth:`VectorizationQueueWorker.process_vectorization` handles
one job scoped to a whole dataset or a single document:

    progress 10  resolve the dataset's active embedding model
    progress 20  build the embedding client
    progress 30  load pending segments ordered by chunk_index
    progress 40  embed in batches; 40..90 scaled across batches
    progress 90  recompute document statuses
    progress 100 done

Each batch is claimed (pending -> processing), embedded with one provider
call, validated and stored (-> completed).  A failing batch is marked
failed with the error message and the loop moves on to the next batch, so
one bad batch never sinks the job.  Only setup problems (missing dataset,
missing or inactive model) and store failures abort the job; in that case
every unfinished segment in scope is marked failed, documents are updated
with the message, and the exception is re-raised for the queue to record.

The worker keeps no state between calls.  At most one worker per document
is expected at a time; :meth:`IDatasetStore.claim_segments` only moves rows
that are still pending, so a racing worker cannot double-claim a segment.
"""

from __future__ import annotations

import time

import structlog

from src.interfaces.dataset_store import IDatasetStore
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.job_queue import IJobHandle
from src.interfaces.model_registry import IModelRegistry
from src.models.dataset import ProcessingStatus, Segment, StatusCounts
from src.models.vectorization import (
    AIModel,
    ModelType,
    VectorizationJobType,
    VectorizationParams,
    VectorizationResult,
)
from src.services.vectorization.embedding_checks import (
    classify_embedding_error,
    is_retryable,
    validate_embeddings,
)
from src.services.vectorization.status import compute_document_status
from src.utils.errors import BadRequestError, KBForgeError, ModelUnavailableError, NotFoundError
from src.utils.logging import bound_context

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_BATCH_SIZE = 10

# Coarse progress milestones reported to the job handle.
_PROGRESS_START = 10
_PROGRESS_MODEL_RESOLVED = 20
_PROGRESS_CLIENT_READY = 30
_PROGRESS_BATCHES_START = 40
_PROGRESS_BATCHES_SPAN = 50
_PROGRESS_BATCHES_DONE = 90
_PROGRESS_DONE = 100


def _error_message(exc: BaseException) -> str:
    return exc.message if isinstance(exc, KBForgeError) else str(exc)


class VectorizationQueueWorker:
    """Consumes vectorization jobs and drives the segment state machine.

    Parameters
    ----------
    store:
        Dataset persistence.
    registry:
        Resolves the dataset's embedding model and builds its client.
    batch_size:
        Upper bound on segments per embedding call.  A model's
        ``max_chunks`` can lower it, never raise it.
    """

    def __init__(
        self,
        store: IDatasetStore,
        registry: IModelRegistry,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self._store = store
        self._registry = registry
        self._batch_size = max(1, batch_size)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_vectorization(
        self,
        job_type: VectorizationJobType,
        params: VectorizationParams,
        job: IJobHandle,
    ) -> VectorizationResult:
        """Vectorize every pending segment in the job's scope.

        Raises
        ------
        NotFoundError
            If the dataset does not exist.
        ModelUnavailableError
            If the dataset's embedding model is missing or inactive.
        BadRequestError
            If a document job has no ``document_id``.
        """
        if job_type == VectorizationJobType.DOCUMENT and not params.document_id:
            raise BadRequestError("Document vectorization requires a document_id")

        dataset_id, document_id = params.dataset_id, params.document_id
        scope = f"{job_type.value}:{document_id or dataset_id}"
        start = time.perf_counter()

        with bound_context(job_scope=scope):
            logger.info("vectorization_started", dataset_id=dataset_id, document_id=document_id)
            try:
                await job.progress(_PROGRESS_START)
                model = await self._resolve_model(dataset_id)
                await job.progress(_PROGRESS_MODEL_RESOLVED)

                provider = self._registry.create_embedding_provider(model)
                await job.progress(_PROGRESS_CLIENT_READY)

                segments = await self._store.get_pending_segments(dataset_id, document_id)
                if not segments:
                    logger.info("vectorization_nothing_pending")
                    await job.progress(_PROGRESS_DONE)
                    return VectorizationResult(
                        success=True,
                        processing_time=self._elapsed_ms(start),
                        final_status=await self._document_status(document_id),
                    )

                await job.progress(_PROGRESS_BATCHES_START)
                success_count, failure_count = await self._process_batches(
                    segments, provider, model, job
                )

                await self._refresh_documents(dataset_id, document_id)
                await job.progress(_PROGRESS_DONE)
            except Exception as exc:
                message = _error_message(exc)
                logger.error("vectorization_failed", error=message, error_type=type(exc).__name__)
                failed = await self._store.fail_unfinished_segments(dataset_id, document_id, message)
                await self._refresh_documents(dataset_id, document_id, error=message)
                logger.info("unfinished_segments_failed", count=failed)
                raise

            result = VectorizationResult(
                success=failure_count == 0,
                total_segments=len(segments),
                success_count=success_count,
                failure_count=failure_count,
                processing_time=self._elapsed_ms(start),
                final_status=await self._document_status(document_id),
            )
            logger.info(
                "vectorization_complete",
                total=result.total_segments,
                succeeded=result.success_count,
                failed=result.failure_count,
                processing_time_ms=result.processing_time,
            )
            return result

    async def reset_vectorization_status(self, dataset_id: str, document_id: str | None = None) -> int:
        """Flip failed segments in scope back to pending so they can be retried.

        Completed segments are untouched, so calling this repeatedly is
        safe.  Documents that had failed segments go back to ``pending``
        and every document in scope has its error cleared.

        Returns
        -------
        int
            Number of segments reset.
        """
        documents = await self._store.list_documents(dataset_id, document_id)
        before = await self._store.count_segment_statuses([d.id for d in documents])

        reset = await self._store.reset_failed_segments(dataset_id, document_id)
        await self._store.clear_document_errors(dataset_id, document_id)

        for doc_id, counts in before.items():
            if counts.failed == 0:
                continue
            progress = counts.completed * 100 // counts.total
            await self._store.update_document_status(doc_id, ProcessingStatus.PENDING, progress)

        logger.info(
            "vectorization_status_reset",
            dataset_id=dataset_id,
            document_id=document_id,
            segments=reset,
        )
        return reset

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _resolve_model(self, dataset_id: str) -> AIModel:
        dataset = await self._store.get_dataset(dataset_id)
        if dataset is None:
            raise NotFoundError(f"Dataset not found: {dataset_id}")

        model = await self._registry.get_active_model(
            dataset.embedding_model_id, ModelType.TEXT_EMBEDDING
        )
        if model is None:
            raise ModelUnavailableError(
                f"No available embedding model for dataset {dataset_id} "
                f"(model id: {dataset.embedding_model_id})"
            )
        return model

    def _effective_batch_size(self, model: AIModel) -> int:
        return min(model.max_chunks or self._batch_size, self._batch_size)

    async def _process_batches(
        self,
        segments: list[Segment],
        provider: IEmbeddingProvider,
        model: AIModel,
        job: IJobHandle,
    ) -> tuple[int, int]:
        total = len(segments)
        batch_size = self._effective_batch_size(model)
        processed = succeeded = failed = 0

        for offset in range(0, total, batch_size):
            batch = segments[offset : offset + batch_size]
            claimed_ids = await self._store.claim_segments([s.id for s in batch])
            claimed = [s for s in batch if s.id in set(claimed_ids)]

            if len(claimed) < len(batch):
                logger.warning(
                    "segments_already_claimed",
                    skipped=len(batch) - len(claimed),
                    batch_offset=offset,
                )

            if claimed:
                try:
                    vectors = await provider.embed([s.content for s in claimed])
                    validate_embeddings(vectors, len(claimed), model.dimension)
                    await self._store.save_embeddings(
                        {s.id: v for s, v in zip(claimed, vectors)}, model.id
                    )
                    succeeded += len(claimed)
                    logger.info(
                        "vectorization_batch_completed",
                        batch_size=len(claimed),
                        processed=processed + len(batch),
                        total=total,
                    )
                except Exception as exc:  # noqa: BLE001
                    category = classify_embedding_error(exc)
                    message = _error_message(exc)
                    await self._store.fail_segments([s.id for s in claimed], message)
                    failed += len(claimed)
                    logger.error(
                        "vectorization_batch_failed",
                        batch_size=len(claimed),
                        category=category.value,
                        retryable=is_retryable(category),
                        error=message,
                    )

                await self._refresh_document_ids(sorted({s.document_id for s in claimed}))

            processed += len(batch)
            await job.progress(
                _PROGRESS_BATCHES_START + processed * _PROGRESS_BATCHES_SPAN // total
            )

        await job.progress(_PROGRESS_BATCHES_DONE)
        return succeeded, failed

    # ------------------------------------------------------------------
    # Document aggregation
    # ------------------------------------------------------------------

    async def _refresh_documents(
        self,
        dataset_id: str,
        document_id: str | None,
        error: str | None = None,
    ) -> None:
        documents = await self._store.list_documents(dataset_id, document_id)
        await self._refresh_document_ids([d.id for d in documents], error)

    async def _refresh_document_ids(self, document_ids: list[str], error: str | None = None) -> None:
        counts = await self._store.count_segment_statuses(document_ids)
        for doc_id, doc_counts in counts.items():
            status, progress = compute_document_status(doc_counts)
            await self._store.update_document_status(
                doc_id, status, progress, error or self._failure_summary(doc_counts)
            )
            logger.debug("document_status_updated", document_id=doc_id, status=status.value, progress=progress)

    @staticmethod
    def _failure_summary(counts: StatusCounts) -> str | None:
        if counts.failed == 0:
            return None
        return f"{counts.failed} of {counts.total} segments failed to vectorize"

    async def _document_status(self, document_id: str | None) -> ProcessingStatus | None:
        if document_id is None:
            return None
        document = await self._store.get_document(document_id)
        return document.status if document else None

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)
