"""Dataset and document management around the indexing engine.

Turns segmentation output into persisted documents and segments, keeps
dataset counters in step (the store updates them in the same transaction
as the rows they describe) and optionally hands new documents to the
vectorization queue.

Hierarchical datasets store one segment row per parent block; the child
texts ride along in ``Segment.children`` and only the parent content is
embedded and indexed for full-text search.
"""

from __future__ import annotations

import uuid

import structlog

from src.interfaces.dataset_store import IDatasetStore
from src.interfaces.file_store import IFileStore
from src.interfaces.job_queue import IVectorizationQueue
from src.models.dataset import (
    Dataset,
    Document,
    IndexingConfig,
    RetrievalConfig,
    RetrievalMode,
    Segment,
)
from src.models.indexing import (
    FileSegments,
    IndexSegmentsRequest,
    IndexSegmentsResult,
    ParentSegment,
)
from src.models.vectorization import VectorizationJobType, VectorizationParams
from src.services.indexing.indexing_service import IndexingService
from src.services.retrieval.config_builder import RetrievalConfigBuilder
from src.utils.errors import NotFoundError

logger = structlog.get_logger(logger_name=__name__)


class DocumentService:
    """Creates, updates and deletes datasets, documents and segments."""

    def __init__(
        self,
        store: IDatasetStore,
        file_store: IFileStore,
        indexing: IndexingService,
        queue: IVectorizationQueue | None = None,
    ) -> None:
        self._store = store
        self._files = file_store
        self._indexing = indexing
        self._queue = queue

    # ------------------------------------------------------------------
    # Datasets
    # ------------------------------------------------------------------

    async def create_dataset(
        self,
        name: str,
        embedding_model_id: str | None = None,
        retrieval_mode: str = RetrievalMode.VECTOR.value,
        retrieval_config: RetrievalConfig | None = None,
        indexing_config: IndexingConfig | None = None,
    ) -> Dataset:
        """Validate the retrieval settings and persist a new, empty dataset."""
        config = RetrievalConfigBuilder.build(retrieval_mode, retrieval_config)
        dataset = Dataset(
            id=str(uuid.uuid4()),
            name=name,
            retrieval_mode=config.retrieval_mode or retrieval_mode,
            retrieval_config=config,
            indexing_config=indexing_config or IndexingConfig(),
            embedding_model_id=embedding_model_id,
        )
        return await self._store.create_dataset(dataset)

    async def get_dataset(self, dataset_id: str) -> Dataset:
        dataset = await self._store.get_dataset(dataset_id)
        if dataset is None:
            raise NotFoundError(f"Dataset not found: {dataset_id}")
        return dataset

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def ingest_files(
        self,
        dataset_id: str,
        file_ids: list[str],
        vectorize: bool = True,
    ) -> list[Document]:
        """Segment *file_ids* with the dataset's indexing config and store them."""
        dataset = await self.get_dataset(dataset_id)
        indexing = dataset.indexing_config
        request = IndexSegmentsRequest(
            file_ids=file_ids,
            document_mode=indexing.document_mode,
            segmentation=indexing.segmentation,
            parent_context_mode=indexing.parent_context_mode,
            sub_segmentation=indexing.sub_segmentation,
            preprocessing_rules=indexing.preprocessing_rules,
        )
        result = await self._indexing.index_segments(request)
        return await self.create_documents(dataset_id, result, vectorize=vectorize)

    async def create_documents(
        self,
        dataset_id: str,
        index_result: IndexSegmentsResult,
        vectorize: bool = True,
    ) -> list[Document]:
        """Persist one document per file result, with pending segments.

        When a queue is configured and *vectorize* is set, a document
        vectorization job is enqueued for each created document.
        """
        dataset = await self.get_dataset(dataset_id)
        documents: list[Document] = []

        for file_result in index_result.file_results:
            document, segments = await self._build_document(dataset, file_result)
            documents.append(await self._store.create_document(document, segments))

            if vectorize and self._queue is not None:
                job_id = await self._queue.add_vectorization_job(
                    VectorizationJobType.DOCUMENT,
                    VectorizationParams(dataset_id=dataset_id, document_id=document.id),
                )
                logger.info("document_vectorization_enqueued", document_id=document.id, job_id=job_id)

        return documents

    async def delete_document(self, document_id: str) -> Document:
        """Delete a document and its segments, shrinking dataset counters."""
        document = await self._store.delete_document(document_id)
        if document is None:
            raise NotFoundError(f"Document not found: {document_id}")
        return document

    async def set_document_enabled(self, document_id: str, enabled: bool) -> None:
        if not await self._store.set_document_enabled(document_id, enabled):
            raise NotFoundError(f"Document not found: {document_id}")
        logger.info("document_enabled_changed", document_id=document_id, enabled=enabled)

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    async def set_segment_enabled(self, segment_id: str, enabled: bool) -> None:
        if not await self._store.set_segment_enabled(segment_id, enabled):
            raise NotFoundError(f"Segment not found: {segment_id}")
        logger.info("segment_enabled_changed", segment_id=segment_id, enabled=enabled)

    async def update_segment_content(self, segment_id: str, content: str) -> Segment:
        """Replace a segment's text; it goes back to pending for re-embedding."""
        segment = await self._store.update_segment_content(segment_id, content)
        if segment is None:
            raise NotFoundError(f"Segment not found: {segment_id}")
        logger.info("segment_content_updated", segment_id=segment_id, length=segment.content_length)
        return segment

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _build_document(
        self, dataset: Dataset, file_result: FileSegments
    ) -> tuple[Document, list[Segment]]:
        stored = await self._files.get_file(file_result.file_id)
        if stored is None:
            raise NotFoundError(f"File not found: {file_result.file_id}")

        document_id = str(uuid.uuid4())
        metadata = {"file_id": stored.file_id, "file_name": stored.name}

        segments = [
            Segment(
                id=str(uuid.uuid4()),
                document_id=document_id,
                dataset_id=dataset.id,
                content=item.content,
                chunk_index=item.index,
                content_length=len(item.content),
                children=[c.content for c in item.children]
                if isinstance(item, ParentSegment)
                else None,
                embedding_model_id=dataset.embedding_model_id,
                metadata=metadata,
            )
            for item in file_result.segments
        ]

        document = Document(
            id=document_id,
            dataset_id=dataset.id,
            file_id=stored.file_id,
            file_name=stored.name,
            file_type=stored.extension.upper(),
            file_size=stored.size,
            chunk_count=len(segments),
            character_count=sum(s.content_length for s in segments),
            embedding_model_id=dataset.embedding_model_id,
        )
        return document, segments
