"""FastAPI routes for kbForge.

Service dependencies are resolved from ``app.state`` (populated at startup
by ``main.build_components``) through ``Depends`` with the ``Annotated`` pattern.
Application errors propagate as ``KBForgeError`` subclasses and are turned
into JSON by ``ErrorHandlingMiddleware``.

Endpoint                                  Method  Description
-----------------------------------------------------------------------
/api/v1/health                            GET     Health check + provider names
/api/v1/datasets                          POST    Create a dataset
/api/v1/datasets/{id}                     GET     Read a dataset
/api/v1/datasets/{id}/documents           GET     List documents
/api/v1/datasets/{id}/documents           POST    Segment files into documents
/api/v1/datasets/{id}/vectorize           POST    Enqueue vectorization
/api/v1/datasets/{id}/vectorize/reset     POST    Failed segments -> pending
/api/v1/datasets/{id}/query               POST    Ranked retrieval
/api/v1/files                             POST    Upload a file
/api/v1/indexing/segments                 POST    Segment files (no storage)
/api/v1/documents/{id}                    DELETE  Delete a document
/api/v1/documents/{id}/enabled            PUT     Toggle document retrieval
/api/v1/segments/{id}                     PATCH   Replace segment content
/api/v1/segments/{id}/enabled             PUT     Toggle segment retrieval
/api/v1/jobs/{job_id}                     GET     Vectorization job state
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile

from src.api.schemas import (
    CreateDatasetRequest,
    CreateDocumentsRequest,
    DocumentListResponse,
    FileUploadResponse,
    HealthResponse,
    QueryRequest,
    ResetVectorizationResponse,
    SetEnabledRequest,
    UpdateSegmentRequest,
    VectorizeRequest,
    VectorizeResponse,
)
from src.interfaces.dataset_store import IDatasetStore
from src.interfaces.file_store import IFileStore
from src.models.dataset import Dataset, Document, Segment
from src.models.indexing import IndexSegmentsRequest, IndexSegmentsResult
from src.models.retrieval import RetrievalResult
from src.models.vectorization import JobInfo, VectorizationJobType, VectorizationParams
from src.providers.queue.in_process_queue import InProcessVectorizationQueue
from src.services.document_service import DocumentService
from src.services.indexing.file_parser import FileParser
from src.services.indexing.indexing_service import IndexingService
from src.services.retrieval.retrieval_service import RetrievalService
from src.services.vectorization.worker import VectorizationQueueWorker
from src.utils.errors import NotFoundError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_MAX_FILE_SIZE = 50 * 1024 * 1024  # 50 MB
_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_store(request: Request) -> IDatasetStore:
    return request.app.state.dataset_store


def _get_file_store(request: Request) -> IFileStore:
    return request.app.state.file_store


def _get_file_parser(request: Request) -> FileParser:
    return request.app.state.file_parser


def _get_indexing_service(request: Request) -> IndexingService:
    return request.app.state.indexing_service


def _get_document_service(request: Request) -> DocumentService:
    return request.app.state.document_service


def _get_retrieval_service(request: Request) -> RetrievalService:
    return request.app.state.retrieval_service


def _get_worker(request: Request) -> VectorizationQueueWorker:
    return request.app.state.vectorization_worker


def _get_queue(request: Request) -> InProcessVectorizationQueue:
    return request.app.state.vectorization_queue


StoreDep = Annotated[IDatasetStore, Depends(_get_store)]
FileStoreDep = Annotated[IFileStore, Depends(_get_file_store)]
FileParserDep = Annotated[FileParser, Depends(_get_file_parser)]
IndexingDep = Annotated[IndexingService, Depends(_get_indexing_service)]
DocumentsDep = Annotated[DocumentService, Depends(_get_document_service)]
RetrievalDep = Annotated[RetrievalService, Depends(_get_retrieval_service)]
WorkerDep = Annotated[VectorizationQueueWorker, Depends(_get_worker)]
QueueDep = Annotated[InProcessVectorizationQueue, Depends(_get_queue)]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request) -> HealthResponse:
    providers = dict(getattr(request.app.state, "provider_registry", {}))
    status = "healthy" if providers.get("dataset_store") else "unhealthy"
    return HealthResponse(status=status, version="0.1.0", providers=providers)


# ---------------------------------------------------------------------------
# Datasets
# ---------------------------------------------------------------------------


@router.post("/datasets", response_model=Dataset, status_code=201, summary="Create a dataset")
async def create_dataset(body: CreateDatasetRequest, documents: DocumentsDep) -> Dataset:
    dataset = await documents.create_dataset(
        name=body.name,
        embedding_model_id=body.embedding_model_id,
        retrieval_mode=body.retrieval_mode,
        retrieval_config=body.retrieval_config,
        indexing_config=body.indexing_config,
    )
    _logger.info("dataset_created", dataset_id=dataset.id, mode=dataset.retrieval_mode)
    return dataset


@router.get("/datasets/{dataset_id}", response_model=Dataset, summary="Read a dataset")
async def get_dataset(dataset_id: str, documents: DocumentsDep) -> Dataset:
    return await documents.get_dataset(dataset_id)


@router.get(
    "/datasets/{dataset_id}/documents",
    response_model=DocumentListResponse,
    summary="List a dataset's documents",
)
async def list_documents(
    dataset_id: str, documents: DocumentsDep, store: StoreDep
) -> DocumentListResponse:
    await documents.get_dataset(dataset_id)
    return DocumentListResponse(documents=await store.list_documents(dataset_id))


@router.post(
    "/datasets/{dataset_id}/documents",
    response_model=DocumentListResponse,
    status_code=201,
    summary="Segment uploaded files into documents",
)
async def create_documents(
    dataset_id: str, body: CreateDocumentsRequest, documents: DocumentsDep
) -> DocumentListResponse:
    created = await documents.ingest_files(dataset_id, body.file_ids, vectorize=body.vectorize)
    return DocumentListResponse(documents=created)


@router.post(
    "/datasets/{dataset_id}/vectorize",
    response_model=VectorizeResponse,
    status_code=202,
    summary="Enqueue a vectorization job",
)
async def vectorize(
    dataset_id: str,
    documents: DocumentsDep,
    queue: QueueDep,
    body: VectorizeRequest | None = None,
) -> VectorizeResponse:
    await documents.get_dataset(dataset_id)
    document_id = body.document_id if body else None
    job_type = VectorizationJobType.DOCUMENT if document_id else VectorizationJobType.DATASET
    job_id = await queue.add_vectorization_job(
        job_type, VectorizationParams(dataset_id=dataset_id, document_id=document_id)
    )
    return VectorizeResponse(job_id=job_id)


@router.post(
    "/datasets/{dataset_id}/vectorize/reset",
    response_model=ResetVectorizationResponse,
    summary="Reset failed segments to pending",
)
async def reset_vectorization(
    dataset_id: str,
    documents: DocumentsDep,
    worker: WorkerDep,
    body: VectorizeRequest | None = None,
) -> ResetVectorizationResponse:
    await documents.get_dataset(dataset_id)
    count = await worker.reset_vectorization_status(dataset_id, body.document_id if body else None)
    return ResetVectorizationResponse(reset_count=count)


@router.post(
    "/datasets/{dataset_id}/query",
    response_model=RetrievalResult,
    summary="Query a dataset",
)
async def query_dataset(
    dataset_id: str, body: QueryRequest, retrieval: RetrievalDep
) -> RetrievalResult:
    return await retrieval.query_dataset(dataset_id, body.query, body.config)


# ---------------------------------------------------------------------------
# Files and indexing
# ---------------------------------------------------------------------------


@router.post(
    "/files",
    response_model=FileUploadResponse,
    status_code=201,
    summary="Upload a file for indexing",
)
async def upload_file(
    file: UploadFile, file_store: FileStoreDep, parser: FileParserDep
) -> FileUploadResponse:
    name = file.filename or "upload.txt"
    extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    if extension not in parser.supported_extensions():
        raise HTTPException(
            status_code=415,
            detail=(
                f"Unsupported file type: .{extension}. "
                f"Allowed: {', '.join(parser.supported_extensions())}"
            ),
        )

    # Read in chunks so oversized uploads are rejected early.
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > _MAX_FILE_SIZE:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Maximum: {_MAX_FILE_SIZE} bytes.",
            )
        chunks.append(chunk)

    stored = await file_store.save_file(name, b"".join(chunks))
    _logger.info("file_uploaded", file_id=stored.file_id, name=stored.name, size=stored.size)
    return FileUploadResponse(
        file_id=stored.file_id,
        name=stored.name,
        size=stored.size,
        extension=stored.extension,
    )


@router.post(
    "/indexing/segments",
    response_model=IndexSegmentsResult,
    summary="Segment files without storing them",
)
async def index_segments(body: IndexSegmentsRequest, indexing: IndexingDep) -> IndexSegmentsResult:
    return await indexing.index_segments(body)


# ---------------------------------------------------------------------------
# Documents and segments
# ---------------------------------------------------------------------------


@router.delete("/documents/{document_id}", response_model=Document, summary="Delete a document")
async def delete_document(document_id: str, documents: DocumentsDep) -> Document:
    return await documents.delete_document(document_id)


@router.put("/documents/{document_id}/enabled", status_code=204, summary="Toggle a document")
async def set_document_enabled(
    document_id: str, body: SetEnabledRequest, documents: DocumentsDep
) -> None:
    await documents.set_document_enabled(document_id, body.enabled)


@router.patch("/segments/{segment_id}", response_model=Segment, summary="Replace segment content")
async def update_segment(
    segment_id: str, body: UpdateSegmentRequest, documents: DocumentsDep
) -> Segment:
    return await documents.update_segment_content(segment_id, body.content)


@router.put("/segments/{segment_id}/enabled", status_code=204, summary="Toggle a segment")
async def set_segment_enabled(
    segment_id: str, body: SetEnabledRequest, documents: DocumentsDep
) -> None:
    await documents.set_segment_enabled(segment_id, body.enabled)


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


@router.get("/jobs/{job_id}", response_model=JobInfo, summary="Vectorization job state")
async def get_job(job_id: str, queue: QueueDep) -> JobInfo:
    job = queue.get_job(job_id)
    if job is None:
        raise NotFoundError(f"Job not found: {job_id}")
    return job
