"""kbForge FastAPI application entry point.

Wires providers and services together and stores them on ``app.state`` for
the route dependencies.  Configuration comes from ``.env`` / environment
(:class:`Settings`) and ``config/config.yaml`` (:func:`load_config`).

The same :func:`build_components` wiring is reused by the CLI so both surfaces
run identical components.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.loader import load_config
from src.config.settings import Settings
from src.models.vectorization import VectorizationParams
from src.providers.file.local_file_store import LocalFileStore
from src.providers.model_registry.yaml_model_registry import YAMLModelRegistry
from src.providers.queue.in_process_queue import InProcessVectorizationQueue
from src.providers.store.sqlite_dataset_store import SQLiteDatasetStore
from src.services.document_service import DocumentService
from src.services.indexing.file_parser import FileParser
from src.services.indexing.indexing_service import IndexingService
from src.services.retrieval.rerank import RerankHelper
from src.services.retrieval.retrieval_service import RetrievalService
from src.services.vectorization.worker import VectorizationQueueWorker
from src.utils.logging import configure_logging, get_logger

_VERSION = "0.1.0"

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings,
    app_config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Instantiate every provider and service.

    Returns a flat dict of named components to be stored on ``app.state``.
    The dataset store still needs ``await initialize()`` before use.
    """
    app_config = app_config if app_config is not None else load_config(settings=app_settings)

    http_client = httpx.AsyncClient(timeout=httpx.Timeout(30.0))

    dataset_store = SQLiteDatasetStore(db_path=app_settings.database_path)
    file_store = LocalFileStore(upload_dir=app_settings.upload_dir)
    model_registry = YAMLModelRegistry(
        entries=app_config.get("models", []),
        settings=app_settings,
        http_client=http_client,
    )

    file_parser = FileParser()
    indexing_service = IndexingService(file_store=file_store, parser=file_parser)

    vectorization_worker = VectorizationQueueWorker(
        store=dataset_store,
        registry=model_registry,
        batch_size=app_config.get("vectorization", {}).get(
            "batch_size", app_settings.embedding_batch_size
        ),
    )

    async def _reset_before_retry(params: VectorizationParams) -> int:
        return await vectorization_worker.reset_vectorization_status(
            params.dataset_id, params.document_id
        )

    vectorization_queue = InProcessVectorizationQueue(
        handler=vectorization_worker.process_vectorization,
        before_retry=_reset_before_retry,
    )

    document_service = DocumentService(
        store=dataset_store,
        file_store=file_store,
        indexing=indexing_service,
        queue=vectorization_queue,
    )
    retrieval_service = RetrievalService(
        store=dataset_store,
        registry=model_registry,
        rerank_helper=RerankHelper(model_registry),
        fulltext_score_multiplier=app_config.get("retrieval", {}).get(
            "fulltext_score_multiplier", app_settings.fulltext_score_multiplier
        ),
    )

    provider_registry = {
        "dataset_store": dataset_store.get_provider_name(),
        "file_store": file_store.get_provider_name(),
        "model_registry": model_registry.get_provider_name(),
        "vectorization_queue": vectorization_queue.get_provider_name(),
    }

    return {
        "http_client": http_client,
        "dataset_store": dataset_store,
        "file_store": file_store,
        "model_registry": model_registry,
        "file_parser": file_parser,
        "indexing_service": indexing_service,
        "vectorization_worker": vectorization_worker,
        "vectorization_queue": vectorization_queue,
        "document_service": document_service,
        "retrieval_service": retrieval_service,
        "provider_registry": provider_registry,
    }


async def shutdown_components(components: dict[str, Any]) -> None:
    await components["vectorization_queue"].shutdown()
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    app_settings = app_settings or settings

    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        components = build_components(app_settings)
        for key, value in components.items():
            setattr(application.state, key, value)

        await components["dataset_store"].initialize()
        _logger.info(
            "app_startup",
            version=_VERSION,
            environment=app_settings.app_env,
            providers=components["provider_registry"],
        )

        yield

        await shutdown_components(components)
        _logger.info("app_shutdown")

    application = FastAPI(
        title="kbForge API",
        version=_VERSION,
        description=(
            "Segment documents into chunks, vectorize them in the background, "
            "and answer vector, full-text and hybrid retrieval queries."
        ),
        lifespan=_lifespan,
    )

    # Last added runs first: logging wraps error handling.
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=app_settings.get_cors_origins())

    application.include_router(api_router)
    return application


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
