"""Public interface definitions for every collaborator the engine talks to.

Services in ``src/services/`` depend only on these abstract base classes.
Concrete adapters live in ``src/providers/`` and are wired together in
``src/main.py`` (HTTP app) or ``src/cli/`` (one-shot commands), so tests
can inject ``MagicMock(spec=...)`` fakes without touching a network or disk.

CONCRETE PROVIDER MAP:
    Interface              ->  Concrete implementation (in src/providers/)
    ---------------------------------------------------------------------
    IDatasetStore          ->  SQLiteDatasetStore
    IEmbeddingProvider     ->  OpenAIEmbeddingProvider
    IRerankProvider        ->  HTTPRerankProvider
    IModelRegistry         ->  YAMLModelRegistry
    IFileStore             ->  LocalFileStore
    IVectorizationQueue    ->  InProcessVectorizationQueue
    IJobHandle             ->  (created per job by the queue)
"""

from src.interfaces.dataset_store import IDatasetStore
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.file_store import IFileStore
from src.interfaces.job_queue import IJobHandle, IVectorizationQueue
from src.interfaces.model_registry import IModelRegistry
from src.interfaces.rerank_provider import IRerankProvider

__all__ = [
    "IDatasetStore",
    "IEmbeddingProvider",
    "IFileStore",
    "IJobHandle",
    "IModelRegistry",
    "IRerankProvider",
    "IVectorizationQueue",
]
