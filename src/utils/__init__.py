"""Utility modules for kbForge.

- **errors** -- exception hierarchy rooted at KBForgeError; each class
  carries the HTTP status the API maps it to.
- **logging** -- structlog setup with a dual renderer: coloured console
  output in development, JSON in production, plus ``bound_context`` for
  per-job log context.
- **concurrency** -- ``throttled_gather``, a semaphore-bounded gather.
- **tokenizer** -- jieba tokenization for the full-text index and queries.
"""

from src.utils.concurrency import throttled_gather
from src.utils.errors import (
    BadRequestError,
    ConfigurationError,
    EmbeddingError,
    IndexingError,
    InternalError,
    KBForgeError,
    ModelUnavailableError,
    NotFoundError,
    RerankError,
    RetrievalUnavailableError,
)
from src.utils.logging import bound_context, configure_logging, get_logger

__all__ = [
    "BadRequestError",
    "ConfigurationError",
    "EmbeddingError",
    "IndexingError",
    "InternalError",
    "KBForgeError",
    "ModelUnavailableError",
    "NotFoundError",
    "RerankError",
    "RetrievalUnavailableError",
    "bound_context",
    "configure_logging",
    "get_logger",
    "throttled_gather",
]
