"""Embedding response validation and failure classification.

:func:`validate_embeddings` rejects provider responses that would corrupt
the store: wrong count, empty or non-numeric vectors, NaN/inf values, or
dimensions that disagree with each other or with the model record.

:func:`classify_embedding_error` maps an exception (usually an
:class:`~src.utils.errors.EmbeddingError` chained to an ``openai`` error)
onto an :class:`ErrorCategory` and says whether retrying could help.
"""

from __future__ import annotations

import math

import openai

from src.models.vectorization import ErrorCategory
from src.utils.errors import EmbeddingError

# Categories where a later attempt may succeed.
RETRYABLE_CATEGORIES = frozenset({ErrorCategory.RATE_LIMIT, ErrorCategory.TRANSIENT})

_MESSAGE_HINTS: tuple[tuple[tuple[str, ...], ErrorCategory], ...] = (
    (("rate limit", "429", "too many requests"), ErrorCategory.RATE_LIMIT),
    (("401", "403", "unauthorized", "api key", "forbidden"), ErrorCategory.AUTH_FAILED),
    (("model not found", "does not exist", "404"), ErrorCategory.MODEL_NOT_FOUND),
    (("invalid input", "too long", "maximum context", "400"), ErrorCategory.INVALID_INPUT),
    (("timeout", "timed out", "connection", "502", "503", "504"), ErrorCategory.TRANSIENT),
)


def validate_embeddings(
    embeddings: list[list[float]],
    expected_count: int,
    expected_dimension: int | None = None,
) -> int:
    """Check a batch of vectors and return their common dimension.

    Raises
    ------
    EmbeddingError
        Describing the first problem found.
    """
    if len(embeddings) != expected_count:
        raise EmbeddingError(
            f"Embedding count mismatch: expected {expected_count}, got {len(embeddings)}"
        )

    dimension: int | None = None
    for position, vector in enumerate(embeddings):
        if not vector:
            raise EmbeddingError(f"Embedding {position} is empty")
        if not all(
            isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)
            for v in vector
        ):
            raise EmbeddingError(f"Embedding {position} contains non-numeric or non-finite values")
        if dimension is None:
            dimension = len(vector)
        elif len(vector) != dimension:
            raise EmbeddingError(
                f"Embedding {position} has dimension {len(vector)}, expected {dimension}"
            )

    if dimension is None:
        return expected_dimension or 0
    if expected_dimension is not None and dimension != expected_dimension:
        raise EmbeddingError(
            f"Embedding dimension {dimension} does not match model dimension {expected_dimension}"
        )
    return dimension


def classify_embedding_error(exc: BaseException) -> ErrorCategory:
    """Classify *exc*, looking through ``EmbeddingError`` to the provider exception."""
    cause = exc.__cause__ if isinstance(exc, EmbeddingError) and exc.__cause__ else exc

    if isinstance(cause, openai.RateLimitError):
        return ErrorCategory.RATE_LIMIT
    if isinstance(cause, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ErrorCategory.AUTH_FAILED
    if isinstance(cause, openai.NotFoundError):
        return ErrorCategory.MODEL_NOT_FOUND
    if isinstance(cause, openai.BadRequestError):
        return ErrorCategory.INVALID_INPUT
    if isinstance(cause, (openai.APITimeoutError, openai.APIConnectionError, openai.InternalServerError)):
        return ErrorCategory.TRANSIENT

    message = str(exc).lower()
    for hints, category in _MESSAGE_HINTS:
        if any(hint in message for hint in hints):
            return category
    return ErrorCategory.FATAL


def is_retryable(category: ErrorCategory) -> bool:
    return category in RETRYABLE_CATEGORIES
