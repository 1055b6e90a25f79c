"""Custom exception hierarchy for kbForge.

All application exceptions inherit from :class:`KBForgeError`, which
carries an optional ``provider_name`` so error handlers can identify which
collaborator (e.g. "openai_embedding", "sqlite_dataset_store", "http_rerank")
caused the failure.

The hierarchy is organized by how the caller should react:

    KBForgeError  (base -- catch-all for any kbForge error)
    +-- NotFoundError             (missing dataset / document / segment / file)
    +-- BadRequestError           (invalid mode, strategy, weights, rerank config)
    +-- InternalError             (unexpected failure inside an operation)
    |   +-- IndexingError         (file parsing / segmentation failure)
    +-- ModelUnavailableError     (embedding or rerank model missing / inactive)
    +-- RetrievalUnavailableError (vector search capability absent)
    +-- EmbeddingError            (embedding call or response validation failed)
    +-- RerankError               (rerank call failed)
    +-- ConfigurationError        (startup / missing config)

Partial vectorization failure is NOT an exception: it is recorded as
``document.status == "error"`` on the affected document.
"""


class KBForgeError(Exception):
    """Base exception for all kbForge errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which collaborator triggered the error.
    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[openai_embedding] Rate limit exceeded``.
    """

    #: HTTP status used by the API error middleware.
    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------

class NotFoundError(KBForgeError):
    """Raised when a dataset, document, segment or file does not exist."""

    status_code = 404

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class BadRequestError(KBForgeError):
    """Raised for invalid retrieval modes, strategies, weights or rerank config."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid request",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Internal errors
# ---------------------------------------------------------------------------

class InternalError(KBForgeError):
    """Raised when an operation fails for a reason the caller cannot fix."""

    def __init__(
        self,
        message: str = "Internal error",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IndexingError(InternalError):
    """Raised when a file cannot be parsed or segmented."""

    def __init__(
        self,
        message: str = "Segmentation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(KBForgeError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Capability / provider errors
# ---------------------------------------------------------------------------

class ModelUnavailableError(KBForgeError):
    """Raised when the embedding or rerank model is missing or inactive.

    The message names the missing capability so the operator can tell
    which model record needs attention.
    """

    status_code = 503

    def __init__(
        self,
        message: str = "No available model",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RetrievalUnavailableError(KBForgeError):
    """Raised when the store cannot perform vector similarity search."""

    status_code = 503

    def __init__(
        self,
        message: str = "Vector search is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(KBForgeError):
    """Raised when an embedding call fails or returns an unusable response."""

    status_code = 502

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RerankError(KBForgeError):
    """Raised when a rerank call fails."""

    status_code = 502

    def __init__(
        self,
        message: str = "Rerank call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
