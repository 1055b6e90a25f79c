"""kbForge API layer: routes, schemas and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
from src.api.schemas import (
    CreateDatasetRequest,
    CreateDocumentsRequest,
    ErrorResponse,
    FileUploadResponse,
    HealthResponse,
    QueryRequest,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "CreateDatasetRequest",
    "CreateDocumentsRequest",
    "ErrorResponse",
    "FileUploadResponse",
    "HealthResponse",
    "QueryRequest",
]
