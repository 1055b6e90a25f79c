"""Abstract base class for the upload/file store.

Resolves a ``file_id`` to its bytes and descriptive metadata.  Upload
handling itself (validation, quotas, permissions) is out of scope; the
store only needs to persist bytes and give them back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.indexing import StoredFile


# Concrete implementation: LocalFileStore (src/providers/file/)
class IFileStore(ABC):
    """Contract for file storage used by segment indexing."""

    @abstractmethod
    async def get_file(self, file_id: str) -> StoredFile | None:
        """Return the stored file, or ``None`` if *file_id* is unknown."""

    @abstractmethod
    async def save_file(self, name: str, data: bytes) -> StoredFile:
        """Persist *data* under a new file id and return the stored record."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"local_file_store"``."""
