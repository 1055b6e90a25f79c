"""File store providers."""

from src.providers.file.local_file_store import LocalFileStore

__all__ = ["LocalFileStore"]
