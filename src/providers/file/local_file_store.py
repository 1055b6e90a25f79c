"""Local-disk file store.

Each upload lives in its own directory, ``<upload_dir>/<file_id>/<name>``,
so the original file name survives without a separate metadata table.
Disk I/O runs in a worker thread to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import mimetypes
import uuid
from pathlib import Path

import structlog

from src.interfaces.file_store import IFileStore
from src.models.indexing import StoredFile
from src.utils.errors import BadRequestError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_UPLOAD_DIR = Path("data/uploads")


class LocalFileStore(IFileStore):
    """Stores uploads on the local filesystem."""

    def __init__(self, upload_dir: str | Path = _DEFAULT_UPLOAD_DIR) -> None:
        self._root = Path(upload_dir)

    async def get_file(self, file_id: str) -> StoredFile | None:
        return await asyncio.to_thread(self._read, file_id)

    async def save_file(self, name: str, data: bytes) -> StoredFile:
        safe_name = Path(name).name
        if not safe_name or safe_name in {".", ".."}:
            raise BadRequestError(
                message=f"Invalid file name: {name!r}",
                provider_name=self.get_provider_name(),
            )
        file_id = uuid.uuid4().hex
        await asyncio.to_thread(self._write, file_id, safe_name, data)
        logger.info("file_saved", file_id=file_id, name=safe_name, size=len(data))
        return self._describe(file_id, safe_name, data)

    def get_provider_name(self) -> str:
        return "local_file_store"

    # ------------------------------------------------------------------

    def _read(self, file_id: str) -> StoredFile | None:
        # Ids are generated hex strings; anything else cannot name a directory we own.
        if not file_id.isalnum():
            return None
        directory = self._root / file_id
        if not directory.is_dir():
            return None
        files = [p for p in directory.iterdir() if p.is_file()]
        if not files:
            return None
        path = files[0]
        return self._describe(file_id, path.name, path.read_bytes())

    def _write(self, file_id: str, name: str, data: bytes) -> None:
        directory = self._root / file_id
        directory.mkdir(parents=True, exist_ok=False)
        (directory / name).write_bytes(data)

    @staticmethod
    def _describe(file_id: str, name: str, data: bytes) -> StoredFile:
        extension = Path(name).suffix.lstrip(".").lower()
        mime_type, _ = mimetypes.guess_type(name)
        return StoredFile(
            file_id=file_id,
            name=name,
            size=len(data),
            extension=extension,
            mime_type=mime_type or "application/octet-stream",
            data=data,
        )
