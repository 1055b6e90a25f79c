"""Segment indexing: files in, segments out.

:meth:`IndexingService.index_segments` resolves every requested file,
extracts its text, and runs the :class:`SegmentationEngine` over it.  Files
are processed concurrently, a few at a time.  The call is all-or-nothing:
if any file is missing, unreadable or fails to segment, the whole call
raises an :class:`IndexingError` naming that file and no partial result
is returned.
"""

from __future__ import annotations

import time

import structlog

from src.interfaces.file_store import IFileStore
from src.models.dataset import IndexingConfig
from src.models.indexing import FileSegments, IndexSegmentsRequest, IndexSegmentsResult
from src.services.indexing.file_parser import FileParser
from src.services.indexing.segmenter import SegmentationEngine
from src.utils.concurrency import DEFAULT_CONCURRENCY, throttled_gather
from src.utils.errors import IndexingError, KBForgeError

logger = structlog.get_logger(logger_name=__name__)


class IndexingService:
    """Turns uploaded files into segment lists."""

    def __init__(
        self,
        file_store: IFileStore,
        parser: FileParser | None = None,
        segmenter: SegmentationEngine | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        self._files = file_store
        self._parser = parser or FileParser()
        self._segmenter = segmenter or SegmentationEngine()
        self._concurrency = concurrency

    async def index_segments(self, request: IndexSegmentsRequest) -> IndexSegmentsResult:
        """Segment every file in *request*.

        Returns
        -------
        IndexSegmentsResult
            Per-file segments in request order, totals and the elapsed time
            in milliseconds.

        Raises
        ------
        IndexingError
            ``"Segmentation failed: ..."`` naming the first file that failed.
        """
        start = time.perf_counter()
        config = IndexingConfig(
            document_mode=request.document_mode,
            segmentation=request.segmentation,
            parent_context_mode=request.parent_context_mode,
            sub_segmentation=request.sub_segmentation,
            preprocessing_rules=request.preprocessing_rules,
        )
        logger.info(
            "indexing_started",
            files=len(request.file_ids),
            mode=request.document_mode.value,
        )

        try:
            file_results = await throttled_gather(
                [self._index_file(file_id, config) for file_id in request.file_ids],
                limit=self._concurrency,
            )
        except KBForgeError as exc:
            logger.error("indexing_failed", error=exc.message)
            raise IndexingError(f"Segmentation failed: {exc.message}") from exc
        except Exception as exc:  # noqa: BLE001
            logger.exception("indexing_failed", error=str(exc))
            raise IndexingError(f"Segmentation failed: {exc}") from exc

        total = sum(r.segment_count for r in file_results)
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "indexing_complete",
            files=len(file_results),
            total_segments=total,
            processing_time_ms=elapsed_ms,
        )
        return IndexSegmentsResult(
            file_results=list(file_results),
            total_segments=total,
            processed_files=len(request.file_ids),
            processing_time=elapsed_ms,
        )

    async def _index_file(self, file_id: str, config: IndexingConfig) -> FileSegments:
        stored = await self._files.get_file(file_id)
        if stored is None:
            raise IndexingError(f"File not found: {file_id}")

        text = await self._parser.parse(stored)
        try:
            segments = self._segmenter.segment(text, config)
        except KBForgeError as exc:
            raise IndexingError(f"{stored.name}: {exc.message}") from exc

        logger.debug("file_indexed", file_id=file_id, name=stored.name, segments=len(segments))
        return FileSegments(
            file_id=file_id,
            file_name=stored.name,
            segments=segments,
            segment_count=len(segments),
        )
