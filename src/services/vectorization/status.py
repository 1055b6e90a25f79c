"""Document status aggregation from segment status counts.

    total == 0                        -> pending,    0
    any pending or processing         -> processing, floor(completed / total * 100)
    every segment failed              -> failed,     0
    some failed and some completed    -> error,      floor(completed / total * 100)
    otherwise (all completed)         -> completed,  100

Progress is floored so that 100 is only ever reported together with
``completed``.
"""

from __future__ import annotations

from src.models.dataset import ProcessingStatus, StatusCounts


def compute_document_status(counts: StatusCounts) -> tuple[ProcessingStatus, int]:
    """Return ``(status, progress)`` for a document with the given segment counts."""
    total = counts.total
    if total == 0:
        return ProcessingStatus.PENDING, 0

    partial = counts.completed * 100 // total
    if counts.pending > 0 or counts.processing > 0:
        return ProcessingStatus.PROCESSING, partial
    if counts.failed == total:
        return ProcessingStatus.FAILED, 0
    if counts.failed > 0 and counts.completed > 0:
        return ProcessingStatus.ERROR, partial
    return ProcessingStatus.COMPLETED, 100
