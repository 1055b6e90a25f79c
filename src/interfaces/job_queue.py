"""Job contracts for vectorization.

Job scheduling is an external concern.  The engine defines only:

* :class:`IJobHandle` -- what a running job exposes to the worker (a
  progress callback), and
* :class:`IVectorizationQueue` -- how other components ask for a
  vectorization job to be run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.vectorization import JobOptions, VectorizationJobType, VectorizationParams


class IJobHandle(ABC):
    """Handle passed to the worker for one job execution."""

    @abstractmethod
    async def progress(self, percent: int) -> None:
        """Report coarse progress (0-100) to the queue."""


class IVectorizationQueue(ABC):
    """Contract for enqueuing vectorization jobs."""

    @abstractmethod
    async def add_vectorization_job(
        self,
        job_type: VectorizationJobType,
        params: VectorizationParams,
        options: JobOptions | None = None,
    ) -> str:
        """Enqueue a job and return its id.

        ``options`` defaults to three attempts with exponential backoff
        starting at two seconds.
        """
