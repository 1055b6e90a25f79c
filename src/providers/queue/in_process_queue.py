"""In-process vectorization queue backed by asyncio tasks.

Each enqueued job becomes one ``asyncio.Task`` that calls the job handler
(normally :meth:`VectorizationQueueWorker.process_vectorization`) and
retries it according to the job's :class:`JobOptions`:

    attempt 1 fails -> wait backoff_delay_ms
    attempt 2 fails -> wait backoff_delay_ms * 2
    ...             -> after ``attempts`` failures the job is FAILED

Before a retry the optional ``before_retry`` hook runs with the job's
params.  The worker marks unfinished segments failed when a job aborts,
so the application wires this hook to ``reset_vectorization_status`` to
put them back in the pending pool for the next attempt.

Not-found and bad-request errors are permanent and are never retried.

Nothing is persisted: jobs live only as long as the process.  This is
enough for the HTTP app and the CLI; a durable deployment would implement
:class:`IVectorizationQueue` on top of a real broker instead.  Only the
most recent ``max_finished_jobs`` finished jobs stay visible to
:meth:`InProcessVectorizationQueue.get_job`; older records are evicted.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import structlog

from src.interfaces.job_queue import IJobHandle, IVectorizationQueue
from src.models.vectorization import (
    JobInfo,
    JobOptions,
    JobState,
    VectorizationJobType,
    VectorizationParams,
    VectorizationResult,
)
from src.utils.errors import BadRequestError, KBForgeError, NotFoundError

logger = structlog.get_logger(logger_name=__name__)

JobHandler = Callable[
    [VectorizationJobType, VectorizationParams, IJobHandle],
    Awaitable[VectorizationResult],
]
RetryHook = Callable[[VectorizationParams], Awaitable[object]]

_PERMANENT_ERRORS: tuple[type[Exception], ...] = (NotFoundError, BadRequestError)
DEFAULT_MAX_FINISHED_JOBS = 1000


@dataclass
class _JobRecord:
    """Mutable bookkeeping for one job.  Exposed only as :class:`JobInfo`."""

    job_id: str
    job_type: VectorizationJobType
    params: VectorizationParams
    options: JobOptions
    state: JobState = JobState.WAITING
    progress: int = 0
    attempts_made: int = 0
    error: str | None = None
    result: VectorizationResult | None = None
    done: asyncio.Event = field(default_factory=asyncio.Event)

    def snapshot(self) -> JobInfo:
        return JobInfo(
            job_id=self.job_id,
            job_type=self.job_type,
            params=self.params,
            state=self.state,
            progress=self.progress,
            attempts_made=self.attempts_made,
            error=self.error,
            result=self.result,
        )


class _InProcessJobHandle(IJobHandle):
    """Progress sink handed to the handler for one attempt."""

    def __init__(self, record: _JobRecord) -> None:
        self._record = record

    async def progress(self, percent: int) -> None:
        self._record.progress = max(0, min(100, int(percent)))
        logger.debug("job_progress", job_id=self._record.job_id, progress=self._record.progress)


class InProcessVectorizationQueue(IVectorizationQueue):
    """Runs vectorization jobs as background asyncio tasks with retries."""

    def __init__(
        self,
        handler: JobHandler,
        before_retry: RetryHook | None = None,
        default_options: JobOptions | None = None,
        max_finished_jobs: int = DEFAULT_MAX_FINISHED_JOBS,
    ) -> None:
        self._handler = handler
        self._before_retry = before_retry
        self._default_options = default_options or JobOptions()
        self._max_finished_jobs = max(0, max_finished_jobs)
        self._jobs: dict[str, _JobRecord] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._finished: deque[str] = deque()

    # ------------------------------------------------------------------
    # IVectorizationQueue
    # ------------------------------------------------------------------

    async def add_vectorization_job(
        self,
        job_type: VectorizationJobType,
        params: VectorizationParams,
        options: JobOptions | None = None,
    ) -> str:
        record = _JobRecord(
            job_id=uuid.uuid4().hex,
            job_type=job_type,
            params=params,
            options=options or self._default_options,
        )
        self._jobs[record.job_id] = record
        task = asyncio.create_task(self._run(record), name=f"vectorize-{record.job_id}")
        self._tasks[record.job_id] = task
        task.add_done_callback(lambda _t, job_id=record.job_id: self._tasks.pop(job_id, None))

        logger.info(
            "job_enqueued",
            job_id=record.job_id,
            job_type=job_type.value,
            dataset_id=params.dataset_id,
            document_id=params.document_id,
            attempts=record.options.attempts,
        )
        return record.job_id

    # ------------------------------------------------------------------
    # Inspection / lifecycle
    # ------------------------------------------------------------------

    def get_job(self, job_id: str) -> JobInfo | None:
        record = self._jobs.get(job_id)
        return record.snapshot() if record else None

    async def wait(self, job_id: str) -> JobInfo:
        """Block until *job_id* reaches COMPLETED or FAILED.

        Raises
        ------
        NotFoundError
            If the queue never saw *job_id*.
        """
        record = self._jobs.get(job_id)
        if record is None:
            raise NotFoundError(f"Job not found: {job_id}")
        await record.done.wait()
        return record.snapshot()

    async def shutdown(self) -> None:
        """Cancel running jobs and wait for their tasks to unwind."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("queue_shutdown", cancelled=len(tasks))

    def get_provider_name(self) -> str:
        return "in_process_queue"

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _run(self, record: _JobRecord) -> None:
        handle = _InProcessJobHandle(record)
        try:
            while True:
                record.state = JobState.ACTIVE
                record.attempts_made += 1
                try:
                    record.result = await self._handler(record.job_type, record.params, handle)
                except asyncio.CancelledError:
                    record.state = JobState.FAILED
                    record.error = "Job cancelled"
                    raise
                except Exception as exc:  # noqa: BLE001
                    record.error = exc.message if isinstance(exc, KBForgeError) else str(exc)
                    if not await self._schedule_retry(record, exc):
                        record.state = JobState.FAILED
                        logger.error(
                            "job_failed",
                            job_id=record.job_id,
                            attempts=record.attempts_made,
                            error=record.error,
                        )
                        return
                    continue

                record.state = JobState.COMPLETED
                record.progress = 100
                record.error = None
                logger.info(
                    "job_completed",
                    job_id=record.job_id,
                    attempts=record.attempts_made,
                    success=record.result.success,
                )
                return
        finally:
            record.done.set()
            self._retire(record.job_id)

    def _retire(self, job_id: str) -> None:
        self._finished.append(job_id)
        while len(self._finished) > self._max_finished_jobs:
            evicted = self._finished.popleft()
            self._jobs.pop(evicted, None)
            logger.debug("job_evicted", job_id=evicted)

    async def _schedule_retry(self, record: _JobRecord, exc: Exception) -> bool:
        if isinstance(exc, _PERMANENT_ERRORS):
            return False
        if record.attempts_made >= record.options.attempts:
            return False

        delay_ms = record.options.backoff_delay_ms * 2 ** (record.attempts_made - 1)
        record.state = JobState.DELAYED
        logger.warning(
            "job_retry_scheduled",
            job_id=record.job_id,
            attempt=record.attempts_made,
            delay_ms=delay_ms,
            error=record.error,
        )
        await asyncio.sleep(delay_ms / 1000)

        if self._before_retry is not None:
            try:
                await self._before_retry(record.params)
            except Exception as hook_exc:  # noqa: BLE001
                record.error = f"Retry preparation failed: {hook_exc}"
                return False
        return True
