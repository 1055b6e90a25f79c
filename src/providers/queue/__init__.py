"""Vectorization queue providers.

InProcessVectorizationQueue runs jobs as asyncio tasks with retry and
exponential backoff.  Jobs are not persisted across restarts.
"""

from src.providers.queue.in_process_queue import InProcessVectorizationQueue

__all__ = ["InProcessVectorizationQueue"]
