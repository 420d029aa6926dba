"""Fixed-size pool of clone workers fed from a shared job stream."""
from __future__ import annotations

import logging
from typing import Optional

import anyio
import anyio.to_thread
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from cloner.client import ClientAdapter, CloneError
from models.outcome import CloneOutcome
from models.repository import CloneJob, Credentials

logger = logging.getLogger(__name__)


class CloneTimeout(CloneError):
    """A clone attempt ran past its deadline.

    The abandoned libgit2 thread may still be writing into the destination,
    so a timed out job is never retried.
    """


def _retryable(error: BaseException) -> bool:
    return isinstance(error, CloneError) and not isinstance(error, CloneTimeout)


class WorkerPool:
    """Runs ``size`` workers that each clone one job at a time."""

    def __init__(
        self,
        size: int,
        adapter: ClientAdapter,
        credentials: Optional[Credentials] = None,
        attempts: int = 1,
        retry_backoff: float = 2.0,
        timeout: Optional[float] = None,
    ) -> None:
        """Initialize the pool.

        Args:
            size: Number of concurrent workers, at least 1
            adapter: Client used to perform each clone
            credentials: Credentials applied to every job
            attempts: Clone attempts per job, 1 disables retries
            retry_backoff: Multiplier for the exponential wait between attempts
            timeout: Per-attempt deadline in seconds, None for no deadline
        """
        if size < 1:
            raise ValueError("Worker pool size must be at least 1")
        if attempts < 1:
            raise ValueError("Clone attempts must be at least 1")
        self.size = size
        self.adapter = adapter
        self.credentials = credentials
        self.attempts = attempts
        self.retry_backoff = retry_backoff
        self.timeout = timeout

    async def run(
        self,
        jobs: MemoryObjectReceiveStream[CloneJob],
        outcomes: MemoryObjectSendStream[CloneOutcome],
    ) -> None:
        """Consume ``jobs`` until the stream is closed and drained.

        Every worker owns a clone of both streams. ``outcomes`` is closed once
        the last worker exits, which is what ends the collector's stream.
        """
        async with jobs, outcomes:
            async with anyio.create_task_group() as tg:
                for worker_id in range(self.size):
                    tg.start_soon(
                        self._worker,
                        worker_id,
                        jobs.clone(),
                        outcomes.clone(),
                        name=f"clone-worker-{worker_id}",
                    )

    async def _worker(
        self,
        worker_id: int,
        jobs: MemoryObjectReceiveStream[CloneJob],
        outcomes: MemoryObjectSendStream[CloneOutcome],
    ) -> None:
        async with jobs, outcomes:
            async for job in jobs:
                logger.debug(f"Worker {worker_id} picked up {job.url}")
                await outcomes.send(CloneOutcome.started(job))
                try:
                    await self._clone(job)
                except CloneError as e:
                    await outcomes.send(CloneOutcome.failed(job, str(e.cause)))
                except Exception as e:
                    logger.exception(f"Unexpected error cloning {job.url}")
                    await outcomes.send(CloneOutcome.failed(job, repr(e)))
                else:
                    await outcomes.send(CloneOutcome.succeeded(job))

    async def _clone(self, job: CloneJob) -> None:
        """Clone one job under the retry and deadline policy."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.retry_backoff, max=60),
            retry=retry_if_exception(_retryable),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        f"Retrying {job.url} (attempt {attempt.retry_state.attempt_number}"
                        f" of {self.attempts})"
                    )
                await self._clone_once(job)

    async def _clone_once(self, job: CloneJob) -> None:
        try:
            with anyio.fail_after(self.timeout):
                await anyio.to_thread.run_sync(
                    self.adapter.clone,
                    job.url,
                    job.destination,
                    self.credentials,
                    abandon_on_cancel=True,
                )
        except TimeoutError as e:
            raise CloneTimeout(job.url, job.destination, f"timed out after {self.timeout}s") from e
