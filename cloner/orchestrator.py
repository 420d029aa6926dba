"""Top-level coordination of a concurrent mirror run."""
from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Optional, Sequence

import anyio

from cloner.client import ClientAdapter
from cloner.collector import ResultCollector
from cloner.pool import WorkerPool
from models.outcome import CloneOutcome, RunResult
from models.repository import CloneJob, Credentials, RepositorySpec

logger = logging.getLogger(__name__)


class AggregateError(Exception):
    """Raised after a run in which at least one clone failed."""

    def __init__(self, count: int, result: RunResult):
        """Initialize with the number of failures.

        Args:
            count: Number of failed jobs
            result: Full tally of the run
        """
        self.count = count
        self.result = result
        super().__init__(f"{count} failure(s) cloning repositories, check log for details")


class CloneOrchestrator:
    """Feeds clone jobs to a bounded worker pool and aggregates the outcomes."""

    def __init__(
        self,
        adapter: Optional[ClientAdapter] = None,
        attempts: int = 1,
        retry_backoff: float = 2.0,
        timeout: Optional[float] = None,
    ) -> None:
        self.adapter = adapter or ClientAdapter()
        self.attempts = attempts
        self.retry_backoff = retry_backoff
        self.timeout = timeout

    async def run(
        self,
        specs: Sequence[RepositorySpec],
        staging_root: Path,
        concurrency: int,
        credentials: Optional[Credentials] = None,
    ) -> RunResult:
        """Mirror every repository in ``specs`` under ``staging_root``.

        Args:
            specs: Repositories to clone
            staging_root: Directory the mirrors are written into
            concurrency: Maximum number of concurrent clones
            credentials: Credentials applied to every repository

        Returns:
            The run tally when every job succeeded

        Raises:
            ValueError: If ``concurrency`` is less than 1
            AggregateError: If any job failed, after all jobs have finished
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        if not specs:
            logger.info("No repositories configured, nothing to clone")
            return RunResult()

        jobs = [CloneJob.from_spec(spec, Path(staging_root)) for spec in specs]
        pool = WorkerPool(
            size=min(concurrency, len(jobs)),
            adapter=self.adapter,
            credentials=credentials,
            attempts=self.attempts,
            retry_backoff=self.retry_backoff,
            timeout=self.timeout,
        )
        collector = ResultCollector()

        logger.info(
            f"Cloning {len(jobs)} repositories with {pool.size} worker(s) to {staging_root}"
        )

        job_send, job_receive = anyio.create_memory_object_stream[CloneJob](math.inf)
        outcome_send, outcome_receive = anyio.create_memory_object_stream[CloneOutcome]()

        async with anyio.create_task_group() as tg:
            tg.start_soon(collector.drain, outcome_receive, name="clone-collector")
            async with job_send:
                for job in jobs:
                    job_send.send_nowait(job)
            await pool.run(job_receive, outcome_send)

        if not collector.finished:
            raise RuntimeError("Outcome stream closed before the collector drained it")
        result = collector.result
        logger.info(f"Clone summary: {result.succeeded} succeeded, {result.failed} failed")
        if result.failed:
            raise AggregateError(result.failed, result)
        return result
