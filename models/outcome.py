"""Outcome messages produced by clone workers and the run tally."""
from __future__ import annotations

from dataclasses import field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic.dataclasses import dataclass

from models.repository import CloneJob


class OutcomeKind(str, Enum):
    """Kind of message a worker reports for a job."""

    STARTED = "started"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class CloneOutcome:
    """One message about a clone job.

    ``STARTED`` is informational; every job yields exactly one terminal
    outcome, either ``SUCCEEDED`` or ``FAILED``.

    Attributes:
        kind: What happened
        url: Repository URL of the job
        destination: Destination path of the job
        reason: Failure description, only set for ``FAILED``
    """

    kind: OutcomeKind
    url: str
    destination: Path
    reason: Optional[str] = None

    @classmethod
    def started(cls, job: CloneJob) -> CloneOutcome:
        return cls(OutcomeKind.STARTED, job.url, job.destination)

    @classmethod
    def succeeded(cls, job: CloneJob) -> CloneOutcome:
        return cls(OutcomeKind.SUCCEEDED, job.url, job.destination)

    @classmethod
    def failed(cls, job: CloneJob, reason: str) -> CloneOutcome:
        return cls(OutcomeKind.FAILED, job.url, job.destination, reason)

    @property
    def terminal(self) -> bool:
        return self.kind is not OutcomeKind.STARTED

    def describe(self) -> str:
        """Human readable log line for this outcome."""
        if self.kind is OutcomeKind.STARTED:
            return f"Cloning {self.url} to path {self.destination}"
        if self.kind is OutcomeKind.SUCCEEDED:
            return f"Cloned {self.url} to path {self.destination}"
        return f"Cloning {self.url} to path {self.destination} failed: {self.reason}"


@dataclass
class RunResult:
    """Aggregate of the terminal outcomes of one run.

    Attributes:
        succeeded: Number of jobs that cloned successfully
        failed: Number of jobs that failed
        failures: Failed outcomes in arrival order
    """

    succeeded: int = 0
    failed: int = 0
    failures: List[CloneOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    @property
    def ok(self) -> bool:
        return self.failed == 0
