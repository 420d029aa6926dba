"""Single consumer that logs clone outcomes and tallies the run."""
from __future__ import annotations

import logging

from anyio.streams.memory import MemoryObjectReceiveStream

from models.outcome import CloneOutcome, OutcomeKind, RunResult

logger = logging.getLogger(__name__)


class ResultCollector:
    """Drains the outcome stream into a :class:`RunResult`.

    Only one ``drain`` may run per collector. The stream's end-of-stream is
    the shutdown signal: it arrives after every outcome already sent.
    """

    def __init__(self) -> None:
        self.result = RunResult()
        self.draining = False
        self.finished = False

    def record(self, outcome: CloneOutcome) -> None:
        """Log one outcome and update the counters."""
        if outcome.kind is OutcomeKind.STARTED:
            logger.info(outcome.describe())
        elif outcome.kind is OutcomeKind.SUCCEEDED:
            self.result.succeeded += 1
            logger.info(outcome.describe())
        else:
            self.result.failed += 1
            self.result.failures.append(outcome)
            logger.error(outcome.describe())

    async def drain(self, outcomes: MemoryObjectReceiveStream[CloneOutcome]) -> RunResult:
        """Consume ``outcomes`` until every sender has closed its end.

        Returns:
            The final run tally
        """
        if self.draining:
            raise RuntimeError("ResultCollector can only drain one stream")
        self.draining = True

        async with outcomes:
            async for outcome in outcomes:
                self.record(outcome)

        logger.info("Cloning complete")
        self.finished = True
        return self.result
