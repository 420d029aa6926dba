"""Concurrent bare mirror cloning of repository lists."""
from __future__ import annotations

from cloner.client import ClientAdapter, CloneError
from cloner.collector import ResultCollector
from cloner.orchestrator import AggregateError, CloneOrchestrator
from cloner.pool import CloneTimeout, WorkerPool

__all__ = [
    "AggregateError",
    "ClientAdapter",
    "CloneError",
    "CloneOrchestrator",
    "CloneTimeout",
    "ResultCollector",
    "WorkerPool",
]
