#!/usr/bin/env python
"""Example of mirroring repositories into a staging directory."""
from __future__ import annotations

import logging
from pathlib import Path

import anyio

from cloner.orchestrator import AggregateError, CloneOrchestrator
from models.repository import RepositorySpec

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


async def main() -> None:
    """Run the repository mirroring example."""
    # Define repositories to mirror
    repos = [
        RepositorySpec(name="black.git", url="https://github.com/psf/black", path="github/psf"),
        RepositorySpec(name="ruff.git", url="https://github.com/astral-sh/ruff", path="github/astral-sh"),
    ]

    # Set staging directory
    staging = Path("./mirrored_repos")

    try:
        result = await CloneOrchestrator().run(repos, staging, concurrency=2)
        print(f"Successfully mirrored {result.succeeded} repositories into {staging}")
    except AggregateError as e:
        print(f"Error: {e}")
        for outcome in e.result.failures:
            print(f"  - {outcome.url}: {outcome.reason}")


if __name__ == "__main__":
    anyio.run(main)
