"""End-to-end backup run: stage, clone, archive, clean up."""
from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

import anyio
import anyio.to_thread

from cloner.client import ClientAdapter
from cloner.orchestrator import CloneOrchestrator
from config.loader import BackupConfig, ConfigError
from config.settings import CodepackSettings
from models.outcome import RunResult
from packer.archive import ArchiveError, write_archive

logger = logging.getLogger(__name__)


def create_staging_dir(parent: Optional[Path] = None) -> Path:
    """Create an empty temporary staging directory."""
    if parent is not None:
        parent.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix="codepack", dir=parent))


def remove_staging_dir(staging: Path) -> None:
    logger.info("Cleaning up temporary directory...")
    shutil.rmtree(staging, ignore_errors=True)


def archive_staging(
    staging: Path,
    output: Path,
    root_label: str,
    compression: str,
) -> int:
    """Archive ``staging`` into ``output`` atomically.

    The archive is written to ``<output>.part`` and renamed on success, so a
    failed run never leaves a truncated archive behind.

    Raises:
        ArchiveError: If the archive cannot be written
    """
    partial = output.with_name(output.name + ".part")
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(partial, "wb") as f:
            count = write_archive(staging, f, root_label=root_label, compression=compression)
        partial.replace(output)
    except ArchiveError:
        partial.unlink(missing_ok=True)
        raise
    except OSError as e:
        partial.unlink(missing_ok=True)
        raise ArchiveError(f"Cannot write archive {output}: {e}") from e
    return count


async def run_backup(
    config: BackupConfig,
    settings: CodepackSettings,
    output: Union[str, Path],
    keep_staging: Optional[Union[str, Path]] = None,
    adapter: Optional[ClientAdapter] = None,
) -> RunResult:
    """Clone every configured repository and archive the result.

    Args:
        config: Repositories to back up
        settings: Worker count, retry policy, credentials and archive options
        output: Path of the archive to produce
        keep_staging: When set, the staged tree is moved here instead of archived
        adapter: Clone client, defaults to :class:`ClientAdapter`

    Returns:
        The clone tally

    Raises:
        ConfigError: If ``keep_staging`` already exists; nothing is cloned
        AggregateError: If any clone failed; nothing is archived
        ArchiveError: If archiving failed; the staging directory is kept
    """
    output = Path(output)
    target = Path(keep_staging) if keep_staging is not None else None
    if target is not None and target.exists():
        raise ConfigError(f"Refusing to overwrite existing directory {target}")

    staging = create_staging_dir(settings.staging_dir)
    logger.info(f"Staging repositories in {staging}")

    orchestrator = CloneOrchestrator(
        adapter=adapter,
        attempts=settings.clone_attempts,
        retry_backoff=settings.retry_backoff,
        timeout=settings.clone_timeout,
    )
    try:
        result = await orchestrator.run(
            config.repos,
            staging,
            concurrency=settings.workers,
            credentials=settings.credentials(),
        )
    except BaseException:
        remove_staging_dir(staging)
        raise

    if target is not None:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(staging), str(target))
        logger.info(f"Kept staged repositories in {target}, skipping archive")
        return result

    try:
        await anyio.to_thread.run_sync(
            archive_staging,
            staging,
            output,
            settings.archive_root,
            settings.archive_compression,
        )
    except ArchiveError:
        logger.error(f"Archiving failed, staged repositories left in {staging}")
        raise

    logger.info(f"Wrote archive {output}")
    remove_staging_dir(staging)
    return result
