"""Streaming tar archive writer for the staging tree.

The whole tree under ``source_root`` is written in one pass through tarfile's
stream mode, so the output sink never needs to support seeking. Entries are
emitted in sorted, depth-first order under a fixed root label:

    codepack
    codepack/github
    codepack/github/project.git
    codepack/github/project.git/HEAD
    ...

Any error while walking the tree or writing the stream aborts the archive.
"""
from __future__ import annotations

import logging
import os
import tarfile
from pathlib import Path
from typing import BinaryIO, Iterator, Literal, Union

logger = logging.getLogger(__name__)

DEFAULT_ROOT_LABEL = "codepack"

Compression = Literal["gz", "bz2", "xz"]

EXTENSIONS = {"gz": ".tar.gz", "bz2": ".tar.bz2", "xz": ".tar.xz"}


class ArchiveError(Exception):
    """Exception raised when the staging tree cannot be archived."""

    pass


def iter_tree(source_root: Union[str, Path]) -> Iterator[Path]:
    """Yield every entry below ``source_root`` in sorted depth-first order.

    Symlinks are yielded but never followed. Unreadable directories raise.

    Args:
        source_root: Directory to walk

    Yields:
        Path of each file, directory and symlink, excluding the root itself
    """
    with os.scandir(source_root) as it:
        entries = sorted(it, key=lambda entry: entry.name)
    for entry in entries:
        path = Path(entry.path)
        yield path
        if entry.is_dir(follow_symlinks=False):
            yield from iter_tree(path)


def archive_name(source_root: Path, path: Path, root_label: str) -> str:
    """Archive member name for ``path``, always with forward slashes."""
    relative = path.relative_to(source_root)
    if relative == Path("."):
        return root_label
    return f"{root_label}/{relative.as_posix()}"


def _add_entry(tar: tarfile.TarFile, source_root: Path, path: Path, root_label: str) -> None:
    info = tar.gettarinfo(str(path), arcname=archive_name(source_root, path, root_label))
    if info is None:
        raise ArchiveError(f"Cannot archive special file {path}")
    if info.isreg():
        with open(path, "rb") as f:
            tar.addfile(info, f)
    else:
        tar.addfile(info)


def write_archive(
    source_root: Union[str, Path],
    output: BinaryIO,
    root_label: str = DEFAULT_ROOT_LABEL,
    compression: Compression = "gz",
) -> int:
    """Write ``source_root`` to ``output`` as a compressed tar stream.

    Args:
        source_root: Directory to archive
        output: Writable binary sink, does not need to be seekable
        root_label: Name of the top-level directory inside the archive
        compression: One of ``gz``, ``bz2`` or ``xz``

    Returns:
        Number of archive members written, including the root entry

    Raises:
        ArchiveError: If any entry cannot be read or the stream cannot be written
    """
    source_root = Path(source_root)
    if compression not in EXTENSIONS:
        raise ArchiveError(f"Unsupported compression: {compression}")
    if not source_root.is_dir():
        raise ArchiveError(f"Source directory does not exist: {source_root}")

    logger.info(f"Compressing {source_root} into a {compression} archive")
    count = 0
    current = source_root
    try:
        with tarfile.open(fileobj=output, mode=f"w|{compression}") as tar:
            _add_entry(tar, source_root, source_root, root_label)
            count += 1
            for path in iter_tree(source_root):
                current = path
                _add_entry(tar, source_root, path, root_label)
                count += 1
    except (OSError, tarfile.TarError) as e:
        raise ArchiveError(f"Failed to archive {current}: {e}") from e

    logger.info(f"Archived {count} entries")
    return count
