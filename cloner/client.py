"""Bare mirror cloning through libgit2."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional, Union

import pygit2

from models.repository import Credentials

logger = logging.getLogger(__name__)

MIRROR_REFSPEC = "+refs/*:refs/*"


class CloneError(Exception):
    """Exception raised when a repository cannot be mirrored."""

    def __init__(self, url: str, destination: Union[str, Path], cause: object):
        """Initialize with the job context and the underlying cause.

        Args:
            url: The repository URL that failed to clone
            destination: The path the mirror was written to
            cause: The error message or exception from the git client
        """
        self.url = url
        self.destination = Path(destination)
        self.cause = cause
        super().__init__(f"Failed to clone {url} to {destination}: {cause}")


def _create_mirror_remote(repo: pygit2.Repository, name: Union[str, bytes], url: Union[str, bytes]) -> pygit2.Remote:
    """Remote factory for clone_repository that mirrors every ref."""
    if isinstance(name, bytes):
        name = name.decode()
    if isinstance(url, bytes):
        url = url.decode()
    remote = repo.remotes.create(name, url, MIRROR_REFSPEC)
    repo.config[f"remote.{name}.mirror"] = True
    return remote


class ClientAdapter:
    """Blocking ``git clone --mirror`` for a single repository.

    The adapter never retries; retry policy belongs to the caller.
    """

    def clone(
        self,
        url: str,
        destination: Union[str, Path],
        credentials: Optional[Credentials] = None,
    ) -> None:
        """Mirror ``url`` as a bare repository at ``destination``.

        Args:
            url: Remote repository URL
            destination: Directory to create the bare mirror in
            credentials: Optional username/secret for HTTP authentication

        Raises:
            CloneError: If the destination is not empty or the clone fails
        """
        destination = Path(destination)
        existed = destination.exists()
        if existed and (not destination.is_dir() or any(destination.iterdir())):
            raise CloneError(url, destination, "destination exists and is not an empty directory")

        callbacks = None
        if credentials is not None:
            callbacks = pygit2.RemoteCallbacks(
                credentials=pygit2.UserPass(credentials.username, credentials.secret)
            )

        logger.debug(f"Mirroring {url} into {destination}")
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            pygit2.clone_repository(
                url,
                str(destination),
                bare=True,
                remote=_create_mirror_remote,
                callbacks=callbacks,
            )
        except (pygit2.GitError, ValueError, KeyError, OSError) as e:
            if not existed and destination.exists():
                shutil.rmtree(destination, ignore_errors=True)
            raise CloneError(url, destination, e) from e
