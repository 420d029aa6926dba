"""Repository backup targets and the clone jobs derived from them."""
from __future__ import annotations

from pathlib import Path, PurePosixPath

from pydantic import Field, field_validator
from pydantic.dataclasses import dataclass


def _is_contained(value: str) -> bool:
    """Return True if a relative path stays inside its parent directory."""
    path = PurePosixPath(value.replace("\\", "/"))
    return not path.is_absolute() and ".." not in path.parts


@dataclass(frozen=True)
class RepositorySpec:
    """A single repository to back up.

    Attributes:
        name: Directory name of the mirror inside ``path``
        url: Remote URL handed to the git client
        path: Relative directory under the staging root, may be empty
    """

    name: str
    url: str
    path: str = ""

    @field_validator("name", "url")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("name", "path")
    @classmethod
    def _relative(cls, value: str) -> str:
        if not _is_contained(value):
            raise ValueError(f"{value!r} must be a relative path inside the staging root")
        return value

    @property
    def relative_destination(self) -> PurePosixPath:
        """Destination relative to the staging root, normalised."""
        return PurePosixPath(self.path.replace("\\", "/")) / self.name


@dataclass(frozen=True)
class Credentials:
    """HTTP basic credentials applied to every clone in a run."""

    username: str
    secret: str = Field(repr=False)


@dataclass(frozen=True)
class CloneJob:
    """A request to mirror ``url`` into ``destination``."""

    url: str
    destination: Path

    @classmethod
    def from_spec(cls, spec: RepositorySpec, staging_root: Path) -> CloneJob:
        """Build the job for ``spec`` rooted at ``staging_root``."""
        return cls(
            url=spec.url,
            destination=Path(staging_root).joinpath(*spec.relative_destination.parts),
        )
