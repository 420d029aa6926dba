"""Archive packaging of the staging tree."""
from __future__ import annotations

from packer.archive import ArchiveError, write_archive

__all__ = ["ArchiveError", "write_archive"]
