"""Environment driven settings for a backup run."""
from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from models.repository import Credentials


class CodepackSettings(BaseSettings):
    """Runtime settings read from ``CODEPACK_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="CODEPACK_")

    git_user: Optional[str] = None
    git_pass: Optional[SecretStr] = None
    workers: int = Field(default=10, ge=1)
    clone_attempts: int = Field(default=1, ge=1)
    retry_backoff: float = Field(default=2.0, ge=0)
    clone_timeout: Optional[float] = Field(default=None, gt=0)
    staging_dir: Optional[Path] = None
    archive_root: str = Field(default="codepack", min_length=1)
    archive_compression: Literal["gz", "bz2", "xz"] = "gz"

    def credentials(self) -> Optional[Credentials]:
        """Credentials for every clone, only when both user and password are set."""
        if not self.git_user or self.git_pass is None:
            return None
        secret = self.git_pass.get_secret_value()
        if not secret:
            return None
        return Credentials(username=self.git_user, secret=secret)
