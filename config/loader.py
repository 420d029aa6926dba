"""Loading and validation of the repository list."""
from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Dict, List, Union

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from models.repository import RepositorySpec

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Exception raised when the repository list is missing or malformed."""

    pass


class BackupConfig(BaseModel):
    """Parsed contents of a ``codepack.yaml`` file."""

    model_config = ConfigDict(extra="forbid")

    repos: List[RepositorySpec] = []

    @field_validator("repos", mode="before")
    @classmethod
    def _null_is_empty(cls, value: object) -> object:
        return [] if value is None else value

    @model_validator(mode="after")
    def _unique_destinations(self) -> BackupConfig:
        seen: Dict[PurePosixPath, str] = {}
        for repo in self.repos:
            destination = repo.relative_destination
            if destination in seen:
                raise ValueError(
                    f"{repo.url} and {seen[destination]} both resolve to destination {destination}"
                )
            seen[destination] = repo.url
        return self


def load_config(path: Union[str, Path]) -> BackupConfig:
    """Read and validate a repository list.

    Args:
        path: Path to the YAML configuration file

    Returns:
        The validated configuration

    Raises:
        ConfigError: If the file is missing, not valid YAML, or fails validation
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping with a 'repos' key")

    try:
        config = BackupConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info(f"Loaded {len(config.repos)} repositories from {path}")
    return config
