"""Tests for the end-to-end backup run."""
from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from backup.runner import archive_staging, create_staging_dir, run_backup
from cloner.orchestrator import AggregateError
from config.loader import BackupConfig, ConfigError
from config.settings import CodepackSettings
from packer.archive import ArchiveError


@pytest.fixture
def settings(tmp_path: Path) -> CodepackSettings:
    """Settings with an isolated staging parent directory."""
    return CodepackSettings(workers=2, staging_dir=tmp_path / "staging")


@pytest.fixture
def config() -> BackupConfig:
    return BackupConfig.model_validate(
        {
            "repos": [
                {"name": "a", "url": "u1", "path": "p1"},
                {"name": "b", "url": "u2", "path": "p1"},
                {"name": "c", "url": "u3", "path": "p2/nested"},
            ]
        }
    )


@pytest.mark.asyncio
async def test_successful_backup(config, settings, fake_adapter, archive_members, tmp_path: Path) -> None:
    """Test that every repository ends up in the archive and staging is removed."""
    output = tmp_path / "out" / "backup.tar.gz"

    result = await run_backup(config, settings, output, adapter=fake_adapter)

    assert result.succeeded == 3
    members = archive_members(output)
    for name in ("codepack/p1/a/HEAD", "codepack/p1/b/HEAD", "codepack/p2/nested/c/HEAD"):
        assert name in members
    assert members[0] == "codepack"
    assert list(settings.staging_dir.iterdir()) == []
    assert not output.with_name("backup.tar.gz.part").exists()


@pytest.mark.asyncio
async def test_clone_failure_skips_archive(config, settings, make_adapter, tmp_path: Path) -> None:
    """Test that a failed clone aborts before archiving and cleans up."""
    output = tmp_path / "backup.tar.gz"
    adapter = make_adapter(failing={"u2"})

    with pytest.raises(AggregateError) as exc_info:
        await run_backup(config, settings, output, adapter=adapter)

    assert exc_info.value.count == 1
    assert not output.exists()
    assert list(settings.staging_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_archive_failure_keeps_staging(config, settings, fake_adapter, tmp_path: Path) -> None:
    """Test that an archive error leaves the staged clones for recovery."""
    output = tmp_path / "backup.tar.gz"

    with patch("backup.runner.write_archive", side_effect=ArchiveError("disk full")):
        with pytest.raises(ArchiveError):
            await run_backup(config, settings, output, adapter=fake_adapter)

    assert not output.exists()
    assert not output.with_name("backup.tar.gz.part").exists()
    staged = list(settings.staging_dir.iterdir())
    assert len(staged) == 1
    assert (staged[0] / "p1" / "a" / "HEAD").exists()


@pytest.mark.asyncio
async def test_keep_staging_skips_archive(config, settings, fake_adapter, tmp_path: Path) -> None:
    """Test that the staged tree can be kept instead of archived."""
    output = tmp_path / "backup.tar.gz"
    keep = tmp_path / "mirrors"

    await run_backup(config, settings, output, keep_staging=keep, adapter=fake_adapter)

    assert not output.exists()
    assert (keep / "p2" / "nested" / "c" / "HEAD").exists()
    assert list(settings.staging_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_keep_staging_refuses_existing_directory(config, settings, fake_adapter, tmp_path: Path) -> None:
    """Test that an existing keep directory is rejected before anything is cloned."""
    keep = tmp_path / "mirrors"
    keep.mkdir()

    with pytest.raises(ConfigError, match="Refusing to overwrite"):
        await run_backup(config, settings, tmp_path / "out.tar.gz", keep_staging=keep, adapter=fake_adapter)

    assert fake_adapter.calls == []
    assert list(keep.iterdir()) == []
    assert not settings.staging_dir.exists() or list(settings.staging_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_no_repositories(settings, fake_adapter, archive_members, tmp_path: Path) -> None:
    """Test that an empty config produces an archive holding only the root label."""
    output = tmp_path / "empty.tar.gz"

    result = await run_backup(BackupConfig(), settings, output, adapter=fake_adapter)

    assert result.total == 0
    assert archive_members(output) == ["codepack"]


def test_archive_staging_cleans_partial_file_on_error(tmp_path: Path) -> None:
    output = tmp_path / "backup.tar.gz"

    with pytest.raises(ArchiveError):
        archive_staging(tmp_path / "missing", output, "codepack", "gz")

    assert not output.exists()
    assert not output.with_name("backup.tar.gz.part").exists()


def test_create_staging_dir(tmp_path: Path) -> None:
    staging = create_staging_dir(tmp_path / "parent")
    assert staging.parent == tmp_path / "parent"
    assert staging.name.startswith("codepack")
    assert list(staging.iterdir()) == []
