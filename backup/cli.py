"""Command line entry point for codepack."""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

import anyio
from pydantic import ValidationError

from backup.runner import run_backup
from cloner.orchestrator import AggregateError
from config.loader import ConfigError, load_config
from config.settings import CodepackSettings
from packer.archive import EXTENSIONS, ArchiveError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_CLONE_FAILURE = 3
EXIT_ARCHIVE_ERROR = 4

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def default_output(compression: str = "gz", today: Optional[date] = None) -> Path:
    """Dated archive file name, e.g. ``2024-01-31-git-backup.tar.gz``."""
    today = today or date.today()
    return Path(f"{today.isoformat()}-git-backup{EXTENSIONS[compression]}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codepack",
        description="Mirror git repositories and pack them into a single archive",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("codepack.yaml"),
        help="Configuration file listing the repositories",
    )
    parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Output filename for the archive (default: <date>-git-backup.tar.gz)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of workers for cloning repos (default: CODEPACK_WORKERS or 10)",
    )
    parser.add_argument(
        "--keep-staging",
        type=Path,
        default=None,
        help="Move the cloned repositories to this directory instead of archiving",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write the log to this file",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def configure_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Run a backup and return the process exit code."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.log_file)

    try:
        overrides = {} if args.workers is None else {"workers": args.workers}
        settings = CodepackSettings(**overrides)
    except ValidationError as e:
        logger.error(f"Invalid settings: {e}")
        return EXIT_CONFIG_ERROR

    output = args.out or default_output(settings.archive_compression)
    logger.info(f"Output File: {output}")
    logger.info(f"Configuration File: {args.config}")

    try:
        config = load_config(args.config)
        result = anyio.run(run_backup, config, settings, output, args.keep_staging)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR
    except AggregateError as e:
        logger.error(str(e))
        return EXIT_CLONE_FAILURE
    except ArchiveError as e:
        logger.error(f"Archive error: {e}")
        return EXIT_ARCHIVE_ERROR
    except Exception:
        logger.exception("Backup failed")
        return EXIT_ERROR

    logger.info(f"Backed up {result.succeeded} repositories")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
