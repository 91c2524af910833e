"""lMDQ CLI entry points.
This module exposes the publish run and operator commands.
It maps argparse commands onto pipeline and snapshot store calls.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from core.config import LmdqConfig
from core.config_file import load_config_file
from core.constants import DEFAULT_SCHEMA_PATH
from core.errors import LmdqError
from core.logging_config import get_logger
from ingest.pipeline import run_publish
from metadata.validator import metadata_fingerprint, validate_metadata
from store.snapshot_store import SnapshotPublisher

_LOGGER = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="lmdq", description="Local MDQ metadata publisher")
    parser.add_argument("--config", help="YAML config file; environment is used when omitted")
    parser.add_argument("--base-folder", help="Override the configured base folder")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_update_command(subparsers)
    _add_validate_command(subparsers)
    _add_fingerprint_command(subparsers)
    _add_snapshots_command(subparsers)
    _add_promote_command(subparsers)
    _add_reclaim_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the lMDQ CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return _dispatch(parser, args)
    except LmdqError as error:
        _LOGGER.error(
            "publish_run_failed" if args.command == "update" else "command_failed",
            command=args.command,
            stage=error.stage,
            feed=error.feed_name,
            error=str(error),
        )
        print(
            f"error stage={error.stage} feed={error.feed_name or '-'}: {error}",
            file=sys.stderr,
        )
        return 1


def _dispatch(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    if args.command == "update":
        return _run_update_command(args)
    if args.command == "validate":
        return _run_validate_command(args)
    if args.command == "fingerprint":
        return _run_fingerprint_command(args)
    if args.command == "snapshots":
        return _run_snapshots_command(args)
    if args.command == "promote":
        return _run_promote_command(args)
    if args.command == "reclaim":
        return _run_reclaim_command(args)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _load_config(args: argparse.Namespace) -> LmdqConfig:
    """Load config from file or environment with CLI overrides.

    Args:
        args: Parsed CLI args.

    Returns:
        Validated configuration.
    """
    config = load_config_file(args.config) if args.config else LmdqConfig.from_env()
    if args.base_folder:
        config = replace(config, base_folder=Path(args.base_folder).expanduser().resolve())
    return config


def _build_publisher(args: argparse.Namespace) -> SnapshotPublisher:
    config = _load_config(args)
    return SnapshotPublisher(config.base_folder, config.data_folder_prefix, config.symlink_name)


def _run_update_command(args: argparse.Namespace) -> int:
    """Handle update command.

    Args:
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    result = run_publish(_load_config(args))
    print(result.snapshot_path)
    return 0


def _run_validate_command(args: argparse.Namespace) -> int:
    """Handle validate command.

    Args:
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    raw_bytes = _read_input_file(args.file)
    validated = validate_metadata(raw_bytes, Path(args.schema), args.fingerprint)
    print(f"valid fingerprint={validated.fingerprint}")
    return 0


def _run_fingerprint_command(args: argparse.Namespace) -> int:
    """Handle fingerprint command."""
    print(metadata_fingerprint(_read_input_file(args.file)))
    return 0


def _run_snapshots_command(args: argparse.Namespace) -> int:
    """Handle snapshots command."""
    publisher = _build_publisher(args)
    for snapshot in publisher.list_snapshots():
        print(
            f"{snapshot.path}\t"
            f"{snapshot.created_at.isoformat()}\t"
            f"{','.join(snapshot.feeds) or '-'}\t"
            f"{'live' if snapshot.is_live else '-'}"
        )
    return 0


def _run_promote_command(args: argparse.Namespace) -> int:
    """Handle promote command."""
    publisher = _build_publisher(args)
    result = publisher.promote_snapshot(Path(args.snapshot).expanduser())
    print(result.snapshot_path)
    return 0


def _run_reclaim_command(args: argparse.Namespace) -> int:
    """Handle reclaim command."""
    publisher = _build_publisher(args)
    for removed in publisher.reclaim_snapshots():
        print(removed)
    return 0


def _read_input_file(file_name: str) -> bytes:
    try:
        return Path(file_name).expanduser().read_bytes()
    except OSError as error:
        print(f"error: cannot read {file_name}: {error}", file=sys.stderr)
        raise SystemExit(1) from error


def _add_update_command(subparsers: Any) -> None:
    """Register update subcommand."""
    subparsers.add_parser(
        "update",
        help="Fetch, validate, and index all feeds, then promote the new snapshot",
    )


def _add_validate_command(subparsers: Any) -> None:
    """Register validate subcommand."""
    parser = subparsers.add_parser("validate", help="Validate a local metadata file")
    parser.add_argument("file", help="Metadata aggregate file")
    parser.add_argument("--fingerprint", required=True, help="Trusted signer fingerprint")
    parser.add_argument("--schema", default=str(DEFAULT_SCHEMA_PATH), help="XSD schema path")


def _add_fingerprint_command(subparsers: Any) -> None:
    """Register fingerprint subcommand."""
    parser = subparsers.add_parser("fingerprint", help="Print a metadata file's signer fingerprint")
    parser.add_argument("file", help="Metadata aggregate file")


def _add_snapshots_command(subparsers: Any) -> None:
    """Register snapshots subcommand."""
    subparsers.add_parser("snapshots", help="List snapshot directories")


def _add_promote_command(subparsers: Any) -> None:
    """Register promote subcommand."""
    parser = subparsers.add_parser("promote", help="Point the live link at an existing snapshot")
    parser.add_argument("snapshot", help="Snapshot directory")


def _add_reclaim_command(subparsers: Any) -> None:
    """Register reclaim subcommand."""
    subparsers.add_parser("reclaim", help="Delete snapshots the live link does not target")
