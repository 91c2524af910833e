"""Snapshot directories and the live link.

This module allocates timestamped snapshot directories under a base
folder and promotes a fully written snapshot by swapping the live
symbolic link. Readers of the live link always see one complete snapshot:
the new link is created beside the old one and renamed over it, so no
moment exists where the link is missing.
"""

from __future__ import annotations

import os
import re
import shutil
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from core.constants import SNAPSHOT_DIR_MODE
from core.errors import PublishError
from core.logging_config import get_logger
from core.types import PromotionResult, SnapshotInfo

_LOGGER = get_logger(__name__)


class SnapshotPublisher:
    """Create, promote, list, and reclaim snapshots under one base folder."""

    def __init__(
        self,
        base_folder: Path,
        folder_prefix: str,
        symlink_name: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize publisher paths.

        Args:
            base_folder: Directory holding snapshots and the live link.
            folder_prefix: Snapshot directory name prefix.
            symlink_name: Live link name under ``base_folder``.
            clock: Source of UNIX timestamps for snapshot names.
        """
        self._base_folder = base_folder
        self._folder_prefix = folder_prefix
        self._clock = clock
        self._name_pattern = re.compile(rf"^{re.escape(folder_prefix)}(\d+)$")
        self.live_link = base_folder / symlink_name

    def create_snapshot(self) -> Path:
        """Allocate a new empty snapshot directory.

        Raises:
            PublishError: If the directory cannot be created.
        """
        return create_snapshot(self._base_folder, self._folder_prefix, int(self._clock()))

    def promote_snapshot(self, snapshot_path: Path) -> PromotionResult:
        """Point the live link at ``snapshot_path`` and remove the previous target.

        Raises:
            PublishError: If the live link cannot be replaced.
        """
        return promote_snapshot(self.live_link, snapshot_path)

    def live_target(self) -> Path | None:
        """Return the snapshot the live link resolves to, if any."""
        return resolve_live_link(self.live_link)

    def list_snapshots(self) -> list[SnapshotInfo]:
        """List snapshot directories sorted by creation time."""
        if not self._base_folder.is_dir():
            return []
        live_target = self.live_target()
        snapshots: list[SnapshotInfo] = []
        for entry in self._base_folder.iterdir():
            match = self._name_pattern.match(entry.name)
            if match is None or entry.is_symlink() or not entry.is_dir():
                continue
            snapshots.append(
                SnapshotInfo(
                    path=entry,
                    created_at=datetime.fromtimestamp(int(match.group(1)), tz=timezone.utc),
                    feeds=tuple(sorted(child.name for child in entry.iterdir() if child.is_dir())),
                    is_live=live_target is not None and entry.resolve() == live_target,
                )
            )
        return sorted(snapshots, key=lambda item: (item.created_at, item.path.name))

    def reclaim_snapshots(self) -> list[Path]:
        """Delete every snapshot directory the live link does not target.

        Returns:
            Removed snapshot directories.

        Raises:
            PublishError: If a directory cannot be removed.
        """
        removed: list[Path] = []
        for snapshot in self.list_snapshots():
            if snapshot.is_live:
                continue
            try:
                shutil.rmtree(snapshot.path)
            except OSError as error:
                raise PublishError(
                    f"Failed to reclaim snapshot {snapshot.path}: {error}. "
                    "Check permissions on the base folder."
                ) from error
            removed.append(snapshot.path)
            _LOGGER.info("snapshot_reclaimed", snapshot=str(snapshot.path))
        return removed


def create_snapshot(base_folder: Path, folder_prefix: str, timestamp: int) -> Path:
    """Create ``<base_folder>/<folder_prefix><timestamp>``.

    Args:
        base_folder: Parent directory, created when missing.
        folder_prefix: Snapshot directory name prefix.
        timestamp: UNIX seconds used as the name suffix.

    Returns:
        Created snapshot directory.

    Raises:
        PublishError: If the directory exists already or cannot be created.
    """
    snapshot_path = base_folder / f"{folder_prefix}{timestamp}"
    try:
        base_folder.mkdir(parents=True, exist_ok=True)
        snapshot_path.mkdir(mode=SNAPSHOT_DIR_MODE)
    except OSError as error:
        raise PublishError(
            f"Create new datafolder {snapshot_path} failed: {error}. "
            "Only one publisher may run at a time."
        ) from error
    _LOGGER.info("snapshot_created", snapshot=str(snapshot_path))
    return snapshot_path


def resolve_live_link(live_link: Path) -> Path | None:
    """Return the fully resolved live link target, or ``None`` when unset or dangling."""
    if not live_link.is_symlink():
        return None
    target = Path(os.path.realpath(live_link))
    return target if target.exists() else None


def promote_snapshot(live_link: Path, snapshot_path: Path) -> PromotionResult:
    """Atomically point ``live_link`` at ``snapshot_path``.

    The previous target is resolved first. Promoting the current target
    again is a no-op. Otherwise a temporary link is created next to the
    live link and renamed over it, then the previous target directory is
    deleted. Deletion failures are logged and leave stale data on disk
    without affecting the new live link.

    Args:
        live_link: Symbolic link read by consumers.
        snapshot_path: Fully populated snapshot directory.

    Returns:
        Promotion outcome.

    Raises:
        PublishError: If the snapshot is missing, ``live_link`` is not a
            link, or the link cannot be replaced.
    """
    new_target = Path(os.path.realpath(snapshot_path))
    if not new_target.is_dir():
        raise PublishError(
            f"Cannot promote {snapshot_path}: snapshot directory does not exist."
        )
    if live_link.exists() and not live_link.is_symlink():
        raise PublishError(
            f"Refusing to replace {live_link}: it is not a symbolic link. "
            "Move it aside before publishing."
        )
    previous_target = resolve_live_link(live_link)
    if previous_target == new_target:
        _LOGGER.info("snapshot_already_live", live_link=str(live_link), snapshot=str(new_target))
        return PromotionResult(
            live_link=live_link,
            snapshot_path=new_target,
            previous_target=previous_target,
            changed=False,
            previous_removed=False,
        )
    _replace_link(live_link, new_target)
    previous_removed = _remove_previous(previous_target)
    _LOGGER.info(
        "snapshot_promoted",
        live_link=str(live_link),
        snapshot=str(new_target),
        previous=str(previous_target) if previous_target else None,
        previous_removed=previous_removed,
    )
    return PromotionResult(
        live_link=live_link,
        snapshot_path=new_target,
        previous_target=previous_target,
        changed=True,
        previous_removed=previous_removed,
    )


def _replace_link(live_link: Path, new_target: Path) -> None:
    link_dir = live_link.parent
    link_value = os.path.relpath(new_target, os.path.realpath(link_dir))
    temporary_link = link_dir / f".{live_link.name}.{os.getpid()}.tmp"
    try:
        if temporary_link.is_symlink():
            temporary_link.unlink()
        os.symlink(link_value, temporary_link)
        os.replace(temporary_link, live_link)
    except OSError as error:
        if temporary_link.is_symlink():
            temporary_link.unlink()
        raise PublishError(
            f"Failed to point {live_link} at {new_target}: {error}. "
            "The previous live link was left in place."
        ) from error


def _remove_previous(previous_target: Path | None) -> bool:
    if previous_target is None:
        return False
    try:
        shutil.rmtree(previous_target)
    except OSError as error:
        _LOGGER.warning(
            "snapshot_cleanup_failed",
            snapshot=str(previous_target),
            error=str(error),
        )
        return False
    return True
