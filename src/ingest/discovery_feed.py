"""Discovery service feed passthrough.

The discovery feed is copied into each snapshot byte for byte; it has no
validation of its own.
"""

from __future__ import annotations

from pathlib import Path

from core.constants import DISCOVERY_FOLDER_NAME, SNAPSHOT_DIR_MODE
from core.errors import IndexingError


def write_discovery_feed(data: bytes, snapshot_path: Path, file_name: str) -> Path:
    """Write discovery feed bytes to ``<snapshot>/discofeed/<file_name>``.

    Raises:
        IndexingError: If the folder or file cannot be written.
    """
    target = snapshot_path / DISCOVERY_FOLDER_NAME / file_name
    try:
        target.parent.mkdir(mode=SNAPSHOT_DIR_MODE)
        target.write_bytes(data)
    except OSError as error:
        raise IndexingError(f"Failed to write discovery feed {target}: {error}.") from error
    return target
