"""Shared typed models.

This module defines immutable data models used by the validator,
indexer, snapshot publisher, and orchestrator to keep interfaces explicit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal

from lxml import etree

DuplicatePolicy = Literal["overwrite", "warn", "error"]


@dataclass(frozen=True)
class FeedDescriptor:
    """One configured metadata feed.

    Attributes:
        name: Unique feed name, used as a directory segment.
        source_url: Location the aggregate is retrieved from.
        expected_fingerprint: Trusted signer key fingerprint (lower-case hex).
    """

    name: str
    source_url: str
    expected_fingerprint: str


@dataclass(frozen=True)
class ValidatedMetadata:
    """Parsed aggregate that passed schema, signature, and trust checks.

    Attributes:
        document: Parsed metadata tree, owned by the validating run.
        fingerprint: Signer key fingerprint derived from the certificate.
    """

    document: etree._ElementTree
    fingerprint: str


@dataclass(frozen=True)
class EntityRecord:
    """One entity extracted from an aggregate.

    Attributes:
        entity_id: Value of the ``entityID`` attribute.
        fragment: Self-contained serialized EntityDescriptor.
        endpoint_locations: Secondary index values in document order.
    """

    entity_id: str
    fragment: bytes
    endpoint_locations: tuple[str, ...]


@dataclass(frozen=True)
class IndexSummary:
    """Counts reported after indexing one feed."""

    feed_dir: Path
    entity_count: int
    secondary_count: int
    duplicate_count: int


@dataclass(frozen=True)
class SnapshotInfo:
    """One snapshot directory under the base folder.

    Attributes:
        path: Snapshot directory.
        created_at: UTC creation time parsed from the directory suffix.
        feeds: Feed subdirectory names present in the snapshot.
        is_live: Whether the live link currently targets this snapshot.
    """

    path: Path
    created_at: datetime
    feeds: tuple[str, ...]
    is_live: bool


@dataclass(frozen=True)
class PromotionResult:
    """Outcome of pointing the live link at a snapshot."""

    live_link: Path
    snapshot_path: Path
    previous_target: Path | None
    changed: bool
    previous_removed: bool


@dataclass(frozen=True)
class PublishRunResult:
    """Summary of a successful publish run."""

    snapshot_path: Path
    feeds: tuple[IndexSummary, ...]
    previous_target: Path | None
