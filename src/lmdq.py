"""Public SDK surface for lMDQ.

This module provides a stable import path for library users.
It re-exports the publish pipeline, its building blocks, and typed models.
"""

from __future__ import annotations

from core.config import LmdqConfig, parse_feed_descriptors
from core.config_file import load_config_file
from core.types import (
    EntityRecord,
    FeedDescriptor,
    IndexSummary,
    PromotionResult,
    PublishRunResult,
    SnapshotInfo,
    ValidatedMetadata,
)
from ingest.feed_source import FeedSource
from ingest.pipeline import PublishRunner, run_publish
from metadata.indexer import EntityIndexer
from metadata.validator import metadata_fingerprint, validate_metadata
from store.content_address import content_address
from store.snapshot_store import SnapshotPublisher, create_snapshot, promote_snapshot

__all__ = [
    "EntityIndexer",
    "EntityRecord",
    "FeedDescriptor",
    "FeedSource",
    "IndexSummary",
    "LmdqConfig",
    "PromotionResult",
    "PublishRunResult",
    "PublishRunner",
    "SnapshotInfo",
    "SnapshotPublisher",
    "ValidatedMetadata",
    "content_address",
    "create_snapshot",
    "load_config_file",
    "metadata_fingerprint",
    "parse_feed_descriptors",
    "promote_snapshot",
    "run_publish",
    "validate_metadata",
]
