"""Publish run orchestration.

This module drives every configured feed through fetch, validation, and
indexing into one fresh snapshot, then promotes that snapshot. Any failure
aborts the run before promotion and leaves the partial snapshot on disk
for inspection; the current live snapshot is never touched.
"""

from __future__ import annotations

from pathlib import Path

from core.config import LmdqConfig
from core.constants import DISCOVERY_FOLDER_NAME
from core.errors import LmdqError
from core.logging_config import get_logger
from core.types import FeedDescriptor, IndexSummary, PublishRunResult
from ingest.discovery_feed import write_discovery_feed
from ingest.feed_source import FeedSource
from metadata.indexer import EntityIndexer
from metadata.validator import validate_metadata
from store.snapshot_store import SnapshotPublisher

_LOGGER = get_logger(__name__)


class PublishRunner:
    """Runs one fetch, validate, index, and promote cycle."""

    def __init__(
        self,
        config: LmdqConfig,
        source: FeedSource | None = None,
        publisher: SnapshotPublisher | None = None,
    ) -> None:
        self._config = config
        self._source = source or FeedSource(
            timeout=config.fetch_timeout,
            insecure_transport=config.insecure_transport,
        )
        self._publisher = publisher or SnapshotPublisher(
            config.base_folder,
            config.data_folder_prefix,
            config.symlink_name,
        )
        self._indexer = EntityIndexer(config.index_xpaths, config.duplicate_policy)

    def run(self) -> PublishRunResult:
        """Execute the run and return the promoted snapshot summary.

        The feed source is closed once fetching ends, whether the run
        succeeds or not.

        Raises:
            LmdqError: The first failure of any stage, tagged with the feed name.
        """
        snapshot_path = self._publisher.create_snapshot()
        try:
            summaries = tuple(
                self._publish_feed(feed, snapshot_path) for feed in self._config.feeds
            )
            self._copy_discovery_feed(snapshot_path)
        except LmdqError as error:
            _LOGGER.error(
                "snapshot_abandoned",
                snapshot=str(snapshot_path),
                feed=error.feed_name,
                stage=error.stage,
                error=str(error),
            )
            raise
        finally:
            self._source.close()
        promotion = self._publisher.promote_snapshot(snapshot_path)
        _LOGGER.info(
            "publish_run_completed",
            snapshot=str(promotion.snapshot_path),
            feed_count=len(summaries),
            entity_count=sum(summary.entity_count for summary in summaries),
        )
        return PublishRunResult(
            snapshot_path=promotion.snapshot_path,
            feeds=summaries,
            previous_target=promotion.previous_target,
        )

    def _publish_feed(self, feed: FeedDescriptor, snapshot_path: Path) -> IndexSummary:
        try:
            raw_bytes = self._source.fetch(feed.source_url)
            validated = validate_metadata(
                raw_bytes, self._config.schema_path, feed.expected_fingerprint
            )
            _LOGGER.info("metadata_validated", feed=feed.name, fingerprint=validated.fingerprint)
            return self._indexer.index(validated.document, snapshot_path / feed.name)
        except LmdqError as error:
            error.for_feed(feed.name)
            raise

    def _copy_discovery_feed(self, snapshot_path: Path) -> None:
        if not self._config.discovery_url:
            return
        try:
            data = self._source.fetch(self._config.discovery_url)
            write_discovery_feed(data, snapshot_path, self._config.discovery_file_name)
        except LmdqError as error:
            error.for_feed(DISCOVERY_FOLDER_NAME)
            raise


def run_publish(config: LmdqConfig) -> PublishRunResult:
    """Run one publish cycle with default collaborators.

    Args:
        config: Validated runtime configuration.

    Returns:
        Summary of the promoted snapshot.

    Raises:
        LmdqError: If any stage fails; the live snapshot stays unchanged.
    """
    return PublishRunner(config).run()
