"""Entity decomposition into content-addressed lookup files.

This module walks a validated aggregate, serializes each EntityDescriptor
to a self-contained fragment, and writes it under the SHA-1 of its
entityID and of every secondary index value (e.g. IdP SSO locations).
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Iterator, Sequence

from lxml import etree

from core.constants import ENTITY_XPATH, SNAPSHOT_DIR_MODE, XML_NAMESPACES
from core.errors import DuplicateEntityError, IndexingError, LmdqConfigError
from core.logging_config import get_logger
from core.types import DuplicatePolicy, EntityRecord, IndexSummary
from store.content_address import content_address

_LOGGER = get_logger(__name__)


class EntityIndexer:
    """Writes one feed's entities into a snapshot feed directory."""

    def __init__(
        self,
        index_xpaths: Sequence[str],
        duplicate_policy: DuplicatePolicy = "overwrite",
    ) -> None:
        """Compile secondary index targets.

        Args:
            index_xpaths: XPath expressions evaluated relative to each entity.
            duplicate_policy: Handling of repeated entityIDs within a feed.

        Raises:
            LmdqConfigError: If an XPath expression does not compile.
        """
        self._index_xpaths = compile_index_xpaths(index_xpaths)
        self._duplicate_policy = duplicate_policy

    def iter_entities(self, tree: etree._ElementTree) -> Iterator[EntityRecord]:
        """Yield entity records in document order.

        Raises:
            IndexingError: If an entity has no entityID.
        """
        for entity in tree.xpath(ENTITY_XPATH, namespaces=XML_NAMESPACES):
            entity_id = entity.get("entityID")
            if not entity_id:
                raise IndexingError(
                    f"EntityDescriptor on line {entity.sourceline} has no entityID. "
                    "Every entity must carry a non-empty entityID."
                )
            yield EntityRecord(
                entity_id=entity_id,
                fragment=serialize_entity(entity),
                endpoint_locations=tuple(self._locations(entity)),
            )

    def index(self, tree: etree._ElementTree, destination_dir: Path) -> IndexSummary:
        """Write primary and secondary lookup files for every entity.

        Args:
            tree: Validated aggregate.
            destination_dir: Feed directory inside a not yet live snapshot.
                It must not exist yet.

        Returns:
            Counts of written entities and lookup files.

        Raises:
            IndexingError: If the directory or any file cannot be written.
            DuplicateEntityError: If an entityID repeats under the error policy.
        """
        _create_feed_dir(destination_dir)
        seen: set[str] = set()
        entity_count = 0
        secondary_count = 0
        duplicate_count = 0
        for record in self.iter_entities(tree):
            if record.entity_id in seen:
                duplicate_count += 1
                self._handle_duplicate(record.entity_id, destination_dir)
            seen.add(record.entity_id)
            _write_lookup_file(destination_dir, record.entity_id, record.fragment)
            entity_count += 1
            for location in record.endpoint_locations:
                _write_lookup_file(destination_dir, location, record.fragment)
                secondary_count += 1
        _LOGGER.info(
            "feed_indexed",
            feed_dir=str(destination_dir),
            entity_count=entity_count,
            secondary_count=secondary_count,
            duplicate_count=duplicate_count,
        )
        return IndexSummary(
            feed_dir=destination_dir,
            entity_count=entity_count,
            secondary_count=secondary_count,
            duplicate_count=duplicate_count,
        )

    def _locations(self, entity: etree._Element) -> Iterator[str]:
        for xpath in self._index_xpaths:
            result = xpath(entity)
            values = result if isinstance(result, list) else [result]
            for value in values:
                text = value.text if isinstance(value, etree._Element) else value
                if isinstance(text, str) and text:
                    yield str(text)

    def _handle_duplicate(self, entity_id: str, destination_dir: Path) -> None:
        if self._duplicate_policy == "error":
            raise DuplicateEntityError(
                f"Duplicate entityID '{entity_id}' in {destination_dir.name}. "
                "Fix the feed or set the duplicate policy to warn or overwrite."
            )
        if self._duplicate_policy == "warn":
            _LOGGER.warning(
                "duplicate_entity_id", entity_id=entity_id, feed_dir=str(destination_dir)
            )


def compile_index_xpaths(index_xpaths: Sequence[str]) -> tuple[etree.XPath, ...]:
    """Compile secondary index XPath targets with metadata namespaces.

    Raises:
        LmdqConfigError: If an expression is not valid XPath.
    """
    compiled: list[etree.XPath] = []
    for expression in index_xpaths:
        try:
            compiled.append(etree.XPath(expression, namespaces=XML_NAMESPACES))
        except etree.XPathSyntaxError as error:
            raise LmdqConfigError(
                f"Invalid index XPath '{expression}': {error}. Fix LMDQ_INDEX_XPATHS."
            ) from error
    return tuple(compiled)


def serialize_entity(entity: etree._Element) -> bytes:
    """Serialize an entity subtree as a standalone XML document.

    Every namespace declaration in scope at the entity is redeclared on the
    fragment root, including prefixes only referenced from attribute values
    such as ``xsi:type="xs:string"``, so the fragment parses on its own.
    """
    fragment = etree.Element(entity.tag, attrib=dict(entity.attrib), nsmap=entity.nsmap)
    fragment.text = entity.text
    for child in entity:
        fragment.append(copy.deepcopy(child))
    return etree.tostring(fragment, xml_declaration=True, encoding="UTF-8")


def _create_feed_dir(destination_dir: Path) -> None:
    try:
        destination_dir.mkdir(mode=SNAPSHOT_DIR_MODE)
    except OSError as error:
        raise IndexingError(
            f"Failed to create feed directory {destination_dir}: {error}. "
            "Feed names must be unique within a snapshot."
        ) from error


def _write_lookup_file(destination_dir: Path, key: str, fragment: bytes) -> None:
    target = destination_dir / content_address(key)
    try:
        target.write_bytes(fragment)
    except OSError as error:
        raise IndexingError(
            f"Failed to write lookup file {target} for '{key}': {error}. "
            "Check free disk space and permissions."
        ) from error
