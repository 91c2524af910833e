"""Runtime configuration model for lMDQ.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, cast

from core.constants import (
    DEFAULT_DATA_FOLDER_PREFIX,
    DEFAULT_DISCOVERY_FILE_NAME,
    DEFAULT_DUPLICATE_POLICY,
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_INDEX_XPATHS,
    DEFAULT_SCHEMA_PATH,
    DEFAULT_SYMLINK_NAME,
    DISCOVERY_FOLDER_NAME,
    FEED_FIELD_SEPARATOR,
    FEED_SEPARATOR,
    SUPPORTED_DUPLICATE_POLICIES,
)
from core.errors import LmdqConfigError
from core.types import DuplicatePolicy, FeedDescriptor

_FINGERPRINT_PATTERN = re.compile(r"^[0-9a-f]+$")
_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


@dataclass(frozen=True)
class LmdqConfig:
    """Validated runtime configuration.

    Attributes:
        feeds: Configured feeds in processing order.
        base_folder: Directory holding snapshot directories and the live link.
        data_folder_prefix: Snapshot directory name prefix.
        symlink_name: Live link name under the base folder.
        schema_path: XSD used for metadata schema validation.
        discovery_url: Optional discovery feed copied into each snapshot.
        discovery_file_name: File name for the discovery feed copy.
        index_xpaths: Secondary index XPath targets evaluated per entity.
        duplicate_policy: Handling of repeated entityIDs within a feed.
        fetch_timeout: Network timeout in seconds for each fetch.
        insecure_transport: Skip TLS certificate verification when fetching.
    """

    feeds: tuple[FeedDescriptor, ...]
    base_folder: Path
    data_folder_prefix: str = DEFAULT_DATA_FOLDER_PREFIX
    symlink_name: str = DEFAULT_SYMLINK_NAME
    schema_path: Path = DEFAULT_SCHEMA_PATH
    discovery_url: str | None = None
    discovery_file_name: str = DEFAULT_DISCOVERY_FILE_NAME
    index_xpaths: tuple[str, ...] = DEFAULT_INDEX_XPATHS
    duplicate_policy: DuplicatePolicy = "overwrite"
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    insecure_transport: bool = False

    @property
    def live_link_path(self) -> Path:
        """Return the live link location."""
        return self.base_folder / self.symlink_name

    @classmethod
    def from_env(cls) -> "LmdqConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            LmdqConfigError: If environment values are missing or invalid.
        """
        feeds = parse_feed_descriptors(_required_env("LMDQ_METADATA_URL"))
        base_folder = Path(_required_env("LMDQ_BASE_FOLDER")).expanduser().resolve()
        discovery_url = os.getenv("LMDQ_DISCOVERY_URL") or None
        index_xpaths_value = os.getenv("LMDQ_INDEX_XPATHS")
        index_xpaths = (
            split_index_xpaths(index_xpaths_value) if index_xpaths_value else DEFAULT_INDEX_XPATHS
        )
        config = cls(
            feeds=feeds,
            base_folder=base_folder,
            data_folder_prefix=os.getenv("LMDQ_DATA_FOLDER_PREFIX", DEFAULT_DATA_FOLDER_PREFIX),
            symlink_name=os.getenv("LMDQ_SYMLINK_NAME", DEFAULT_SYMLINK_NAME),
            schema_path=Path(os.getenv("LMDQ_SCHEMA_PATH", str(DEFAULT_SCHEMA_PATH))).expanduser(),
            discovery_url=discovery_url,
            discovery_file_name=os.getenv("LMDQ_DISCOVERY_FILE_NAME", DEFAULT_DISCOVERY_FILE_NAME),
            index_xpaths=index_xpaths,
            duplicate_policy=parse_duplicate_policy(
                os.getenv("LMDQ_DUPLICATE_POLICY", DEFAULT_DUPLICATE_POLICY)
            ),
            fetch_timeout=parse_fetch_timeout(
                os.getenv("LMDQ_FETCH_TIMEOUT", str(DEFAULT_FETCH_TIMEOUT_SECONDS))
            ),
            insecure_transport=parse_bool_flag(
                "LMDQ_INSECURE_TRANSPORT", os.getenv("LMDQ_INSECURE_TRANSPORT", "false")
            ),
        )
        validate_config(config)
        return config


def parse_feed_descriptors(raw_value: str) -> tuple[FeedDescriptor, ...]:
    """Parse ``name::url::fingerprint`` tuples separated by ``;;``.

    Args:
        raw_value: Raw feed configuration string.

    Returns:
        Feed descriptors in configured order.

    Raises:
        LmdqConfigError: If any tuple is malformed or has empty fields.
    """
    feeds: list[FeedDescriptor] = []
    for raw_feed in raw_value.split(FEED_SEPARATOR):
        fields = raw_feed.strip().split(FEED_FIELD_SEPARATOR)
        if len(fields) != 3:
            raise LmdqConfigError(
                f"Wrong feed format '{raw_feed}': expected name::url::fingerprint. "
                f"Separate feeds with '{FEED_SEPARATOR}'."
            )
        name, url, fingerprint = (field.strip() for field in fields)
        if not name or not url or not fingerprint:
            raise LmdqConfigError(
                f"Feed, url and fingerprint must all be set in '{raw_feed}'. "
                "Fill in every field of the feed tuple."
            )
        feeds.append(build_feed_descriptor(name, url, fingerprint))
    return tuple(feeds)


def build_feed_descriptor(name: str, url: str, fingerprint: str) -> FeedDescriptor:
    """Build one feed descriptor with a normalized fingerprint.

    Raises:
        LmdqConfigError: If the name or fingerprint is unusable.
    """
    if "/" in name or "\\" in name or name in (".", ".."):
        raise LmdqConfigError(
            f"Feed name '{name}' cannot be used as a directory name. "
            "Use a name without path separators."
        )
    normalized = normalize_fingerprint(fingerprint)
    if not _FINGERPRINT_PATTERN.match(normalized):
        raise LmdqConfigError(
            f"Fingerprint '{fingerprint}' for feed '{name}' is not a hex digest. "
            "Use the hex fingerprint printed by 'lmdq fingerprint'."
        )
    return FeedDescriptor(name=name, source_url=url, expected_fingerprint=normalized)


def normalize_fingerprint(fingerprint: str) -> str:
    """Return a fingerprint in lower-case hex without separators."""
    return fingerprint.strip().replace(":", "").lower()


def split_index_xpaths(raw_value: str) -> tuple[str, ...]:
    """Split ``;;``-separated secondary index XPath targets."""
    return tuple(item.strip() for item in raw_value.split(FEED_SEPARATOR) if item.strip())


def parse_duplicate_policy(raw_value: str) -> DuplicatePolicy:
    """Parse the duplicate entityID policy name.

    Raises:
        LmdqConfigError: If the policy is not supported.
    """
    policy = raw_value.strip().lower()
    if policy not in SUPPORTED_DUPLICATE_POLICIES:
        raise LmdqConfigError(
            f"Unsupported duplicate policy '{raw_value}'. "
            f"Choose one of: {', '.join(SUPPORTED_DUPLICATE_POLICIES)}."
        )
    return cast(DuplicatePolicy, policy)


def parse_fetch_timeout(raw_value: str) -> float:
    """Parse the fetch timeout in seconds.

    Raises:
        LmdqConfigError: If value is not a positive number.
    """
    try:
        timeout = float(raw_value)
    except ValueError as error:
        raise LmdqConfigError(
            f"Invalid fetch timeout: expected seconds, got '{raw_value}'. "
            "Set LMDQ_FETCH_TIMEOUT to a positive number."
        ) from error
    if timeout <= 0:
        raise LmdqConfigError(
            f"Invalid fetch timeout {timeout}: must be greater than zero."
        )
    return timeout


def parse_bool_flag(name: str, raw_value: str) -> bool:
    """Parse a boolean flag from its string form.

    Raises:
        LmdqConfigError: If value is not a recognized boolean.
    """
    value = raw_value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise LmdqConfigError(f"Invalid {name} value '{raw_value}': expected true or false.")


def validate_config(config: LmdqConfig) -> None:
    """Check cross-field invariants of a config object.

    Raises:
        LmdqConfigError: If feeds are missing or names collide.
    """
    if not config.feeds:
        raise LmdqConfigError("No feeds configured. Set at least one name::url::fingerprint.")
    _validate_unique_names(config.feeds, config.discovery_url)
    if not config.data_folder_prefix or "/" in config.data_folder_prefix:
        raise LmdqConfigError(
            f"Invalid data folder prefix '{config.data_folder_prefix}': "
            "must be a non-empty name without path separators."
        )
    if not config.symlink_name or "/" in config.symlink_name:
        raise LmdqConfigError(
            f"Invalid symlink name '{config.symlink_name}': "
            "must be a non-empty name without path separators."
        )
    if config.symlink_name.startswith(config.data_folder_prefix):
        raise LmdqConfigError(
            f"Symlink name '{config.symlink_name}' starts with the data folder prefix "
            f"'{config.data_folder_prefix}'. Pick names that cannot collide."
        )


def _validate_unique_names(feeds: Sequence[FeedDescriptor], discovery_url: str | None) -> None:
    seen: set[str] = set()
    for feed in feeds:
        if feed.name in seen:
            raise LmdqConfigError(
                f"Duplicate feed name '{feed.name}'. Feed names must be unique."
            )
        seen.add(feed.name)
    if discovery_url and DISCOVERY_FOLDER_NAME in seen:
        raise LmdqConfigError(
            f"Feed name '{DISCOVERY_FOLDER_NAME}' is reserved for the discovery feed."
        )


def _required_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise LmdqConfigError(f"Missing config for '{name}'. Set the environment variable.")
    return value
