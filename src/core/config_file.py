"""YAML configuration file loading.

This module reads the same settings as the environment loader from a
versioned YAML file, with one strict schema so mistakes surface at startup
rather than halfway through a publish run.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Sequence, cast

import yaml

from core.config import (
    LmdqConfig,
    build_feed_descriptor,
    parse_bool_flag,
    parse_duplicate_policy,
    parse_fetch_timeout,
    validate_config,
)
from core.constants import (
    CONFIG_FILE_VERSION,
    DEFAULT_DATA_FOLDER_PREFIX,
    DEFAULT_DISCOVERY_FILE_NAME,
    DEFAULT_DUPLICATE_POLICY,
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_INDEX_XPATHS,
    DEFAULT_SCHEMA_PATH,
    DEFAULT_SYMLINK_NAME,
)
from core.errors import LmdqConfigError
from core.types import FeedDescriptor

_ROOT_KEYS = frozenset(
    {
        "version",
        "feeds",
        "base_folder",
        "data_folder_prefix",
        "symlink_name",
        "schema_path",
        "discovery_url",
        "discovery_file_name",
        "index_xpaths",
        "duplicate_policy",
        "fetch_timeout",
        "insecure_transport",
    }
)
_FEED_KEYS = frozenset({"name", "url", "fingerprint"})


def load_config_file(config_path: str) -> LmdqConfig:
    """Load and validate a YAML configuration file.

    Args:
        config_path: File path to the YAML configuration.

    Returns:
        Fully validated configuration.

    Raises:
        LmdqConfigError: If the file is unreadable or schema checks fail.
    """
    config_file = Path(config_path).expanduser().resolve()
    root_mapping = _expect_mapping(_load_yaml_payload(config_file), "config root")
    _validate_root_keys(root_mapping)
    _parse_version(root_mapping)
    base_folder = _required_string(root_mapping, "base_folder")
    config = LmdqConfig(
        feeds=_parse_feeds(root_mapping),
        base_folder=_resolve_relative(config_file, base_folder),
        data_folder_prefix=_optional_string(
            root_mapping, "data_folder_prefix", DEFAULT_DATA_FOLDER_PREFIX
        ),
        symlink_name=_optional_string(root_mapping, "symlink_name", DEFAULT_SYMLINK_NAME),
        schema_path=_resolve_relative(
            config_file, _optional_string(root_mapping, "schema_path", str(DEFAULT_SCHEMA_PATH))
        ),
        discovery_url=(
            _required_string(root_mapping, "discovery_url")
            if root_mapping.get("discovery_url") is not None
            else None
        ),
        discovery_file_name=_optional_string(
            root_mapping, "discovery_file_name", DEFAULT_DISCOVERY_FILE_NAME
        ),
        index_xpaths=_parse_index_xpaths(root_mapping),
        duplicate_policy=parse_duplicate_policy(
            _optional_string(root_mapping, "duplicate_policy", DEFAULT_DUPLICATE_POLICY)
        ),
        fetch_timeout=parse_fetch_timeout(
            str(root_mapping.get("fetch_timeout", DEFAULT_FETCH_TIMEOUT_SECONDS))
        ),
        insecure_transport=parse_bool_flag(
            "insecure_transport", str(root_mapping.get("insecure_transport", False))
        ),
    )
    validate_config(config)
    return config


def _load_yaml_payload(config_file: Path) -> object:
    if not config_file.exists():
        raise LmdqConfigError(
            f"Config file does not exist at {config_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(config_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise LmdqConfigError(
            f"Failed to read config at {config_file}: {error}. Check file permissions and retry."
        ) from error
    except yaml.YAMLError as error:
        raise LmdqConfigError(
            f"Failed to parse YAML config at {config_file}: {error}. Fix YAML syntax and retry."
        ) from error
    if payload is None:
        raise LmdqConfigError(f"Config at {config_file} is empty. Define 'version' and 'feeds'.")
    return payload


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        normalized_mapping = {}
        for key, payload in value.items():
            if not isinstance(key, str):
                raise LmdqConfigError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
            normalized_mapping[key] = payload
        return normalized_mapping
    raise LmdqConfigError(
        f"Invalid {context}: expected object mapping, got {type(value).__name__}."
    )


def _expect_sequence(value: object, context: str) -> Sequence[object]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return value
    raise LmdqConfigError(f"Invalid {context}: expected list, got {type(value).__name__}.")


def _validate_root_keys(root_mapping: Mapping[str, object]) -> None:
    unknown_keys = sorted(set(root_mapping) - _ROOT_KEYS)
    if unknown_keys:
        raise LmdqConfigError(
            f"Unsupported config keys: {', '.join(unknown_keys)}. "
            f"Allowed keys: {', '.join(sorted(_ROOT_KEYS))}."
        )


def _parse_version(root_mapping: Mapping[str, object]) -> None:
    raw_version = root_mapping.get("version")
    if not isinstance(raw_version, int) or isinstance(raw_version, bool):
        raise LmdqConfigError(
            f"Config field 'version' must be an integer. Set version: {CONFIG_FILE_VERSION}."
        )
    if raw_version != CONFIG_FILE_VERSION:
        raise LmdqConfigError(
            f"Unsupported config version {raw_version}. Use version: {CONFIG_FILE_VERSION}."
        )


def _parse_feeds(root_mapping: Mapping[str, object]) -> tuple[FeedDescriptor, ...]:
    raw_feeds = _expect_sequence(root_mapping.get("feeds"), "feeds")
    feeds: list[FeedDescriptor] = []
    for index, raw_feed in enumerate(raw_feeds):
        context = f"feeds[{index}]"
        feed_mapping = _expect_mapping(raw_feed, context)
        unknown_keys = sorted(set(feed_mapping) - _FEED_KEYS)
        if unknown_keys:
            raise LmdqConfigError(f"Unsupported keys in {context}: {', '.join(unknown_keys)}.")
        feeds.append(
            build_feed_descriptor(
                _required_string(feed_mapping, "name", context),
                _required_string(feed_mapping, "url", context),
                _required_string(feed_mapping, "fingerprint", context),
            )
        )
    return tuple(feeds)


def _parse_index_xpaths(root_mapping: Mapping[str, object]) -> tuple[str, ...]:
    if "index_xpaths" not in root_mapping:
        return DEFAULT_INDEX_XPATHS
    raw_xpaths = _expect_sequence(root_mapping["index_xpaths"], "index_xpaths")
    xpaths: list[str] = []
    for raw_xpath in raw_xpaths:
        if not isinstance(raw_xpath, str) or not raw_xpath.strip():
            raise LmdqConfigError("Every entry of 'index_xpaths' must be a non-empty string.")
        xpaths.append(raw_xpath.strip())
    return tuple(xpaths)


def _required_string(
    mapping: Mapping[str, object], field_name: str, context: str = "config"
) -> str:
    value = mapping.get(field_name)
    if not isinstance(value, str) or not value.strip():
        raise LmdqConfigError(f"Field '{field_name}' in {context} must be a non-empty string.")
    return value.strip()


def _optional_string(mapping: Mapping[str, object], field_name: str, default_value: str) -> str:
    if field_name not in mapping:
        return default_value
    return _required_string(mapping, field_name)


def _resolve_relative(config_file: Path, raw_path: str) -> Path:
    path = Path(raw_path).expanduser()
    if not path.is_absolute():
        path = config_file.parent / path
    return path.resolve()
