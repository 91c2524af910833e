"""Unit tests for environment configuration."""

from __future__ import annotations

import pytest

from core.config import (
    LmdqConfig,
    parse_bool_flag,
    parse_duplicate_policy,
    parse_feed_descriptors,
    parse_fetch_timeout,
)
from core.constants import DEFAULT_INDEX_XPATHS
from core.errors import LmdqConfigError

_FEEDS = "edugain::https://mds.example.org/edugain.xml::AB:CD:01;;local::file:///tmp/local.xml::ef02"


def _set_required_env(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("LMDQ_METADATA_URL", _FEEDS)
    monkeypatch.setenv("LMDQ_BASE_FOLDER", str(tmp_path))


def test_parse_feed_descriptors_keeps_order_and_normalizes_fingerprint() -> None:
    """Feeds should be parsed in order with lower-case fingerprints."""
    feeds = parse_feed_descriptors(_FEEDS)

    assert [feed.name for feed in feeds] == ["edugain", "local"]
    assert feeds[0].source_url == "https://mds.example.org/edugain.xml"
    assert feeds[0].expected_fingerprint == "abcd01"


def test_parse_feed_descriptors_rejects_missing_field() -> None:
    """Tuples without three fields should be rejected."""
    with pytest.raises(LmdqConfigError):
        parse_feed_descriptors("edugain::https://mds.example.org/edugain.xml")


def test_parse_feed_descriptors_rejects_empty_field() -> None:
    """Every tuple field must be set."""
    with pytest.raises(LmdqConfigError):
        parse_feed_descriptors("edugain::::abcd")


def test_parse_feed_descriptors_rejects_path_like_name() -> None:
    """Feed names become directory names and cannot contain separators."""
    with pytest.raises(LmdqConfigError):
        parse_feed_descriptors("../escape::https://mds/feed.xml::abcd")


def test_parse_feed_descriptors_rejects_non_hex_fingerprint() -> None:
    """Fingerprints must be hex digests."""
    with pytest.raises(LmdqConfigError):
        parse_feed_descriptors("edugain::https://mds/feed.xml::not-hex")


def test_from_env_loads_defaults(monkeypatch, tmp_path) -> None:
    """Unset optional variables should fall back to defaults."""
    _set_required_env(monkeypatch, tmp_path)

    config = LmdqConfig.from_env()

    assert config.live_link_path == tmp_path.resolve() / "lmdqdata"
    assert config.data_folder_prefix == "lmdqdata_"
    assert config.index_xpaths == DEFAULT_INDEX_XPATHS
    assert config.duplicate_policy == "overwrite"
    assert not config.insecure_transport


def test_from_env_requires_metadata_url(monkeypatch, tmp_path) -> None:
    """A missing feed list is a config error."""
    monkeypatch.delenv("LMDQ_METADATA_URL", raising=False)
    monkeypatch.setenv("LMDQ_BASE_FOLDER", str(tmp_path))

    with pytest.raises(LmdqConfigError):
        LmdqConfig.from_env()


def test_from_env_rejects_duplicate_feed_names(monkeypatch, tmp_path) -> None:
    """Two feeds cannot share a snapshot subdirectory."""
    monkeypatch.setenv("LMDQ_METADATA_URL", "a::file:///x::ab;;a::file:///y::cd")
    monkeypatch.setenv("LMDQ_BASE_FOLDER", str(tmp_path))

    with pytest.raises(LmdqConfigError):
        LmdqConfig.from_env()


def test_from_env_reserves_discovery_folder_name(monkeypatch, tmp_path) -> None:
    """A feed named like the discovery folder collides when discovery is enabled."""
    monkeypatch.setenv("LMDQ_METADATA_URL", "discofeed::file:///x::ab")
    monkeypatch.setenv("LMDQ_BASE_FOLDER", str(tmp_path))
    monkeypatch.setenv("LMDQ_DISCOVERY_URL", "https://mds.example.org/disco.jsgz")

    with pytest.raises(LmdqConfigError):
        LmdqConfig.from_env()


def test_from_env_rejects_symlink_matching_prefix(monkeypatch, tmp_path) -> None:
    """The live link must not look like a snapshot directory."""
    _set_required_env(monkeypatch, tmp_path)
    monkeypatch.setenv("LMDQ_SYMLINK_NAME", "lmdqdata_live")

    with pytest.raises(LmdqConfigError):
        LmdqConfig.from_env()


def test_from_env_reads_optional_overrides(monkeypatch, tmp_path) -> None:
    """Optional variables should override defaults."""
    _set_required_env(monkeypatch, tmp_path)
    monkeypatch.setenv("LMDQ_INDEX_XPATHS", "./@entityID;; ./md:Organization/@x ")
    monkeypatch.setenv("LMDQ_DUPLICATE_POLICY", "Error")
    monkeypatch.setenv("LMDQ_FETCH_TIMEOUT", "2.5")
    monkeypatch.setenv("LMDQ_INSECURE_TRANSPORT", "yes")

    config = LmdqConfig.from_env()

    assert config.index_xpaths == ("./@entityID", "./md:Organization/@x")
    assert config.duplicate_policy == "error"
    assert config.fetch_timeout == 2.5
    assert config.insecure_transport


def test_parse_duplicate_policy_rejects_unknown_value() -> None:
    """Only the documented duplicate policies are accepted."""
    with pytest.raises(LmdqConfigError):
        parse_duplicate_policy("ignore")


@pytest.mark.parametrize("raw_value", ["0", "-1", "soon"])
def test_parse_fetch_timeout_rejects_invalid_values(raw_value: str) -> None:
    """Timeouts must be positive numbers."""
    with pytest.raises(LmdqConfigError):
        parse_fetch_timeout(raw_value)


def test_parse_bool_flag_rejects_unknown_value() -> None:
    """Boolean flags should not guess at unrecognized values."""
    with pytest.raises(LmdqConfigError):
        parse_bool_flag("LMDQ_INSECURE_TRANSPORT", "maybe")
