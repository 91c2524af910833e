"""Unit tests for snapshot creation and live link promotion."""

from __future__ import annotations

import os
import shutil

import pytest

from core.errors import PublishError
from store.content_address import content_address
from store.snapshot_store import (
    SnapshotPublisher,
    create_snapshot,
    promote_snapshot,
    resolve_live_link,
)


def _counter_clock(start: int = 1700000000):
    ticks = iter(range(start, start + 1000))
    return lambda: next(ticks)


def _publisher(tmp_path) -> SnapshotPublisher:
    return SnapshotPublisher(tmp_path, "lmdqdata_", "lmdqdata", clock=_counter_clock())


def test_create_snapshot_names_directory_with_prefix_and_timestamp(tmp_path) -> None:
    """Snapshot directories should be named prefix plus UNIX seconds."""
    snapshot = create_snapshot(tmp_path / "base", "lmdqdata_", 1700000000)

    assert snapshot == tmp_path / "base" / "lmdqdata_1700000000"
    assert snapshot.is_dir()


def test_create_snapshot_fails_on_name_collision(tmp_path) -> None:
    """Two snapshots in the same second should not share a directory."""
    create_snapshot(tmp_path, "lmdqdata_", 1700000000)

    with pytest.raises(PublishError):
        create_snapshot(tmp_path, "lmdqdata_", 1700000000)


def test_promote_first_snapshot_creates_relative_link(tmp_path) -> None:
    """The first promotion should create the live link."""
    publisher = _publisher(tmp_path)
    snapshot = publisher.create_snapshot()

    result = publisher.promote_snapshot(snapshot)

    assert result.changed and result.previous_target is None
    assert os.readlink(publisher.live_link) == snapshot.name
    assert publisher.live_target() == snapshot.resolve()


def test_promote_replaces_link_and_deletes_previous(tmp_path) -> None:
    """Promoting a new snapshot should remove the previously live one."""
    publisher = _publisher(tmp_path)
    first = publisher.create_snapshot()
    publisher.promote_snapshot(first)
    second = publisher.create_snapshot()

    result = publisher.promote_snapshot(second)

    assert result.previous_removed
    assert not first.exists()
    assert publisher.live_target() == second.resolve()


def test_promote_current_target_is_noop(tmp_path) -> None:
    """Promoting the live snapshot again should change nothing."""
    publisher = _publisher(tmp_path)
    snapshot = publisher.create_snapshot()
    publisher.promote_snapshot(snapshot)

    result = publisher.promote_snapshot(snapshot)

    assert not result.changed
    assert snapshot.is_dir()
    assert publisher.live_target() == snapshot.resolve()


def test_promote_survives_cleanup_failure(tmp_path, monkeypatch) -> None:
    """A failed delete of the old snapshot should not undo the promotion."""
    publisher = _publisher(tmp_path)
    first = publisher.create_snapshot()
    publisher.promote_snapshot(first)
    second = publisher.create_snapshot()

    def _failing_rmtree(path, *args, **kwargs) -> None:
        raise PermissionError(f"cannot remove {path}")

    monkeypatch.setattr(shutil, "rmtree", _failing_rmtree)
    result = publisher.promote_snapshot(second)

    assert result.changed and not result.previous_removed
    assert first.is_dir()
    assert publisher.live_target() == second.resolve()


def test_promote_keeps_old_link_when_replace_fails(tmp_path, monkeypatch) -> None:
    """A failed rename should leave the previous live link untouched."""
    publisher = _publisher(tmp_path)
    first = publisher.create_snapshot()
    publisher.promote_snapshot(first)
    second = publisher.create_snapshot()

    def _failing_replace(source, destination) -> None:
        raise OSError("rename failed")

    monkeypatch.setattr(os, "replace", _failing_replace)
    with pytest.raises(PublishError):
        publisher.promote_snapshot(second)

    assert publisher.live_target() == first.resolve()
    assert [path.name for path in tmp_path.iterdir() if path.name.endswith(".tmp")] == []


def test_promote_refuses_non_symlink_live_path(tmp_path) -> None:
    """A real directory at the live path should never be replaced."""
    (tmp_path / "lmdqdata").mkdir()
    publisher = _publisher(tmp_path)
    snapshot = publisher.create_snapshot()

    with pytest.raises(PublishError):
        publisher.promote_snapshot(snapshot)


def test_promote_rejects_missing_snapshot(tmp_path) -> None:
    """Promotion requires an existing snapshot directory."""
    with pytest.raises(PublishError):
        promote_snapshot(tmp_path / "lmdqdata", tmp_path / "lmdqdata_1")


def test_resolve_live_link_ignores_dangling_link(tmp_path) -> None:
    """A link to a deleted snapshot should resolve to nothing."""
    live_link = tmp_path / "lmdqdata"
    os.symlink("lmdqdata_1", live_link)

    assert resolve_live_link(live_link) is None


def test_list_snapshots_marks_live_snapshot(tmp_path) -> None:
    """Snapshot listing should flag the live target and skip other entries."""
    publisher = _publisher(tmp_path)
    abandoned = publisher.create_snapshot()
    live = publisher.create_snapshot()
    (live / "feed-a").mkdir()
    publisher.promote_snapshot(live)
    (tmp_path / "unrelated").mkdir()

    snapshots = publisher.list_snapshots()

    assert [snapshot.path for snapshot in snapshots] == [abandoned, live]
    assert [snapshot.is_live for snapshot in snapshots] == [False, True]
    assert snapshots[1].feeds == ("feed-a",)


def test_reclaim_snapshots_keeps_live_snapshot(tmp_path) -> None:
    """Reclaim should delete abandoned snapshots only."""
    publisher = _publisher(tmp_path)
    abandoned = publisher.create_snapshot()
    live = publisher.create_snapshot()
    publisher.promote_snapshot(live)

    removed = publisher.reclaim_snapshots()

    assert removed == [abandoned]
    assert live.is_dir() and not abandoned.exists()


def test_content_address_is_sha1_hex_of_utf8() -> None:
    """Lookup names should be the lower-case SHA-1 hex of the value."""
    assert content_address("urn:x") == "3b1fd55f192b3fc87316a04000c15ddb6255e07e"
