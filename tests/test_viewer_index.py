"""Tests for reserved group synchronisation and viewer index rebuilds."""

import pytest

from dropshare.core import SharingCore, build_core
from dropshare.errors import NotFoundError
from dropshare.stores.base import SharingStore


def test_sync_creates_reserved_group_lazily(core: SharingCore) -> None:
    """Test that the reserved group is created on first sync and reused afterwards."""
    assert core.viewer_index.get_reserved_group("alice") is None

    core.sync_reserved_group("alice")
    group = core.viewer_index.get_reserved_group("alice")
    core.sync_reserved_group("alice")

    assert group is not None
    assert group.reserved
    assert group.name == "All Connections"
    assert core.reserved_group("alice").id == group.id
    assert [g.id for g in core.store.list_groups("alice")] == [group.id]


def test_sync_is_idempotent(core: SharingCore) -> None:
    """Test that syncing N times yields the same viewers as syncing once."""
    core.establish_connection("alice", "bob")
    core.establish_connection("alice", "carol")

    added = [core.sync_reserved_group("alice") for _ in range(3)]

    group = core.reserved_group("alice")
    assert added == [2, 0, 0]
    assert core.store.list_viewer_ids(group.id) == {"bob", "carol"}


def test_sync_picks_up_later_connections(core: SharingCore) -> None:
    """Test that a sync after new connections adds the new peers."""
    core.establish_connection("alice", "bob")
    core.sync_reserved_group("alice")

    core.establish_connection("alice", "dave")
    added = core.sync_reserved_group("alice")

    assert added == 1
    assert core.store.list_viewer_ids(core.reserved_group("alice").id) == {"bob", "dave"}


def test_sync_is_one_directional(core: SharingCore) -> None:
    """Test that syncing one user leaves the peer's reserved group alone."""
    core.establish_connection("alice", "bob")
    core.sync_reserved_group("alice")

    assert core.viewer_index.get_reserved_group("bob") is None


def test_owner_is_not_a_viewer_of_own_group(core: SharingCore) -> None:
    """Test that owners never appear in their own reserved group."""
    core.establish_connection("alice", "bob")
    core.sync_reserved_group("alice")

    assert "alice" not in core.store.list_viewer_ids(core.reserved_group("alice").id)


def test_sync_unknown_user(core: SharingCore) -> None:
    """Test that syncing a user the core does not know raises."""
    with pytest.raises(NotFoundError):
        core.sync_reserved_group("mallory")


def test_rebuild_restores_cleared_index(core: SharingCore) -> None:
    """Test that a rebuild derives the same entries from connections and groups."""
    core.establish_connection("alice", "bob")
    core.establish_connection("alice", "carol")
    core.sync_reserved_group("alice")
    family = core.create_group("alice", "Family", ["dave"])

    core.store.clear_viewers()
    report = core.rebuild_viewer_index()

    assert core.store.list_viewer_ids(core.reserved_group("alice").id) == {"bob", "carol"}
    assert core.store.list_viewer_ids(family.id) == {"dave"}
    assert report.custom_groups == 1


def test_rebuild_syncs_every_connected_user(core: SharingCore) -> None:
    """Test that a rebuild also fills reserved groups that were never synced."""
    core.establish_connection("alice", "bob")
    core.sync_reserved_group("bob")

    report = core.rebuild_viewer_index()

    assert core.store.list_viewer_ids(core.reserved_group("alice").id) == {"bob"}
    assert core.store.list_viewer_ids(core.reserved_group("bob").id) == {"alice"}
    assert report.reserved_groups == 2
    assert report.entries == 2


def test_rebuild_is_repeatable(core: SharingCore) -> None:
    """Test that two rebuilds in a row leave the same index."""
    core.establish_connection("alice", "bob")
    group = core.create_group("alice", "Friends", ["carol"])

    core.rebuild_viewer_index()
    first = core.store.list_viewer_ids(group.id), core.store.list_viewer_ids(
        core.reserved_group("alice").id
    )
    core.rebuild_viewer_index()
    second = core.store.list_viewer_ids(group.id), core.store.list_viewer_ids(
        core.reserved_group("alice").id
    )

    assert first == second == ({"carol"}, {"bob"})


def test_reserved_group_found_after_rename(store: SharingStore) -> None:
    """Test that a custom group carrying the reserved name never replaces the reserved group."""
    renamed = build_core(store, reserved_group_name="Everyone")
    for user_id in ["alice", "bob"]:
        renamed.register_user(user_id)
    renamed.establish_connection("alice", "bob")
    original = renamed.reserved_group("alice")
    renamed.create_group("alice", "All Connections", member_ids=["bob"])

    default = build_core(store, reserved_group_name="All Connections")
    for _ in range(3):
        default.sync_reserved_group("alice")

    reserved = [g for g in store.list_groups("alice") if g.reserved]
    assert [g.id for g in reserved] == [original.id]
    assert default.reserved_group("alice").name == "Everyone"
    assert store.list_viewer_ids(original.id) == {"bob"}
