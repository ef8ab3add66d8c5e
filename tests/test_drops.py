"""Tests for drop registration and tagging."""

from datetime import datetime

import pytest

from dropshare.core import SharingCore
from dropshare.errors import NotFoundError, UnauthorizedError


def test_create_drop_with_groups(core: SharingCore) -> None:
    """Test that a drop can be created and tagged in one call."""
    family = core.create_group("alice", "Family", ["bob"])
    friends = core.create_group("alice", "Friends", ["carol"])

    drop = core.create_drop("alice", "Beach day", group_ids=[family.id, friends.id])

    assert core.store.list_group_ids_for_drop(drop.id) == {family.id, friends.id}


def test_create_drop_without_groups_is_private(core: SharingCore) -> None:
    drop = core.create_drop("alice", "Diary")

    assert core.store.list_group_ids_for_drop(drop.id) == set()


def test_create_drop_naive_timestamp_is_utc(core: SharingCore) -> None:
    """Test that naive timestamps are stored as UTC."""
    drop = core.create_drop("alice", "Old photo", created_at=datetime(2020, 5, 1, 9, 30))

    assert drop.created_at.utcoffset().total_seconds() == 0
    assert core.store.get_drop(drop.id).created_at == drop.created_at


def test_create_drop_duplicate_id(core: SharingCore) -> None:
    core.drops.create_drop("alice", drop_id="d1")

    with pytest.raises(ValueError):
        core.drops.create_drop("bob", drop_id="d1")

    assert core.store.get_drop("d1").owner_id == "alice"


def test_create_drop_unknown_owner(core: SharingCore) -> None:
    with pytest.raises(NotFoundError):
        core.create_drop("mallory", "Nope")


def test_tag_drop_is_idempotent(core: SharingCore) -> None:
    """Test that tagging twice keeps a single tag."""
    family = core.create_group("alice", "Family")
    drop = core.create_drop("alice")

    core.tag_drop("alice", drop.id, [family.id])
    tagged = core.tag_drop("alice", drop.id, [family.id, family.id])

    assert tagged == [family.id]


def test_tag_drop_by_non_owner(core: SharingCore) -> None:
    """Test that only the drop owner may tag it."""
    group = core.create_group("bob", "Mine")
    drop = core.create_drop("alice")

    with pytest.raises(UnauthorizedError):
        core.tag_drop("bob", drop.id, [group.id])

    assert core.store.list_group_ids_for_drop(drop.id) == set()


def test_tag_drop_to_foreign_group_writes_nothing(core: SharingCore) -> None:
    """Test that one foreign group fails the whole tagging."""
    own = core.create_group("alice", "Family")
    foreign = core.create_group("bob", "Bob's")
    drop = core.create_drop("alice")

    with pytest.raises(UnauthorizedError):
        core.tag_drop("alice", drop.id, [own.id, foreign.id])

    assert core.store.list_group_ids_for_drop(drop.id) == set()


def test_tag_drop_unknown_drop_or_group(core: SharingCore) -> None:
    group = core.create_group("alice", "Family")
    drop = core.create_drop("alice")

    with pytest.raises(NotFoundError):
        core.tag_drop("alice", "no-such-drop", [group.id])
    with pytest.raises(NotFoundError):
        core.tag_drop("alice", drop.id, ["no-such-group"])


def test_tag_drop_replace(core: SharingCore) -> None:
    """Test that replace mode removes tags that are not listed."""
    family = core.create_group("alice", "Family")
    friends = core.create_group("alice", "Friends")
    drop = core.create_drop("alice", group_ids=[family.id])

    tagged = core.tag_drop("alice", drop.id, [friends.id], replace=True)

    assert tagged == [friends.id]


def test_tag_drop_replace_with_nothing_makes_private(core: SharingCore) -> None:
    family = core.create_group("alice", "Family", ["bob"])
    drop = core.create_drop("alice", group_ids=[family.id])

    assert core.tag_drop("alice", drop.id, [], replace=True) == []
    assert not core.can_view("bob", drop.id)


def test_share_with_everyone_uses_reserved_group(core: SharingCore) -> None:
    """Test that sharing with everyone tags the reserved group without syncing it."""
    core.establish_connection("alice", "bob")
    drop = core.create_drop("alice")

    tagged = core.drops.share_with_everyone("alice", drop.id)

    reserved = core.reserved_group("alice")
    assert tagged == [reserved.id]
    assert core.store.list_viewer_ids(reserved.id) == set()
