"""Tests that a failing store never leaves an operation half applied."""

import pytest

from dropshare.core import SharingCore, build_core
from tests.fakes import FlakyStore
from tests.fakes.flaky_store import FakeOutage


def make_core(store: FlakyStore) -> SharingCore:
    core = build_core(store)
    for user_id in ["alice", "bob", "carol", "dave"]:
        core.register_user(user_id)
    return core


def test_failed_sync_writes_nothing() -> None:
    """Test that a sync failing halfway leaves neither group nor entries behind."""
    store = FlakyStore(method="add_viewer", fail_after=1)
    core = make_core(store)
    for peer in ["bob", "carol", "dave"]:
        core.establish_connection("alice", peer)

    store.armed = True
    with pytest.raises(FakeOutage):
        core.sync_reserved_group("alice")

    assert core.viewer_index.get_reserved_group("alice") is None
    assert store.list_all_groups() == []


def test_failed_claim_writes_nothing() -> None:
    """Test that a claim failing during sync leaves no connection and no view count."""
    store = FlakyStore(method="add_viewer", fail_after=0)
    core = make_core(store)
    drop = core.create_drop("alice")
    link = core.create_share_link("alice", drop.id)

    store.armed = True
    with pytest.raises(FakeOutage):
        core.claim_share_link("bob", link.token)

    assert not core.is_connected("alice", "bob")
    assert store.get_share_link_by_token(link.token).view_count == 0


def test_failed_accept_leaves_invitation_open() -> None:
    """Test that an invitation whose connection could not be stored can be accepted later."""
    store = FlakyStore(method="add_connection", fail_after=0)
    core = make_core(store)
    request = core.create_invitation("alice", "bob")

    store.armed = True
    with pytest.raises(FakeOutage):
        core.accept_invitation("bob", request.key)
    assert store.get_share_request_by_key(request.key).is_open

    store.armed = False
    core.accept_invitation("bob", request.key)
    assert core.is_connected("alice", "bob")
