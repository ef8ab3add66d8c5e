"""Tests for the viewer index rebuild CLI."""

from pathlib import Path

from dropshare.core import build_core
from dropshare.stores.local_store import LocalSharingStore
from scripts.rebuild_viewers import main


def test_rebuild_local_store_file(tmp_path: Path) -> None:
    """Test that the script restores viewers in a saved store and writes it back."""
    path = tmp_path / "sharing.json"
    core = build_core(LocalSharingStore(filepath=path))
    for user_id in ["alice", "bob"]:
        core.register_user(user_id)
    core.establish_connection("alice", "bob")
    core.sync_reserved_group("bob")
    core.store.save()

    report = main(backend="local", store_path=str(path))

    reloaded = LocalSharingStore(filepath=path)
    alice_group = reloaded.find_reserved_group("alice")
    assert report.reserved_groups == 2
    assert alice_group is not None
    assert reloaded.list_viewer_ids(alice_group.id) == {"bob"}


def test_rebuild_sqlite_store(tmp_path: Path) -> None:
    path = tmp_path / "sharing.db"

    report = main(backend="sqlite", store_path=str(path))

    assert report.entries == 0
