from pathlib import Path
from typing import Generator

import pytest

from dropshare.core import SharingCore, build_core
from dropshare.stores.base import SharingStore
from dropshare.stores.local_store import LocalSharingStore
from dropshare.stores.sqlite_store import SqliteSharingStore

USERS = ["alice", "bob", "carol", "dave"]


@pytest.fixture(params=["local", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> Generator[SharingStore, None, None]:
    """Every store implementation, empty."""
    if request.param == "local":
        yield LocalSharingStore()
    else:
        sqlite_store = SqliteSharingStore(tmp_path / "sharing.db")
        yield sqlite_store
        sqlite_store.close()


@pytest.fixture
def core(store: SharingStore) -> SharingCore:
    """Sharing core with the four test users registered and nobody connected."""
    sharing = build_core(
        store,
        reserved_group_name="All Connections",
        propagate_on_connect=False,
        share_link_ttl_days=None,
    )
    for user_id in USERS:
        sharing.register_user(user_id, name=user_id.title())
    return sharing


@pytest.fixture
def propagating_core(store: SharingStore) -> SharingCore:
    """Sharing core that also syncs the requester when an invitation is accepted."""
    sharing = build_core(store, propagate_on_connect=True)
    for user_id in USERS:
        sharing.register_user(user_id)
    return sharing
