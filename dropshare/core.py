from datetime import datetime

from dropshare.domain.connection import Connection
from dropshare.domain.drop import Drop
from dropshare.domain.group import Group
from dropshare.domain.invitation import ShareLink, ShareRequest
from dropshare.domain.user import User
from dropshare.services import (
    ConnectionEstablishmentService,
    ConnectionService,
    DropService,
    GroupService,
    RebuildReport,
    ViewerIndex,
    VisibilityResolver,
)
from dropshare.stores.base import SharingStore
from dropshare.stores.local_store import LocalSharingStore


class SharingCore:
    """The operations the surrounding application calls.

    Identity, content storage and delivery of invitations live outside; this
    class only decides who is connected to whom and who may see which drop.
    """

    def __init__(
        self,
        *,
        store: SharingStore,
        reserved_group_name: str | None = None,
        propagate_on_connect: bool | None = None,
        share_link_ttl_days: int | None = None,
    ) -> None:
        self.store = store
        self.viewer_index = ViewerIndex(store=store, reserved_group_name=reserved_group_name)
        self.connections = ConnectionService(store=store)
        self.groups = GroupService(store=store, viewer_index=self.viewer_index)
        self.drops = DropService(store=store, viewer_index=self.viewer_index)
        self.establishment = ConnectionEstablishmentService(
            store=store,
            connections=self.connections,
            viewer_index=self.viewer_index,
            propagate_on_connect=propagate_on_connect,
            share_link_ttl_days=share_link_ttl_days,
        )
        self.visibility = VisibilityResolver(store=store)

    def register_user(self, user_id: str, name: str = "") -> User:
        """Make an authenticated user known to the core."""
        user = User(id=user_id, name=name)
        self.store.add_user(user)
        return user

    def establish_connection(self, user_a: str, user_b: str) -> Connection:
        return self.connections.connect(user_a, user_b)

    def is_connected(self, user_a: str, user_b: str) -> bool:
        return self.connections.is_connected(user_a, user_b)

    def sync_reserved_group(self, user_id: str) -> int:
        return self.viewer_index.sync_reserved_group(user_id)

    def reserved_group(self, user_id: str) -> Group:
        return self.viewer_index.ensure_reserved_group(user_id)

    def rebuild_viewer_index(self) -> RebuildReport:
        return self.viewer_index.rebuild()

    def create_group(self, owner_id: str, name: str, member_ids: list[str] | None = None) -> Group:
        return self.groups.create_group(owner_id, name, member_ids)

    def set_viewers(
        self, actor_id: str, group_id: str, viewer_ids: list[str], replace: bool = True
    ) -> Group:
        return self.groups.set_viewers(actor_id, group_id, viewer_ids, replace=replace)

    def list_groups(self, owner_id: str, refresh: bool = True) -> list[Group]:
        return self.groups.list_groups(owner_id, refresh=refresh)

    def create_drop(
        self,
        owner_id: str,
        title: str = "",
        created_at: datetime | None = None,
        group_ids: list[str] | None = None,
    ) -> Drop:
        return self.drops.create_drop(owner_id, title, created_at=created_at, group_ids=group_ids)

    def tag_drop(
        self, actor_id: str, drop_id: str, group_ids: list[str], replace: bool = False
    ) -> list[str]:
        return self.drops.tag_drop(actor_id, drop_id, group_ids, replace=replace)

    def can_view(self, viewer_id: str, drop_id: str) -> bool:
        return self.visibility.can_view(viewer_id, drop_id)

    def get_all_drops(self, viewer_id: str) -> list[Drop]:
        return self.visibility.get_all_drops(viewer_id)

    def create_invitation(self, requester_id: str, target_id: str) -> ShareRequest:
        return self.establishment.create_invitation(requester_id, target_id)

    def accept_invitation(self, acceptor_id: str, key: str) -> Connection:
        return self.establishment.accept_invitation(acceptor_id, key)

    def ignore_invitation(self, acceptor_id: str, key: str) -> ShareRequest:
        return self.establishment.ignore_invitation(acceptor_id, key)

    def create_share_link(
        self, creator_id: str, drop_id: str, expires_at: datetime | None = None
    ) -> ShareLink:
        return self.establishment.create_share_link(creator_id, drop_id, expires_at)

    def claim_share_link(self, claimer_id: str, token: str) -> Connection | None:
        return self.establishment.claim_share_link(claimer_id, token)

    def deactivate_share_link(self, actor_id: str, token: str) -> ShareLink:
        return self.establishment.deactivate_share_link(actor_id, token)


def build_core(
    store: SharingStore | None = None,
    *,
    reserved_group_name: str | None = None,
    propagate_on_connect: bool | None = None,
    share_link_ttl_days: int | None = None,
) -> SharingCore:
    """Create the sharing core, on an in-memory store unless one is given."""
    return SharingCore(
        store=store if store is not None else LocalSharingStore(),
        reserved_group_name=reserved_group_name,
        propagate_on_connect=propagate_on_connect,
        share_link_ttl_days=share_link_ttl_days,
    )
