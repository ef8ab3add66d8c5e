"""Owner-managed sharing groups."""

from loguru import logger

from dropshare.domain.group import Group
from dropshare.errors import ReservedGroupError, UnauthorizedError
from dropshare.stores.base import SharingStore

from .lookups import require_group, require_user
from .viewer_index import ViewerIndex


class GroupService:
    """Creates custom groups and curates their viewers.

    Ownership is checked here rather than in the data model: only a group's
    owner may change or inspect its viewers.
    """

    def __init__(self, *, store: SharingStore, viewer_index: ViewerIndex):
        self.store = store
        self.viewer_index = viewer_index

    def create_group(
        self, owner_id: str, name: str, member_ids: list[str] | None = None
    ) -> Group:
        """Create a custom group, optionally with an initial set of viewers.

        Args:
            owner_id: The user who will own the group
            name: Display name; must not be the reserved group's name
            member_ids: Users who may see drops tagged to the group

        Returns:
            The new group
        """
        name = name.strip()
        if not name:
            raise ValueError("Group name cannot be empty")
        if name == self.viewer_index.reserved_group_name:
            raise ReservedGroupError(f"'{name}' is reserved and created automatically")

        with self.store.transaction():
            require_user(self.store, owner_id)
            group = Group(
                owner_id=owner_id,
                name=name,
                member_ids=self._clean_member_ids(owner_id, member_ids or []),
            )
            self.store.save_group(group)
            self.viewer_index.project_custom_group(group)

        logger.info(f"Created group {group.id} '{name}' for {owner_id}")
        return group

    def set_viewers(
        self, actor_id: str, group_id: str, viewer_ids: list[str], replace: bool = True
    ) -> Group:
        """Set who may see drops tagged to a custom group.

        Args:
            actor_id: The user making the change; must own the group
            group_id: The custom group to change
            viewer_ids: Users to grant access to. The owner is ignored, since
                owners always see their own drops
            replace: Replace the current viewers when True, add to them when False

        Returns:
            The updated group
        """
        with self.store.transaction():
            group = self._require_owned(actor_id, group_id, "change viewers of")
            if group.reserved:
                raise ReservedGroupError("Viewers of the reserved group follow connections")

            members = self._clean_member_ids(group.owner_id, viewer_ids)
            if not replace:
                members = list(dict.fromkeys(group.member_ids + members))

            group = group.model_copy(update={"member_ids": members})
            self.store.save_group(group)
            self.viewer_index.project_custom_group(group)

        logger.info(f"Group {group_id} now has {len(group.member_ids)} viewers")
        return group

    def list_groups(self, owner_id: str, refresh: bool = True) -> list[Group]:
        """List a user's groups, reserved group first.

        With ``refresh`` the reserved group is synced first, which is what
        picks up connections made from the other side since the last sync.
        """
        if refresh:
            self.viewer_index.sync_reserved_group(owner_id)
        else:
            require_user(self.store, owner_id)

        groups = self.store.list_groups(owner_id)
        return sorted(groups, key=lambda g: (not g.reserved, g.name.lower(), g.id))

    def get_viewers(self, actor_id: str, group_id: str) -> list[str]:
        """Get the sorted viewer IDs of a group the actor owns."""
        self._require_owned(actor_id, group_id, "see viewers of")
        return sorted(self.store.list_viewer_ids(group_id))

    def _require_owned(self, actor_id: str, group_id: str, action: str) -> Group:
        group = require_group(self.store, group_id)
        if group.owner_id != actor_id:
            logger.warning(f"{actor_id} tried to {action} group {group_id}")
            raise UnauthorizedError(actor_id, f"{action} group {group_id}")
        return group

    def _clean_member_ids(self, owner_id: str, member_ids: list[str]) -> list[str]:
        """Drop the owner and duplicates, and check that every member exists."""
        cleaned = [m for m in dict.fromkeys(member_ids) if m != owner_id]
        for member_id in cleaned:
            require_user(self.store, member_id)
        return cleaned
