"""Drop registration and tagging drops to groups."""

from datetime import datetime

from loguru import logger

from dropshare.domain.drop import Drop, TagDrop
from dropshare.errors import UnauthorizedError
from dropshare.stores.base import SharingStore

from .lookups import require_drop, require_group, require_user
from .viewer_index import ViewerIndex


class DropService:
    """Registers drops and records which groups they are shared with."""

    def __init__(self, *, store: SharingStore, viewer_index: ViewerIndex):
        self.store = store
        self.viewer_index = viewer_index

    def create_drop(
        self,
        owner_id: str,
        title: str = "",
        created_at: datetime | None = None,
        group_ids: list[str] | None = None,
        drop_id: str | None = None,
        assisted: bool = False,
    ) -> Drop:
        """Register a drop and tag it to the given groups in one step.

        A drop created without groups is private to its owner.
        """
        fields = {"owner_id": owner_id, "title": title, "assisted": assisted}
        if created_at is not None:
            fields["created_at"] = created_at
        if drop_id is not None:
            fields["id"] = drop_id
        drop = Drop(**fields)

        with self.store.transaction():
            require_user(self.store, owner_id)
            if self.store.get_drop(drop.id) is not None:
                raise ValueError(f"Drop {drop.id} already exists")
            self.store.save_drop(drop)
            if group_ids:
                self._tag(drop, group_ids, replace=False)

        logger.info(f"Created drop {drop.id} for {owner_id} in {len(group_ids or [])} groups")
        return drop

    def tag_drop(
        self, actor_id: str, drop_id: str, group_ids: list[str], replace: bool = False
    ) -> list[str]:
        """Share a drop with groups. Either every tag is written or none is.

        Args:
            actor_id: The user tagging; must own the drop and every group
            drop_id: The drop to tag
            group_ids: Groups to share the drop with
            replace: Also remove tags to groups not listed when True. An empty
                list with ``replace`` makes the drop private again.

        Returns:
            Sorted IDs of every group the drop is tagged to afterwards
        """
        with self.store.transaction():
            drop = require_drop(self.store, drop_id)
            if drop.owner_id != actor_id:
                logger.warning(f"{actor_id} tried to tag drop {drop_id} owned by {drop.owner_id}")
                raise UnauthorizedError(actor_id, f"tag drop {drop_id}")
            self._tag(drop, group_ids, replace=replace)
            tagged = sorted(self.store.list_group_ids_for_drop(drop_id))

        logger.info(f"Drop {drop_id} is tagged to {len(tagged)} groups")
        return tagged

    def share_with_everyone(self, actor_id: str, drop_id: str) -> list[str]:
        """Tag a drop to the actor's reserved group.

        The reserved group is created if needed but not synced, so viewers are
        whoever the last sync put there.
        """
        with self.store.transaction():
            group = self.viewer_index.ensure_reserved_group(actor_id)
            return self.tag_drop(actor_id, drop_id, [group.id])

    def _tag(self, drop: Drop, group_ids: list[str], replace: bool) -> None:
        wanted = list(dict.fromkeys(group_ids))
        for group_id in wanted:
            group = require_group(self.store, group_id)
            if group.owner_id != drop.owner_id:
                logger.warning(f"{drop.owner_id} tried to tag drop {drop.id} to group {group_id}")
                raise UnauthorizedError(drop.owner_id, f"tag drops to group {group_id}")

        if replace:
            for group_id in self.store.list_group_ids_for_drop(drop.id) - set(wanted):
                self.store.remove_tag(drop.id, group_id)

        for group_id in wanted:
            if not self.store.add_tag(TagDrop(drop_id=drop.id, group_id=group_id)):
                logger.debug(f"Drop {drop.id} was already tagged to {group_id}")
