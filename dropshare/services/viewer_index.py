"""Maintenance of the materialised (group -> viewer) index."""

from loguru import logger
from pydantic import BaseModel

from dropshare.config import settings
from dropshare.domain.group import Group, ViewerEntry
from dropshare.stores.base import SharingStore

from .lookups import require_user


class RebuildReport(BaseModel):
    """Summary of a full viewer index rebuild."""

    custom_groups: int = 0
    reserved_groups: int = 0
    entries: int = 0


class ViewerIndex:
    """Writes the viewer entries that visibility checks read.

    Every entry is derived from something else: reserved groups from the
    owner's connections, custom groups from their ``member_ids``. The index can
    therefore always be thrown away and rebuilt.
    """

    def __init__(self, *, store: SharingStore, reserved_group_name: str | None = None):
        """Initialize the index.

        Args:
            store: Store holding groups, connections and viewer entries
            reserved_group_name: Name of every user's reserved group
        """
        self.store = store
        self.reserved_group_name = reserved_group_name or settings.reserved_group_name

    def get_reserved_group(self, user_id: str) -> Group | None:
        return self.store.find_reserved_group(user_id)

    def ensure_reserved_group(self, user_id: str) -> Group:
        """Get the user's reserved group, creating it on first access."""
        with self.store.transaction():
            group = self.get_reserved_group(user_id)
            if group is None:
                require_user(self.store, user_id)
                group = Group(owner_id=user_id, name=self.reserved_group_name, reserved=True)
                self.store.save_group(group)
                logger.info(f"Created reserved group {group.id} for {user_id}")
        return group

    def sync_reserved_group(self, user_id: str) -> int:
        """Make every current connection of ``user_id`` a viewer of their reserved group.

        Only the given user's group is touched; peers' reserved groups are left
        as they are. Safe to repeat.

        Args:
            user_id: Owner of the reserved group to synchronise

        Returns:
            Number of viewer entries added
        """
        added = 0
        with self.store.transaction():
            group = self.ensure_reserved_group(user_id)
            for peer_id in sorted(self.store.list_connected_user_ids(user_id)):
                if self.store.add_viewer(ViewerEntry(group_id=group.id, viewer_id=peer_id)):
                    added += 1

        if added:
            logger.info(f"Synced reserved group of {user_id}: {added} new viewers")
        else:
            logger.debug(f"Reserved group of {user_id} already in sync")
        return added

    def project_custom_group(self, group: Group) -> None:
        """Replace the viewer entries of a custom group with its member list."""
        if group.reserved:
            raise ValueError("Reserved groups are synced from connections, not members")

        desired = set(group.member_ids) - {group.owner_id}
        with self.store.transaction():
            current = self.store.list_viewer_ids(group.id)
            for viewer_id in current - desired:
                self.store.remove_viewer(group.id, viewer_id)
            for viewer_id in sorted(desired - current):
                self.store.add_viewer(ViewerEntry(group_id=group.id, viewer_id=viewer_id))

    def rebuild(self) -> RebuildReport:
        """Drop every viewer entry and derive the index again from groups and connections.

        Every user with a reserved group or a connection ends up with a fully
        synced reserved group, including users whose group had gone stale.
        """
        report = RebuildReport()
        with self.store.transaction():
            self.store.clear_viewers()

            owners = set()
            for group in self.store.list_all_groups():
                if group.reserved:
                    owners.add(group.owner_id)
                else:
                    self.project_custom_group(group)
                    report.custom_groups += 1
                    report.entries += len(set(group.member_ids) - {group.owner_id})

            for connection in self.store.list_connections():
                owners.update(connection.key)

            for owner_id in sorted(owners):
                report.entries += self.sync_reserved_group(owner_id)
                report.reserved_groups += 1

        logger.info(
            f"Rebuilt viewer index: {report.reserved_groups} reserved groups, "
            f"{report.custom_groups} custom groups, {report.entries} entries"
        )
        return report
