"""Query-time visibility of drops."""

from dropshare.domain.drop import Drop
from dropshare.stores.base import SharingStore


class VisibilityResolver:
    """Answers who can see which drops using only tags and viewer entries.

    Nothing here walks the connection graph; that work was done when the viewer
    index was written. Unknown users and drops are simply not visible, so a
    caller cannot tell "hidden" from "missing".
    """

    def __init__(self, *, store: SharingStore):
        self.store = store

    def can_view(self, viewer_id: str, drop_id: str) -> bool:
        drop = self.store.get_drop(drop_id)
        if drop is None:
            return False
        if drop.owner_id == viewer_id:
            return True
        return self.store.has_tagged_viewer(drop_id, viewer_id)

    def get_all_drops(self, viewer_id: str) -> list[Drop]:
        """Get every drop the user can see, most recent first.

        Computed from current committed state on every call. A drop shared
        through several groups appears once.
        """
        unique = {drop.id: drop for drop in self.store.list_visible_drops(viewer_id)}
        return sorted(unique.values(), key=lambda d: (d.created_at, d.id), reverse=True)
