from contextlib import AbstractContextManager
from functools import wraps
from typing import List, Protocol

from dropshare.domain.connection import Connection
from dropshare.domain.drop import Drop, TagDrop
from dropshare.domain.group import Group, ViewerEntry
from dropshare.domain.invitation import ShareLink, ShareRequest
from dropshare.domain.user import User


class SharingStore(Protocol):
    def transaction(self) -> AbstractContextManager[None]:
        """Apply every write inside the block atomically, or none of them.

        Nested blocks join the outer transaction. Reads outside a transaction
        only ever see committed state.
        """
        ...

    def add_user(self, user: User) -> None:
        """Add a user or update an existing one."""
        ...

    def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""
        ...

    def add_connection(self, connection: Connection) -> bool:
        """Add a connection. Returns False if the pair was already connected."""
        ...

    def get_connection(self, user_a: str, user_b: str) -> Connection | None:
        """Get the connection between two users, in either order."""
        ...

    def list_connected_user_ids(self, user_id: str) -> set[str]:
        """Get the IDs of every user connected to the given user."""
        ...

    def list_connections(self) -> List[Connection]:
        """Get every connection in the store."""
        ...

    def save_group(self, group: Group) -> None:
        """Add a new group or update an existing one."""
        ...

    def get_group(self, group_id: str) -> Group | None:
        """Get a group by ID."""
        ...

    def find_reserved_group(self, owner_id: str) -> Group | None:
        """Find the reserved group of the given user, whatever it is named."""
        ...

    def list_groups(self, owner_id: str) -> List[Group]:
        """Get every group owned by the given user."""
        ...

    def list_all_groups(self) -> List[Group]:
        """Get every group in the store."""
        ...

    def add_viewer(self, entry: ViewerEntry) -> bool:
        """Add a viewer entry. Returns False if it already existed."""
        ...

    def remove_viewer(self, group_id: str, viewer_id: str) -> None:
        """Remove a viewer entry if it exists."""
        ...

    def list_viewer_ids(self, group_id: str) -> set[str]:
        """Get the IDs of every viewer of a group."""
        ...

    def clear_viewers(self) -> None:
        """Remove every viewer entry, for a full rebuild of the index."""
        ...

    def save_drop(self, drop: Drop) -> None:
        """Add a new drop or update an existing one."""
        ...

    def get_drop(self, drop_id: str) -> Drop | None:
        """Get a drop by ID."""
        ...

    def add_tag(self, tag: TagDrop) -> bool:
        """Tag a drop to a group. Returns False if the tag already existed."""
        ...

    def remove_tag(self, drop_id: str, group_id: str) -> None:
        """Remove a tag if it exists."""
        ...

    def list_group_ids_for_drop(self, drop_id: str) -> set[str]:
        """Get the IDs of every group a drop is tagged to."""
        ...

    def has_tagged_viewer(self, drop_id: str, viewer_id: str) -> bool:
        """Check whether the drop is tagged to any group the user is a viewer of."""
        ...

    def list_visible_drops(self, viewer_id: str) -> List[Drop]:
        """Get every drop the user owns or can see through a viewer entry, without duplicates."""
        ...

    def save_share_request(self, request: ShareRequest) -> None:
        """Add a new share request or update an existing one."""
        ...

    def get_share_request_by_key(self, key: str) -> ShareRequest | None:
        """Get a share request by its key."""
        ...

    def save_share_link(self, link: ShareLink) -> None:
        """Add a new share link or update an existing one."""
        ...

    def get_share_link_by_token(self, token: str) -> ShareLink | None:
        """Get a share link by its token."""
        ...

    def save(self, filepath: str | None = None) -> None:
        """Persist committed state, for stores that need an explicit flush."""
        ...


def writes(method):
    """Run a store write method inside a transaction, joining one that is already open."""

    @wraps(method)
    def wrapper(self: SharingStore, *args, **kwargs):
        with self.transaction():
            return method(self, *args, **kwargs)

    return wrapper
