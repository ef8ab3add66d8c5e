"""Symmetric connections between users."""

from loguru import logger

from dropshare.domain.connection import Connection
from dropshare.stores.base import SharingStore

from .lookups import require_user


class ConnectionService:
    """Creates and queries connections. Connections are never removed."""

    def __init__(self, *, store: SharingStore):
        self.store = store

    def connect(self, user_a: str, user_b: str) -> Connection:
        """Connect two users, or return their existing connection.

        Connecting does not grant any visibility on its own. Viewer entries are
        only written when a reserved group is synchronised.

        Raises:
            NotFoundError: If either user is unknown
            ValueError: If both ids are the same user
        """
        candidate = Connection.between(user_a, user_b)

        with self.store.transaction():
            require_user(self.store, user_a)
            require_user(self.store, user_b)
            if self.store.add_connection(candidate):
                logger.info(f"Connected {candidate.user_a} and {candidate.user_b}")
                return candidate

        logger.debug(f"{user_a} and {user_b} were already connected")
        return self.store.get_connection(user_a, user_b) or candidate

    def is_connected(self, user_a: str, user_b: str) -> bool:
        if user_a == user_b:
            return False
        return self.store.get_connection(user_a, user_b) is not None

    def list_connections(self, user_id: str) -> list[str]:
        """Get the sorted IDs of every user connected to ``user_id``."""
        return sorted(self.store.list_connected_user_ids(user_id))
