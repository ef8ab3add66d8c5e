"""The two ways users become connected: invitations and share links.

The flows differ in which reserved groups they synchronise:

    invitation accepted   -> acceptor only
    share link claimed    -> creator and claimer

After an invitation the requester's reserved group does not list the new peer
until it is synced again, e.g. when the requester next lists their groups.
Setting ``propagate_on_connect`` also syncs the requester at acceptance.
"""

from datetime import datetime, timedelta

from loguru import logger

from dropshare.config import settings
from dropshare.domain.connection import Connection
from dropshare.domain.invitation import ShareLink, ShareRequest
from dropshare.domain.timestamps import utcnow
from dropshare.errors import NotFoundError, UnauthorizedError
from dropshare.stores.base import SharingStore

from .connections import ConnectionService
from .lookups import require_drop, require_user
from .viewer_index import ViewerIndex


class ConnectionEstablishmentService:
    """Runs the invitation and share-link flows, one transaction per step."""

    def __init__(
        self,
        *,
        store: SharingStore,
        connections: ConnectionService,
        viewer_index: ViewerIndex,
        propagate_on_connect: bool | None = None,
        share_link_ttl_days: int | None = None,
    ):
        """Initialize the service.

        Args:
            store: Store holding invitations, share links and drops
            connections: Service used to create connections
            viewer_index: Index whose reserved groups are synced after connecting
            propagate_on_connect: Also sync the requester when an invitation is
                accepted. Defaults to the configured setting.
            share_link_ttl_days: Default lifetime of new share links. Defaults to
                the configured setting; None means links never expire.
        """
        self.store = store
        self.connections = connections
        self.viewer_index = viewer_index
        self.propagate_on_connect = (
            settings.propagate_on_connect if propagate_on_connect is None else propagate_on_connect
        )
        self.share_link_ttl_days = (
            settings.share_link_ttl_days if share_link_ttl_days is None else share_link_ttl_days
        )

    def create_invitation(self, requester_id: str, target_id: str) -> ShareRequest:
        if requester_id == target_id:
            raise ValueError("Users cannot invite themselves")

        with self.store.transaction():
            require_user(self.store, requester_id)
            require_user(self.store, target_id)
            request = ShareRequest(requester_id=requester_id, target_id=target_id)
            self.store.save_share_request(request)

        logger.info(f"{requester_id} invited {target_id}")
        return request

    def accept_invitation(self, acceptor_id: str, key: str) -> Connection:
        """Accept an invitation, connect both users and sync the acceptor's reserved group.

        Raises:
            NotFoundError: If the key is unknown or the invitation was already
                used or ignored
            UnauthorizedError: If the acceptor is not the invited user
        """
        with self.store.transaction():
            request = self._require_open_request(acceptor_id, key)
            connection = self.connections.connect(request.requester_id, acceptor_id)
            self.store.save_share_request(request.model_copy(update={"used": True}))

            self.viewer_index.sync_reserved_group(acceptor_id)
            if self.propagate_on_connect:
                self.viewer_index.sync_reserved_group(request.requester_id)

        logger.info(f"{acceptor_id} accepted the invitation from {request.requester_id}")
        return connection

    def ignore_invitation(self, acceptor_id: str, key: str) -> ShareRequest:
        with self.store.transaction():
            request = self._require_open_request(acceptor_id, key)
            request = request.model_copy(update={"ignored": True})
            self.store.save_share_request(request)

        logger.info(f"{acceptor_id} ignored the invitation from {request.requester_id}")
        return request

    def create_share_link(
        self, creator_id: str, drop_id: str, expires_at: datetime | None = None
    ) -> ShareLink:
        """Create a reusable link to one of the creator's drops."""
        if expires_at is None and self.share_link_ttl_days is not None:
            expires_at = utcnow() + timedelta(days=self.share_link_ttl_days)

        with self.store.transaction():
            drop = require_drop(self.store, drop_id)
            if drop.owner_id != creator_id:
                logger.warning(f"{creator_id} tried to share drop {drop_id} by link")
                raise UnauthorizedError(creator_id, f"create a share link for drop {drop_id}")
            link = ShareLink(creator_id=creator_id, drop_id=drop_id, expires_at=expires_at)
            self.store.save_share_link(link)

        logger.info(f"{creator_id} created share link {link.id} for drop {drop_id}")
        return link

    def claim_share_link(self, claimer_id: str, token: str) -> Connection | None:
        """Claim a share link, connecting claimer and creator and syncing both reserved groups.

        The link stays usable for other claimers. A creator opening their own
        link only counts as a view.

        Returns:
            The connection, or None when the claimer is the creator

        Raises:
            NotFoundError: If the token is unknown, deactivated or expired
        """
        with self.store.transaction():
            link = self.store.get_share_link_by_token(token)
            if link is None or not link.is_claimable():
                raise NotFoundError("Share link", token)
            self.store.save_share_link(link.model_copy(update={"view_count": link.view_count + 1}))

            if claimer_id == link.creator_id:
                return None

            connection = self.connections.connect(link.creator_id, claimer_id)
            self.viewer_index.sync_reserved_group(link.creator_id)
            self.viewer_index.sync_reserved_group(claimer_id)

        logger.info(f"{claimer_id} claimed share link {link.id} from {link.creator_id}")
        return connection

    def deactivate_share_link(self, actor_id: str, token: str) -> ShareLink:
        with self.store.transaction():
            link = self.store.get_share_link_by_token(token)
            if link is None:
                raise NotFoundError("Share link", token)
            if link.creator_id != actor_id:
                raise UnauthorizedError(actor_id, f"deactivate share link {link.id}")
            link = link.model_copy(update={"is_active": False})
            self.store.save_share_link(link)

        logger.info(f"Deactivated share link {link.id}")
        return link

    def _require_open_request(self, acceptor_id: str, key: str) -> ShareRequest:
        request = self.store.get_share_request_by_key(key)
        if request is None or not request.is_open:
            raise NotFoundError("Invitation", key)
        if request.target_id != acceptor_id:
            logger.warning(f"{acceptor_id} tried to answer an invitation meant for someone else")
            raise UnauthorizedError(acceptor_id, "answer this invitation")
        return request
