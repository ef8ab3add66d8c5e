import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List

from dropshare.domain.connection import Connection, pair_key
from dropshare.domain.drop import Drop, TagDrop
from dropshare.domain.group import Group, ViewerEntry
from dropshare.domain.invitation import ShareLink, ShareRequest
from dropshare.domain.user import User
from dropshare.errors import TransientStoreError
from dropshare.stores.base import SharingStore, writes

logger = logging.getLogger(__name__)


class _State:
    """One snapshot of everything in the store, plus reverse indexes."""

    def __init__(self) -> None:
        self.users: Dict[str, User] = {}
        self.connections: Dict[tuple[str, str], Connection] = {}
        self.peers: Dict[str, set[str]] = {}
        self.groups: Dict[str, Group] = {}
        self.viewers: Dict[str, Dict[str, ViewerEntry]] = {}  # group -> viewer -> entry
        self.viewer_groups: Dict[str, set[str]] = {}  # viewer -> groups
        self.drops: Dict[str, Drop] = {}
        self.tags: Dict[str, Dict[str, TagDrop]] = {}  # drop -> group -> tag
        self.group_drops: Dict[str, set[str]] = {}  # group -> drops
        self.share_requests: Dict[str, ShareRequest] = {}
        self.share_links: Dict[str, ShareLink] = {}

    def copy(self) -> "_State":
        # Records are frozen, so only the containers need copying.
        state = _State()
        state.users = dict(self.users)
        state.connections = dict(self.connections)
        state.peers = {k: set(v) for k, v in self.peers.items()}
        state.groups = dict(self.groups)
        state.viewers = {k: dict(v) for k, v in self.viewers.items()}
        state.viewer_groups = {k: set(v) for k, v in self.viewer_groups.items()}
        state.drops = dict(self.drops)
        state.tags = {k: dict(v) for k, v in self.tags.items()}
        state.group_drops = {k: set(v) for k, v in self.group_drops.items()}
        state.share_requests = dict(self.share_requests)
        state.share_links = dict(self.share_links)
        return state

    def add_connection(self, connection: Connection) -> bool:
        if connection.key in self.connections:
            return False
        self.connections[connection.key] = connection
        for user_id in connection.key:
            self.peers.setdefault(user_id, set()).add(connection.other(user_id))
        return True

    def add_viewer(self, entry: ViewerEntry) -> bool:
        entries = self.viewers.setdefault(entry.group_id, {})
        if entry.viewer_id in entries:
            return False
        entries[entry.viewer_id] = entry
        self.viewer_groups.setdefault(entry.viewer_id, set()).add(entry.group_id)
        return True

    def remove_viewer(self, group_id: str, viewer_id: str) -> None:
        self.viewers.get(group_id, {}).pop(viewer_id, None)
        self.viewer_groups.get(viewer_id, set()).discard(group_id)

    def add_tag(self, tag: TagDrop) -> bool:
        tags = self.tags.setdefault(tag.drop_id, {})
        if tag.group_id in tags:
            return False
        tags[tag.group_id] = tag
        self.group_drops.setdefault(tag.group_id, set()).add(tag.drop_id)
        return True

    def remove_tag(self, drop_id: str, group_id: str) -> None:
        self.tags.get(drop_id, {}).pop(group_id, None)
        self.group_drops.get(group_id, set()).discard(drop_id)


class LocalSharingStore(SharingStore):
    """In-memory sharing store that can be persisted to a JSON file.

    Committed state is an immutable snapshot. A transaction works on a private
    copy and swaps it in on commit, so readers never wait for writers and never
    see half of a transaction.
    """

    def __init__(self, filepath: str | Path | None = None) -> None:
        """Initialize LocalSharingStore.

        Args:
            filepath: Path to store file. If provided and exists, will auto-load.
                     If provided and doesn't exist, will save to this path when save() is called.
                     If not provided, creates empty store in memory only.
        """
        self._filepath = str(filepath) if filepath else None
        self._lock = threading.RLock()
        self._local = threading.local()
        self._state = _State()

        if self._filepath and Path(self._filepath).exists():
            self._state = self._load(self._filepath)

    @staticmethod
    def _load(filepath: str) -> _State:
        try:
            with open(filepath, "r") as f:
                data = json.load(f)
        except OSError as e:
            raise TransientStoreError(f"Could not read store file {filepath}") from e

        state = _State()
        for user_data in data.get("users", []):
            user = User(**user_data)
            state.users[user.id] = user
        for connection_data in data.get("connections", []):
            state.add_connection(Connection(**connection_data))
        for group_data in data.get("groups", []):
            group = Group(**group_data)
            state.groups[group.id] = group
        for entry_data in data.get("viewers", []):
            state.add_viewer(ViewerEntry(**entry_data))
        for drop_data in data.get("drops", []):
            drop = Drop(**drop_data)
            state.drops[drop.id] = drop
        for tag_data in data.get("tags", []):
            state.add_tag(TagDrop(**tag_data))
        for request_data in data.get("share_requests", []):
            request = ShareRequest(**request_data)
            state.share_requests[request.key] = request
        for link_data in data.get("share_links", []):
            link = ShareLink(**link_data)
            state.share_links[link.token] = link

        logger.info(
            "Loaded store from %s: %d users, %d connections, %d groups",
            filepath,
            len(state.users),
            len(state.connections),
            len(state.groups),
        )
        return state

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if getattr(self._local, "state", None) is not None:
            yield
            return

        with self._lock:
            self._local.state = self._state.copy()
            try:
                yield
                self._state = self._local.state
            finally:
                self._local.state = None

    def _read(self) -> _State:
        working = getattr(self._local, "state", None)
        return working if working is not None else self._state

    def _write(self) -> _State:
        return self._local.state

    @writes
    def add_user(self, user: User) -> None:
        self._write().users[user.id] = user

    def get_user(self, user_id: str) -> User | None:
        return self._read().users.get(user_id)

    @writes
    def add_connection(self, connection: Connection) -> bool:
        return self._write().add_connection(connection)

    def get_connection(self, user_a: str, user_b: str) -> Connection | None:
        return self._read().connections.get(pair_key(user_a, user_b))

    def list_connected_user_ids(self, user_id: str) -> set[str]:
        return set(self._read().peers.get(user_id, set()))

    def list_connections(self) -> List[Connection]:
        return list(self._read().connections.values())

    @writes
    def save_group(self, group: Group) -> None:
        self._write().groups[group.id] = group

    def get_group(self, group_id: str) -> Group | None:
        return self._read().groups.get(group_id)

    def find_reserved_group(self, owner_id: str) -> Group | None:
        for group in self._read().groups.values():
            if group.owner_id == owner_id and group.reserved:
                return group
        return None

    def list_groups(self, owner_id: str) -> List[Group]:
        return [g for g in self._read().groups.values() if g.owner_id == owner_id]

    def list_all_groups(self) -> List[Group]:
        return list(self._read().groups.values())

    @writes
    def add_viewer(self, entry: ViewerEntry) -> bool:
        return self._write().add_viewer(entry)

    @writes
    def remove_viewer(self, group_id: str, viewer_id: str) -> None:
        self._write().remove_viewer(group_id, viewer_id)

    def list_viewer_ids(self, group_id: str) -> set[str]:
        return set(self._read().viewers.get(group_id, {}))

    @writes
    def clear_viewers(self) -> None:
        state = self._write()
        state.viewers = {}
        state.viewer_groups = {}

    @writes
    def save_drop(self, drop: Drop) -> None:
        self._write().drops[drop.id] = drop

    def get_drop(self, drop_id: str) -> Drop | None:
        return self._read().drops.get(drop_id)

    @writes
    def add_tag(self, tag: TagDrop) -> bool:
        return self._write().add_tag(tag)

    @writes
    def remove_tag(self, drop_id: str, group_id: str) -> None:
        self._write().remove_tag(drop_id, group_id)

    def list_group_ids_for_drop(self, drop_id: str) -> set[str]:
        return set(self._read().tags.get(drop_id, {}))

    def has_tagged_viewer(self, drop_id: str, viewer_id: str) -> bool:
        state = self._read()
        tagged_groups = state.tags.get(drop_id, {})
        return any(g in tagged_groups for g in state.viewer_groups.get(viewer_id, ()))

    def list_visible_drops(self, viewer_id: str) -> List[Drop]:
        state = self._read()
        drop_ids = {d.id for d in state.drops.values() if d.owner_id == viewer_id}
        for group_id in state.viewer_groups.get(viewer_id, ()):
            drop_ids.update(state.group_drops.get(group_id, ()))
        return [state.drops[d] for d in drop_ids if d in state.drops]

    @writes
    def save_share_request(self, request: ShareRequest) -> None:
        self._write().share_requests[request.key] = request

    def get_share_request_by_key(self, key: str) -> ShareRequest | None:
        return self._read().share_requests.get(key)

    @writes
    def save_share_link(self, link: ShareLink) -> None:
        self._write().share_links[link.token] = link

    def get_share_link_by_token(self, token: str) -> ShareLink | None:
        return self._read().share_links.get(token)

    def save(self, filepath: str | None = None) -> None:
        """Save the committed state to a JSON file.

        Args:
            filepath: Path to save to. If not provided, uses the filepath from initialization.
        """
        save_path = filepath or self._filepath
        if not save_path:
            raise ValueError(
                "No filepath provided and no default filepath set during initialization"
            )

        state = self._state
        data = {
            "users": [u.model_dump(mode="json") for u in state.users.values()],
            "connections": [c.model_dump(mode="json") for c in state.connections.values()],
            "groups": [g.model_dump(mode="json") for g in state.groups.values()],
            "viewers": [
                e.model_dump(mode="json")
                for entries in state.viewers.values()
                for e in entries.values()
            ],
            "drops": [d.model_dump(mode="json") for d in state.drops.values()],
            "tags": [
                t.model_dump(mode="json") for tags in state.tags.values() for t in tags.values()
            ],
            "share_requests": [r.model_dump(mode="json") for r in state.share_requests.values()],
            "share_links": [s.model_dump(mode="json") for s in state.share_links.values()],
        }
        try:
            Path(save_path).parent.mkdir(parents=True, exist_ok=True)
            with open(save_path, "w") as f:
                json.dump(data, f)
        except OSError as e:
            raise TransientStoreError(f"Could not write store file {save_path}") from e

    def clear(self) -> None:
        """Clear all data from the store."""
        with self._lock:
            self._state = _State()
