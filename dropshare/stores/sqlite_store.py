"""SQLite-backed sharing store.

Connections come from a bounded pool. A thread holds one for the length of a
transaction and borrows one per statement otherwise. The database runs in WAL
mode so reads from one connection never block a writer on another, and every
write transaction starts with ``BEGIN IMMEDIATE`` so writers are serialised.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Iterator, List

from dropshare.domain.connection import Connection, pair_key
from dropshare.domain.drop import Drop, TagDrop
from dropshare.domain.group import Group, ViewerEntry
from dropshare.domain.invitation import ShareLink, ShareRequest
from dropshare.domain.user import User
from dropshare.errors import TransientStoreError
from dropshare.stores.base import SharingStore, writes

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS connections (
    user_a TEXT NOT NULL,
    user_b TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (user_a, user_b)
);
CREATE INDEX IF NOT EXISTS idx_connections_user_b ON connections (user_b);
CREATE TABLE IF NOT EXISTS sharing_groups (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    name TEXT NOT NULL,
    reserved INTEGER NOT NULL,
    member_ids TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_groups_owner ON sharing_groups (owner_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_groups_reserved_owner
    ON sharing_groups (owner_id) WHERE reserved = 1;
CREATE TABLE IF NOT EXISTS viewer_entries (
    group_id TEXT NOT NULL,
    viewer_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (group_id, viewer_id)
);
CREATE INDEX IF NOT EXISTS idx_viewer_entries_viewer ON viewer_entries (viewer_id);
CREATE TABLE IF NOT EXISTS drops (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    title TEXT NOT NULL,
    created_at TEXT NOT NULL,
    assisted INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_drops_owner ON drops (owner_id);
CREATE TABLE IF NOT EXISTS tag_drops (
    drop_id TEXT NOT NULL,
    group_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (drop_id, group_id)
);
CREATE INDEX IF NOT EXISTS idx_tag_drops_group ON tag_drops (group_id);
CREATE TABLE IF NOT EXISTS share_requests (
    id TEXT PRIMARY KEY,
    requester_id TEXT NOT NULL,
    target_id TEXT NOT NULL,
    key TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL,
    used INTEGER NOT NULL,
    ignored INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS share_links (
    id TEXT PRIMARY KEY,
    creator_id TEXT NOT NULL,
    drop_id TEXT NOT NULL,
    token TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL,
    expires_at TEXT,
    is_active INTEGER NOT NULL,
    view_count INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_share_links_drop ON share_links (drop_id);
"""


def _group_from_row(row: sqlite3.Row) -> Group:
    data = dict(row)
    data["member_ids"] = json.loads(data["member_ids"])
    return Group(**data)


class SqliteSharingStore(SharingStore):
    """Sharing store backed by a SQLite database file."""

    def __init__(
        self, db_path: str | Path, busy_timeout_ms: int = 10000, pool_size: int = 5
    ) -> None:
        """Open (and create if needed) the database.

        Args:
            db_path: Path to the SQLite database file
            busy_timeout_ms: How long a writer waits for the write lock, and a
                caller for a free connection
            pool_size: Maximum number of open connections
        """
        if str(db_path) == ":memory:":
            raise ValueError("SqliteSharingStore needs a database file shared by all threads")
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self._db_path = str(db_path)
        self._busy_timeout_ms = busy_timeout_ms
        self._pool_size = pool_size
        self._idle: Queue[sqlite3.Connection] = Queue(maxsize=pool_size)
        self._pool_lock = threading.Lock()
        self._opened = 0
        # Holds the connection of the thread's open transaction, if any
        self._local = threading.local()

        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = self._acquire()
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise TransientStoreError(f"Could not initialise database {self._db_path}") from e
        finally:
            self._release(conn)

    @property
    def open_connections(self) -> int:
        """Number of connections currently open, idle or in use."""
        return self._opened

    def _create_connection(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                self._db_path,
                isolation_level=None,
                check_same_thread=False,
                timeout=self._busy_timeout_ms / 1000,
            )
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute(f"PRAGMA busy_timeout={int(self._busy_timeout_ms)}")
        except sqlite3.Error as e:
            raise TransientStoreError(f"Could not open database {self._db_path}") from e
        conn.row_factory = sqlite3.Row
        logger.debug("Opened connection to %s", self._db_path)
        return conn

    def _acquire(self) -> sqlite3.Connection:
        try:
            return self._idle.get(block=False)
        except Empty:
            pass

        with self._pool_lock:
            grow = self._opened < self._pool_size
            if grow:
                self._opened += 1
        if grow:
            try:
                return self._create_connection()
            except TransientStoreError:
                with self._pool_lock:
                    self._opened -= 1
                raise

        timeout = self._busy_timeout_ms / 1000
        try:
            return self._idle.get(timeout=timeout)
        except Empty:
            logger.warning("Connection pool exhausted (timeout after %.1fs)", timeout)
            raise TransientStoreError(f"No free connection to {self._db_path}") from None

    def _release(self, conn: sqlite3.Connection) -> None:
        try:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            self._idle.put(conn, block=False)
        except (sqlite3.Error, Full) as e:
            logger.error("Dropping connection that could not be returned to the pool: %s", e)
            conn.close()
            with self._pool_lock:
                self._opened -= 1

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            yield conn
            return

        conn = self._acquire()
        try:
            yield conn
        finally:
            self._release(conn)

    @staticmethod
    def _run(conn: sqlite3.Connection, query: str, params: tuple[Any, ...]) -> sqlite3.Cursor:
        try:
            return conn.execute(query, params)
        except sqlite3.OperationalError as e:
            raise TransientStoreError(f"Database unavailable: {e}") from e

    def _execute(self, query: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        with self._connection() as conn:
            return self._run(conn, query, params)

    def _fetchall(self, query: str, params: tuple[Any, ...] = ()) -> List[sqlite3.Row]:
        with self._connection() as conn:
            return self._run(conn, query, params).fetchall()

    def _fetchone(self, query: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        with self._connection() as conn:
            return self._run(conn, query, params).fetchone()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if getattr(self._local, "conn", None) is not None:
            self._local.depth += 1
            try:
                yield
            finally:
                self._local.depth -= 1
            return

        conn = self._acquire()
        try:
            self._run(conn, "BEGIN IMMEDIATE", ())
            self._local.conn = conn
            self._local.depth = 1
            try:
                yield
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            else:
                try:
                    conn.execute("COMMIT")
                except sqlite3.OperationalError as e:
                    if conn.in_transaction:
                        conn.execute("ROLLBACK")
                    raise TransientStoreError(f"Commit failed: {e}") from e
        finally:
            self._local.conn = None
            self._local.depth = 0
            self._release(conn)

    @writes
    def add_user(self, user: User) -> None:
        self._execute(
            "INSERT OR REPLACE INTO users (id, name) VALUES (?, ?)",
            (user.id, user.name),
        )

    def get_user(self, user_id: str) -> User | None:
        row = self._fetchone("SELECT id, name FROM users WHERE id = ?", (user_id,))
        return User(**dict(row)) if row else None

    @writes
    def add_connection(self, connection: Connection) -> bool:
        data = connection.model_dump(mode="json")
        cursor = self._execute(
            "INSERT OR IGNORE INTO connections (user_a, user_b, created_at) VALUES (?, ?, ?)",
            (data["user_a"], data["user_b"], data["created_at"]),
        )
        return cursor.rowcount == 1

    def get_connection(self, user_a: str, user_b: str) -> Connection | None:
        row = self._fetchone(
            "SELECT user_a, user_b, created_at FROM connections WHERE user_a = ? AND user_b = ?",
            pair_key(user_a, user_b),
        )
        return Connection(**dict(row)) if row else None

    def list_connected_user_ids(self, user_id: str) -> set[str]:
        rows = self._fetchall(
            "SELECT user_b AS peer FROM connections WHERE user_a = ? "
            "UNION SELECT user_a AS peer FROM connections WHERE user_b = ?",
            (user_id, user_id),
        )
        return {row["peer"] for row in rows}

    def list_connections(self) -> List[Connection]:
        rows = self._fetchall("SELECT user_a, user_b, created_at FROM connections")
        return [Connection(**dict(row)) for row in rows]

    @writes
    def save_group(self, group: Group) -> None:
        data = group.model_dump(mode="json")
        self._execute(
            "INSERT OR REPLACE INTO sharing_groups "
            "(id, owner_id, name, reserved, member_ids, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                data["id"],
                data["owner_id"],
                data["name"],
                int(data["reserved"]),
                json.dumps(data["member_ids"]),
                data["created_at"],
            ),
        )

    def get_group(self, group_id: str) -> Group | None:
        row = self._fetchone("SELECT * FROM sharing_groups WHERE id = ?", (group_id,))
        return _group_from_row(row) if row else None

    def find_reserved_group(self, owner_id: str) -> Group | None:
        row = self._fetchone(
            "SELECT * FROM sharing_groups WHERE owner_id = ? AND reserved = 1", (owner_id,)
        )
        return _group_from_row(row) if row else None

    def list_groups(self, owner_id: str) -> List[Group]:
        rows = self._fetchall("SELECT * FROM sharing_groups WHERE owner_id = ?", (owner_id,))
        return [_group_from_row(row) for row in rows]

    def list_all_groups(self) -> List[Group]:
        return [_group_from_row(row) for row in self._fetchall("SELECT * FROM sharing_groups")]

    @writes
    def add_viewer(self, entry: ViewerEntry) -> bool:
        data = entry.model_dump(mode="json")
        cursor = self._execute(
            "INSERT OR IGNORE INTO viewer_entries (group_id, viewer_id, created_at) "
            "VALUES (?, ?, ?)",
            (data["group_id"], data["viewer_id"], data["created_at"]),
        )
        return cursor.rowcount == 1

    @writes
    def remove_viewer(self, group_id: str, viewer_id: str) -> None:
        self._execute(
            "DELETE FROM viewer_entries WHERE group_id = ? AND viewer_id = ?",
            (group_id, viewer_id),
        )

    def list_viewer_ids(self, group_id: str) -> set[str]:
        rows = self._fetchall(
            "SELECT viewer_id FROM viewer_entries WHERE group_id = ?", (group_id,)
        )
        return {row["viewer_id"] for row in rows}

    @writes
    def clear_viewers(self) -> None:
        self._execute("DELETE FROM viewer_entries")

    @writes
    def save_drop(self, drop: Drop) -> None:
        data = drop.model_dump(mode="json")
        self._execute(
            "INSERT OR REPLACE INTO drops (id, owner_id, title, created_at, assisted) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                data["id"],
                data["owner_id"],
                data["title"],
                data["created_at"],
                int(data["assisted"]),
            ),
        )

    def get_drop(self, drop_id: str) -> Drop | None:
        row = self._fetchone("SELECT * FROM drops WHERE id = ?", (drop_id,))
        return Drop(**dict(row)) if row else None

    @writes
    def add_tag(self, tag: TagDrop) -> bool:
        data = tag.model_dump(mode="json")
        cursor = self._execute(
            "INSERT OR IGNORE INTO tag_drops (drop_id, group_id, created_at) VALUES (?, ?, ?)",
            (data["drop_id"], data["group_id"], data["created_at"]),
        )
        return cursor.rowcount == 1

    @writes
    def remove_tag(self, drop_id: str, group_id: str) -> None:
        self._execute(
            "DELETE FROM tag_drops WHERE drop_id = ? AND group_id = ?", (drop_id, group_id)
        )

    def list_group_ids_for_drop(self, drop_id: str) -> set[str]:
        rows = self._fetchall("SELECT group_id FROM tag_drops WHERE drop_id = ?", (drop_id,))
        return {row["group_id"] for row in rows}

    def has_tagged_viewer(self, drop_id: str, viewer_id: str) -> bool:
        row = self._fetchone(
            "SELECT 1 FROM tag_drops t "
            "JOIN viewer_entries v ON v.group_id = t.group_id "
            "WHERE t.drop_id = ? AND v.viewer_id = ? LIMIT 1",
            (drop_id, viewer_id),
        )
        return row is not None

    def list_visible_drops(self, viewer_id: str) -> List[Drop]:
        rows = self._fetchall(
            "SELECT d.* FROM drops d WHERE d.owner_id = ? "
            "UNION "
            "SELECT d.* FROM drops d "
            "JOIN tag_drops t ON t.drop_id = d.id "
            "JOIN viewer_entries v ON v.group_id = t.group_id "
            "WHERE v.viewer_id = ?",
            (viewer_id, viewer_id),
        )
        return [Drop(**dict(row)) for row in rows]

    @writes
    def save_share_request(self, request: ShareRequest) -> None:
        data = request.model_dump(mode="json")
        self._execute(
            "INSERT OR REPLACE INTO share_requests "
            "(id, requester_id, target_id, key, created_at, used, ignored) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                data["id"],
                data["requester_id"],
                data["target_id"],
                data["key"],
                data["created_at"],
                int(data["used"]),
                int(data["ignored"]),
            ),
        )

    def get_share_request_by_key(self, key: str) -> ShareRequest | None:
        row = self._fetchone("SELECT * FROM share_requests WHERE key = ?", (key,))
        return ShareRequest(**dict(row)) if row else None

    @writes
    def save_share_link(self, link: ShareLink) -> None:
        data = link.model_dump(mode="json")
        self._execute(
            "INSERT OR REPLACE INTO share_links "
            "(id, creator_id, drop_id, token, created_at, expires_at, is_active, view_count) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                data["id"],
                data["creator_id"],
                data["drop_id"],
                data["token"],
                data["created_at"],
                data["expires_at"],
                int(data["is_active"]),
                data["view_count"],
            ),
        )

    def get_share_link_by_token(self, token: str) -> ShareLink | None:
        row = self._fetchone("SELECT * FROM share_links WHERE token = ?", (token,))
        return ShareLink(**dict(row)) if row else None

    def save(self, filepath: str | None = None) -> None:
        """Checkpoint the write-ahead log. Commits are already durable."""
        if filepath and filepath != self._db_path:
            raise ValueError("SqliteSharingStore can only checkpoint its own database")
        self._execute("PRAGMA wal_checkpoint(TRUNCATE)")

    def close(self) -> None:
        """Close the idle connections of the pool."""
        closed = 0
        while True:
            try:
                conn = self._idle.get(block=False)
            except Empty:
                break
            conn.close()
            closed += 1
        with self._pool_lock:
            self._opened -= closed
        logger.debug("Closed %d connections to %s", closed, self._db_path)
