from dropshare.stores.base import SharingStore
from dropshare.stores.local_store import LocalSharingStore
from dropshare.stores.sqlite_store import SqliteSharingStore

__all__ = ["SharingStore", "LocalSharingStore", "SqliteSharingStore"]
