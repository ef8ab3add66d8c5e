"""Lookups that turn a missing record into a NotFoundError."""

from dropshare.domain.drop import Drop
from dropshare.domain.group import Group
from dropshare.domain.user import User
from dropshare.errors import NotFoundError
from dropshare.stores.base import SharingStore


def require_user(store: SharingStore, user_id: str) -> User:
    user = store.get_user(user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def require_group(store: SharingStore, group_id: str) -> Group:
    group = store.get_group(group_id)
    if group is None:
        raise NotFoundError("Group", group_id)
    return group


def require_drop(store: SharingStore, drop_id: str) -> Drop:
    drop = store.get_drop(drop_id)
    if drop is None:
        raise NotFoundError("Drop", drop_id)
    return drop
