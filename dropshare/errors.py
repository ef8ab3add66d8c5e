"""Errors raised by the sharing core."""


class SharingError(Exception):
    """Base class for all sharing errors."""


class NotFoundError(SharingError):
    """A referenced user, group, drop, invitation or share link does not exist."""

    def __init__(self, kind: str, ref: str) -> None:
        super().__init__(f"{kind} {ref} not found")
        self.kind = kind
        self.ref = ref


class UnauthorizedError(SharingError):
    """An actor tried to mutate something they do not own."""

    def __init__(self, actor_id: str, action: str) -> None:
        super().__init__(f"User {actor_id} is not allowed to {action}")
        self.actor_id = actor_id
        self.action = action


class ReservedGroupError(SharingError):
    """The reserved group cannot be created or curated by hand."""


class TransientStoreError(SharingError):
    """The backing store is unavailable. Callers may retry the whole operation."""
