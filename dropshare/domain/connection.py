"""Connection domain model."""

from pydantic import BaseModel, ConfigDict, Field

from dropshare.domain.timestamps import UtcDatetime, utcnow


class Connection(BaseModel):
    """A mutual link between two users.

    The pair is unordered; ``between`` normalises it so that ``user_a < user_b``
    and there is exactly one record per pair.
    """

    model_config = ConfigDict(frozen=True)

    user_a: str
    user_b: str
    created_at: UtcDatetime = Field(default_factory=utcnow)

    @classmethod
    def between(cls, first: str, second: str) -> "Connection":
        if first == second:
            raise ValueError(f"User {first} cannot connect to themselves")
        user_a, user_b = sorted((first, second))
        return cls(user_a=user_a, user_b=user_b)

    @property
    def key(self) -> tuple[str, str]:
        return (self.user_a, self.user_b)

    def other(self, user_id: str) -> str:
        """Return the peer of ``user_id`` in this connection."""
        if user_id == self.user_a:
            return self.user_b
        if user_id == self.user_b:
            return self.user_a
        raise ValueError(f"User {user_id} is not part of this connection")


def pair_key(first: str, second: str) -> tuple[str, str]:
    user_a, user_b = sorted((first, second))
    return (user_a, user_b)
