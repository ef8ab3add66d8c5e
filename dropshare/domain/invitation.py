"""Invitation and share-link domain models."""

from pydantic import BaseModel, ConfigDict, Field

from dropshare.domain.group import new_id
from dropshare.domain.timestamps import UtcDatetime, as_utc, utcnow


class ShareRequest(BaseModel):
    """A one-shot invitation from ``requester_id`` to ``target_id``."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    requester_id: str
    target_id: str
    key: str = Field(default_factory=new_id)
    created_at: UtcDatetime = Field(default_factory=utcnow)
    used: bool = False
    ignored: bool = False

    @property
    def is_open(self) -> bool:
        return not (self.used or self.ignored)


class ShareLink(BaseModel):
    """A reusable link to one drop. Every claim connects the claimer to the creator.

    Attributes:
        id: Unique identifier
        creator_id: The user who created the link; always the drop owner
        drop_id: The shared drop
        token: Secret embedded in the link
        created_at: Creation timestamp
        expires_at: Optional expiry; None means the link never expires
        is_active: False once the creator deactivates the link
        view_count: Number of times the link was claimed
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    creator_id: str
    drop_id: str
    token: str = Field(default_factory=new_id)
    created_at: UtcDatetime = Field(default_factory=utcnow)
    expires_at: UtcDatetime | None = None
    is_active: bool = True
    view_count: int = 0

    def is_claimable(self, now: UtcDatetime | None = None) -> bool:
        if not self.is_active:
            return False
        if self.expires_at is None:
            return True
        return as_utc(now or utcnow()) < self.expires_at
