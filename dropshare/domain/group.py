"""Group and viewer-entry domain models."""

from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from dropshare.domain.timestamps import UtcDatetime, utcnow


def new_id() -> str:
    return uuid4().hex


class Group(BaseModel):
    """A named, owner-scoped sharing scope.

    Attributes:
        id: Unique identifier
        owner_id: The user who owns the group
        name: Display name, unique per owner for the reserved group
        reserved: True for the per-user "All Connections" group, whose viewers
            track the owner's connections
        member_ids: Owner-curated viewers of a custom group. The viewer index
            is projected from this list. Always empty for the reserved group.
        created_at: Creation timestamp
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    owner_id: str
    name: str
    reserved: bool = False
    member_ids: list[str] = []
    created_at: UtcDatetime = Field(default_factory=utcnow)


class ViewerEntry(BaseModel):
    """Materialised grant: ``viewer_id`` may see drops tagged to ``group_id``."""

    model_config = ConfigDict(frozen=True)

    group_id: str
    viewer_id: str
    created_at: UtcDatetime = Field(default_factory=utcnow)
