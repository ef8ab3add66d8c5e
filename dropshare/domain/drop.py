"""Drop and tagging domain models."""

from pydantic import BaseModel, ConfigDict, Field

from dropshare.domain.group import new_id
from dropshare.domain.timestamps import UtcDatetime, utcnow


class Drop(BaseModel):
    """A content item owned by one user. Untagged drops are private.

    Attributes:
        id: Unique identifier
        owner_id: The user who created the drop
        title: Short description; the content itself lives elsewhere
        created_at: The drop's natural timestamp, used to order feeds
        assisted: Whether the drop was written with assistance
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    owner_id: str
    title: str = ""
    created_at: UtcDatetime = Field(default_factory=utcnow)
    assisted: bool = False


class TagDrop(BaseModel):
    """Associates a drop with one of its owner's groups."""

    model_config = ConfigDict(frozen=True)

    drop_id: str
    group_id: str
    created_at: UtcDatetime = Field(default_factory=utcnow)
