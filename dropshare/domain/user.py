"""User domain model."""

from pydantic import BaseModel, ConfigDict


class User(BaseModel):
    """An already-authenticated user, known to the core only by id."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
