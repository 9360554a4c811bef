"""Social Schemas — friend requests."""

from pydantic import Field

from meethalf.schemas.common import CamelModel


class FriendRequestCreate(CamelModel):
    to_user_id: str = Field(min_length=1)
