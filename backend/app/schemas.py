"""Pydantic records handed to and returned by the group store."""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

MembershipType = Literal["member", "owner"]


# ----- Group -----
class GroupBase(BaseModel):
    name: str
    description: Optional[str] = None


class GroupCreate(GroupBase):
    created_by: Optional[str] = None


class GroupUpdate(GroupBase):
    id: int


class Group(GroupBase):
    id: int
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None

    class Config:
        from_attributes = True


# ----- Membership -----
class GroupUserModel(BaseModel):
    """A user to be added to a group, with the role they get there."""

    user_id: int
    type: MembershipType = "member"


class GroupUser(BaseModel):
    group_id: int
    user_id: int
    type: Optional[str] = None

    class Config:
        from_attributes = True
