from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, StringConstraints

from app.models.group import GroupStatus


class GroupCreate(BaseModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]


class GroupSummary(BaseModel):
    id: int
    name: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GroupPublic(GroupSummary):
    status: GroupStatus
    created_by_user_id: int


class HouseholdPublic(BaseModel):
    id: int
    name: str
    address: str
    population_count: int

    model_config = ConfigDict(from_attributes=True)


class MembershipPublic(BaseModel):
    id: int
    group_id: int
    household_id: int
    invited_by_user_id: Optional[int] = None
    joined_at: datetime
    left_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
