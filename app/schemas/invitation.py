from datetime import datetime

from pydantic import BaseModel, Field

from app.models.invitation import GroupInvitation
from app.schemas.group import GroupSummary
from app.services.invitation_workflow import InvitationState, invitation_state


class InvitationCreateRequest(BaseModel):
    household_name: str = Field(min_length=1)


class InvitationPublic(BaseModel):
    id: int
    group_id: int
    inviter_email: str
    invited_household_id: int
    created_at: datetime
    expires_at: datetime
    accepted_at: datetime | None
    declined_at: datetime | None
    state: InvitationState

    @classmethod
    def from_model(cls, invitation: GroupInvitation, now: datetime) -> "InvitationPublic":
        return cls(
            id=invitation.id,
            group_id=invitation.group_id,
            inviter_email=invitation.inviter_email,
            invited_household_id=invitation.invited_household_id,
            created_at=invitation.created_at,
            expires_at=invitation.expires_at,
            accepted_at=invitation.accepted_at,
            declined_at=invitation.declined_at,
            state=invitation_state(invitation, now),
        )


class InvitationSummary(BaseModel):
    id: int
    group: GroupSummary
    inviter_email: str
    expires_at: datetime
