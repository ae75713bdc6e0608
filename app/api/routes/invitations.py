import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.auth import get_current_household_id
from app.core.timeutils import utc_now_naive
from app.models.group import Group
from app.realtime.sse import notify
from app.schemas.group import GroupSummary, MembershipPublic
from app.schemas.invitation import InvitationSummary
from app.services import invitation_workflow, membership_ledger
from app.services.results import raise_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invitations", tags=["invitations"])


@router.get("/pending", response_model=list[InvitationSummary])
def list_pending_invitations(
    db: Session = Depends(get_db),
    household_id: int = Depends(get_current_household_id),
):
    invitations = invitation_workflow.list_pending(db, household_id)

    out = []
    for inv in invitations:
        group = db.get(Group, inv.group_id)
        out.append(
            InvitationSummary(
                id=inv.id,
                group=GroupSummary.model_validate(group),
                inviter_email=inv.inviter_email,
                expires_at=inv.expires_at,
            )
        )
    return out


@router.post("/{invitation_id}/accept", response_model=MembershipPublic)
def accept_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    household_id: int = Depends(get_current_household_id),
):
    membership = raise_for(invitation_workflow.accept(db, invitation_id, household_id))

    others = [
        h.id
        for h in membership_ledger.list_current_households(db, membership.group_id, utc_now_naive())
        if h.id != household_id
    ]
    notify(
        "GROUP_HOUSEHOLD_JOINED",
        {"group_id": membership.group_id, "household_id": household_id},
        household_ids=others,
    )
    return MembershipPublic.model_validate(membership)


@router.post("/{invitation_id}/decline")
def decline_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    household_id: int = Depends(get_current_household_id),
):
    raise_for(invitation_workflow.decline(db, invitation_id, household_id))
    return {"ok": True, "invitation_id": invitation_id}
