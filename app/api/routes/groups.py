import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import PageParams, get_db
from app.core.auth import get_current_user
from app.core.timeutils import utc_now_naive
from app.models.user import User
from app.realtime.sse import notify
from app.schemas.group import GroupCreate, GroupPublic, GroupSummary, HouseholdPublic
from app.schemas.invitation import InvitationCreateRequest, InvitationPublic
from app.services import group_registry, invitation_workflow, membership_ledger
from app.services.results import Rejected, raise_for


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups", tags=["groups"])


@router.post("", response_model=GroupPublic)
def create_group(
    payload: GroupCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = raise_for(group_registry.create_group(db, payload.name, current_user.email))

    # creation and enrollment are separate operations; the API does both
    enrolled = membership_ledger.join_as_creator(db, group, current_user.email)
    if isinstance(enrolled, Rejected):
        logger.warning("Group %s created without its creator's household: %s", group.id, enrolled.detail)

    return GroupPublic.model_validate(group)


@router.get("/current", response_model=list[GroupSummary])
def list_current_groups(
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    groups = group_registry.list_current_groups(db, current_user.email, paging.page, paging.size)
    return [GroupSummary.model_validate(g) for g in groups]


@router.patch("/{group_id}/leave")
def leave_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not membership_ledger.leave(db, group_id, current_user.email):
        raise HTTPException(status_code=404, detail="No current membership found")

    remaining = membership_ledger.list_current_households(db, group_id)
    notify(
        "GROUP_HOUSEHOLD_LEFT",
        {"group_id": group_id, "household_id": current_user.household_id},
        household_ids=[h.id for h in remaining],
    )
    return {"ok": True, "group_id": group_id}


@router.get("/{group_id}/households", response_model=list[HouseholdPublic])
def list_households(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    now = utc_now_naive()
    if current_user.household_id is None or not membership_ledger.is_current_member(
        db, group_id, current_user.household_id, now
    ):
        logger.warning(
            "User %s attempted to list households of group %s without membership",
            current_user.email,
            group_id,
        )
        raise HTTPException(status_code=403, detail="Your household is not a member of this group")

    households = membership_ledger.list_current_households(db, group_id, now)
    return [HouseholdPublic.model_validate(h) for h in households]


@router.post("/{group_id}/invitations", response_model=InvitationPublic)
def invite_household(
    group_id: int,
    payload: InvitationCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    now = utc_now_naive()
    invitation = raise_for(
        invitation_workflow.create(db, group_id, payload.household_name, current_user.email, now)
    )

    notify(
        "INVITATION_CREATED",
        {"invitation_id": invitation.id, "group_id": group_id},
        household_ids=[invitation.invited_household_id],
    )
    return InvitationPublic.from_model(invitation, now)
