"""
Group invitations: PENDING -> ACCEPTED | DECLINED | EXPIRED.

Expiry is never written. An invitation past ``expires_at`` simply stops
being pending the moment it is looked at, so no background job keeps the
state in sync.
"""
import enum
import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.timeutils import utc_now_naive
from app.models.group import Group, GroupStatus
from app.models.invitation import GroupInvitation
from app.models.membership import GroupMembership
from app.services import membership_ledger
from app.services.household_directory import get_household_by_name, resolve_household_id_by_email
from app.services.results import Rejected, conflict, forbidden, invalid_state, not_found

logger = logging.getLogger(__name__)


class InvitationState(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


def invitation_state(invitation: GroupInvitation, now: datetime) -> InvitationState:
    if invitation.accepted_at is not None:
        return InvitationState.ACCEPTED
    if invitation.declined_at is not None:
        return InvitationState.DECLINED
    if invitation.expires_at <= now:
        return InvitationState.EXPIRED
    return InvitationState.PENDING


def _pending_at(now: datetime):
    return and_(
        GroupInvitation.accepted_at.is_(None),
        GroupInvitation.declined_at.is_(None),
        GroupInvitation.expires_at > now,
    )


def has_pending_invitation(db: Session, group_id: int, household_id: int, now: datetime) -> bool:
    row = db.execute(
        select(GroupInvitation.id).where(
            GroupInvitation.group_id == group_id,
            GroupInvitation.invited_household_id == household_id,
            _pending_at(now),
        )
    ).first()
    return row is not None


def create(
    db: Session,
    group_id: int,
    household_name: str,
    inviter_email: str,
    now: datetime | None = None,
) -> GroupInvitation | Rejected:
    now = now or utc_now_naive()

    # row lock serializes invitation creation per group where the backend supports it
    group = db.execute(select(Group).where(Group.id == group_id).with_for_update()).scalar_one_or_none()
    if group is None:
        return not_found("Group not found")

    household = get_household_by_name(db, household_name)
    if household is None:
        return not_found("Household not found")

    if group.is_archived:
        return conflict("Group is archived")

    inviter_household_id = resolve_household_id_by_email(db, inviter_email)
    if inviter_household_id is None or not membership_ledger.is_current_member(
        db, group_id, inviter_household_id, now
    ):
        return forbidden("Only current members can invite households to this group")

    if membership_ledger.is_current_member(db, group_id, household.id, now):
        return conflict("Household is already a member of this group")

    if has_pending_invitation(db, group_id, household.id, now):
        return conflict("There is already a pending invitation for this household")

    invitation = GroupInvitation(
        group_id=group_id,
        inviter_email=inviter_email,
        invited_household_id=household.id,
        created_at=now,
        expires_at=now + timedelta(days=settings.GROUP_INVITATION_TTL_DAYS),
    )
    db.add(invitation)
    db.commit()
    db.refresh(invitation)

    logger.info(
        "Household %s invited to group %s by %s (expires %s)",
        household.id,
        group_id,
        inviter_email,
        invitation.expires_at,
    )
    return invitation


def accept(
    db: Session,
    invitation_id: int,
    acting_household_id: int,
    now: datetime | None = None,
) -> GroupMembership | Rejected:
    """
    Accept a pending invitation and open the membership in one transaction.

    Anything other than a pending invitation (accepted, declined, expired)
    yields INVALID_STATE with no writes, so retries are harmless.
    """
    now = now or utc_now_naive()

    invitation = db.get(GroupInvitation, invitation_id)
    if invitation is None:
        return not_found("Invitation not found")

    if invitation.invited_household_id != acting_household_id:
        return forbidden("Invitation is addressed to another household")

    state = invitation_state(invitation, now)
    if state is not InvitationState.PENDING:
        logger.info("Accept ignored for invitation %s: %s", invitation_id, state.value)
        return invalid_state(f"Invitation is {state.value}, not pending")

    try:
        claimed = db.execute(
            update(GroupInvitation)
            .where(GroupInvitation.id == invitation_id, _pending_at(now))
            .values(accepted_at=now)
        ).rowcount
        if claimed != 1:
            db.rollback()
            return invalid_state("Invitation is no longer pending")

        membership = membership_ledger.join(db, invitation, now)
        if isinstance(membership, Rejected):
            db.rollback()
            return membership

        db.commit()
    except IntegrityError:
        db.rollback()
        return conflict("Household is already a member of this group")
    except Exception:
        db.rollback()
        raise

    db.refresh(membership)
    logger.info(
        "Invitation %s accepted: household %s joined group %s",
        invitation_id,
        membership.household_id,
        membership.group_id,
    )
    return membership


def decline(
    db: Session,
    invitation_id: int,
    acting_household_id: int,
    now: datetime | None = None,
) -> GroupInvitation | Rejected:
    """Same guards and reasons as ``accept``; a declined invitation is terminal."""
    now = now or utc_now_naive()

    invitation = db.get(GroupInvitation, invitation_id)
    if invitation is None:
        return not_found("Invitation not found")

    if invitation.invited_household_id != acting_household_id:
        return forbidden("Invitation is addressed to another household")

    state = invitation_state(invitation, now)
    if state is not InvitationState.PENDING:
        return invalid_state(f"Invitation is {state.value}, not pending")

    declined = db.execute(
        update(GroupInvitation)
        .where(GroupInvitation.id == invitation_id, _pending_at(now))
        .values(declined_at=now)
    ).rowcount
    if declined != 1:
        db.rollback()
        return invalid_state("Invitation is no longer pending")

    db.commit()
    db.refresh(invitation)
    logger.info("Invitation %s declined by household %s", invitation_id, acting_household_id)
    return invitation


def list_pending(db: Session, household_id: int, now: datetime | None = None) -> list[GroupInvitation]:
    """Pending invitations of a household; invitations into archived groups are left out."""
    now = now or utc_now_naive()

    stmt = (
        select(GroupInvitation)
        .join(Group, Group.id == GroupInvitation.group_id)
        .where(
            GroupInvitation.invited_household_id == household_id,
            Group.status == GroupStatus.ACTIVE,
            _pending_at(now),
        )
        .order_by(GroupInvitation.created_at.desc(), GroupInvitation.id.desc())
    )
    return list(db.execute(stmt).scalars().all())
