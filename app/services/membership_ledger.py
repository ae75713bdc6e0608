"""
Time-bounded household <-> group membership.

A pair (group, household) moves NONE -> ACTIVE -> ENDED. Every tenure is its
own row; ending one stamps ``left_at`` and the row stays as history.
"""
import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.timeutils import utc_now_naive
from app.models.group import Group
from app.models.household import Household
from app.models.invitation import GroupInvitation
from app.models.membership import GroupMembership
from app.services import contribution_ledger, group_registry
from app.services.household_directory import (
    get_user_by_email,
    is_household_admin,
    resolve_household_id_by_email,
)
from app.services.results import Rejected, conflict, forbidden, not_found

logger = logging.getLogger(__name__)


def current_membership(
    db: Session,
    household_id: int,
    group_id: int | None = None,
    now: datetime | None = None,
) -> GroupMembership | None:
    now = now or utc_now_naive()

    stmt = select(GroupMembership).where(
        GroupMembership.household_id == household_id,
        GroupMembership.current_at(now),
    )
    if group_id is not None:
        stmt = stmt.where(GroupMembership.group_id == group_id)

    stmt = stmt.order_by(GroupMembership.joined_at.desc(), GroupMembership.id.desc()).limit(1)
    return db.execute(stmt).scalars().first()


def is_current_member(db: Session, group_id: int, household_id: int, now: datetime | None = None) -> bool:
    return current_membership(db, household_id, group_id, now) is not None


def list_current_households(db: Session, group_id: int, now: datetime | None = None) -> list[Household]:
    now = now or utc_now_naive()

    stmt = (
        select(Household)
        .join(GroupMembership, GroupMembership.household_id == Household.id)
        .where(
            GroupMembership.group_id == group_id,
            GroupMembership.current_at(now),
        )
        .order_by(Household.name.asc())
    )
    return list(db.execute(stmt).scalars().all())


def _open_membership(
    db: Session,
    group: Group,
    household_id: int,
    invited_by_user_id: int | None,
    now: datetime,
) -> GroupMembership | Rejected:
    if group.is_archived:
        return conflict("Group is archived")

    if is_current_member(db, group.id, household_id, now):
        return conflict("Household is already a member of this group")

    membership = GroupMembership(
        group_id=group.id,
        household_id=household_id,
        invited_by_user_id=invited_by_user_id,
        joined_at=now,
        left_at=None,
    )
    db.add(membership)
    # the partial unique index turns a concurrent duplicate into IntegrityError here
    db.flush()
    return membership


def join(db: Session, invitation: GroupInvitation, now: datetime | None = None) -> GroupMembership | Rejected:
    """
    Open a tenure for the invited household.

    Only the invitation workflow calls this, inside its own transaction;
    nothing is committed here.
    """
    now = now or utc_now_naive()

    group = db.get(Group, invitation.group_id)
    if group is None:
        return not_found("Group not found")

    inviter = get_user_by_email(db, invitation.inviter_email)
    return _open_membership(
        db,
        group,
        invitation.invited_household_id,
        inviter.id if inviter else None,
        now,
    )


def join_as_creator(db: Session, group: Group, email: str, now: datetime | None = None) -> GroupMembership | Rejected:
    """Enroll the creator's own household as the first member of a group it created."""
    now = now or utc_now_naive()

    user = get_user_by_email(db, email)
    if user is None or user.household_id is None:
        return not_found("Requesting user has no household")

    if group.created_by_user_id != user.id:
        return forbidden("Only the group creator can enroll its household directly")

    try:
        result = _open_membership(db, group, user.household_id, user.id, now)
        if isinstance(result, Rejected):
            db.rollback()
            return result
        db.commit()
    except IntegrityError:
        db.rollback()
        return conflict("Household is already a member of this group")

    db.refresh(result)
    logger.info("Household %s enrolled as creator of group %s", user.household_id, group.id)
    return result


def leave(db: Session, group_id: int, email: str, now: datetime | None = None) -> bool:
    """
    End the requester's household membership in a group.

    Ending the tenure, deleting the household's contributions to the group and
    archiving an emptied group commit together or not at all. Returns False
    when the requester is not a household admin or holds no current
    membership; the two cases are not told apart.
    """
    now = now or utc_now_naive()

    if not is_household_admin(db, email):
        logger.info("Leave refused for %s on group %s: not a household admin", email, group_id)
        return False

    household_id = resolve_household_id_by_email(db, email)
    if household_id is None:
        return False

    membership = current_membership(db, household_id, group_id, now)
    if membership is None:
        return False

    try:
        ended = db.execute(
            update(GroupMembership)
            .where(
                GroupMembership.id == membership.id,
                GroupMembership.current_at(now),
            )
            .values(left_at=now)
        ).rowcount
        if ended != 1:
            # a concurrent leave got there first
            db.rollback()
            return False

        removed = contribution_ledger.delete_all_for_household_in_group(db, group_id, household_id)
        archived = group_registry.archive_if_empty(db, group_id, now)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Household %s left group %s (%d contributions removed%s)",
        household_id,
        group_id,
        removed,
        ", group archived" if archived else "",
    )
    return True
