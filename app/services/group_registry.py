import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.timeutils import utc_now_naive
from app.models.group import Group, GroupStatus
from app.models.membership import GroupMembership
from app.services.household_directory import (
    get_user_by_email,
    is_household_admin,
    resolve_household_id_by_email,
)
from app.services.results import Rejected, forbidden

logger = logging.getLogger(__name__)


def get_group(db: Session, group_id: int) -> Group | None:
    return db.get(Group, group_id)


def create_group(db: Session, name: str, email: str, now: datetime | None = None) -> Group | Rejected:
    """
    Create an active group on behalf of a household admin.

    The creator's household is not enrolled here; callers that want it
    follow up with ``membership_ledger.join_as_creator``.
    """
    now = now or utc_now_naive()

    user = get_user_by_email(db, email)
    if user is None or not is_household_admin(db, email):
        logger.info("Group creation refused for %s: not a household admin", email)
        return forbidden("Only household admins can create groups")

    group = Group(
        name=name.strip(),
        status=GroupStatus.ACTIVE,
        created_by_user_id=user.id,
        created_at=now,
    )
    db.add(group)
    db.commit()
    db.refresh(group)

    logger.info("Group %s (%r) created by %s", group.id, group.name, email)
    return group


def count_current_memberships(db: Session, group_id: int, now: datetime) -> int:
    return db.execute(
        select(func.count(GroupMembership.id)).where(
            GroupMembership.group_id == group_id,
            GroupMembership.current_at(now),
        )
    ).scalar_one()


def archive_if_empty(db: Session, group_id: int, now: datetime | None = None) -> bool:
    """
    Archive the group if nobody is left in it.

    Runs inside the caller's unit of work: flushes but never commits.
    Returns True only when this call performed the transition.
    """
    now = now or utc_now_naive()

    group = db.get(Group, group_id)
    if group is None or group.is_archived:
        return False

    if count_current_memberships(db, group_id, now) > 0:
        return False

    group.status = GroupStatus.ARCHIVED
    db.flush()
    logger.info("Group %s archived: no current memberships left", group_id)
    return True


def list_current_groups(
    db: Session,
    email: str,
    page: int = 0,
    size: int = 20,
    now: datetime | None = None,
) -> list[Group]:
    """Active groups the user's household currently belongs to, newest first."""
    now = now or utc_now_naive()

    household_id = resolve_household_id_by_email(db, email)
    if household_id is None:
        return []

    stmt = (
        select(Group)
        .join(GroupMembership, GroupMembership.group_id == Group.id)
        .where(
            GroupMembership.household_id == household_id,
            GroupMembership.current_at(now),
            Group.status == GroupStatus.ACTIVE,
        )
        .order_by(Group.created_at.desc(), Group.id.desc())
        .offset(page * size)
        .limit(size)
    )
    return list(db.execute(stmt).scalars().all())
