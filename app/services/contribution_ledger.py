"""
Household inventory lent to groups.

A product batch can sit in at most one group at a time. The pre-checks give
precise rejections; the unique constraint on ``product_batch_id`` settles
concurrent contributions of the same batch.
"""
import logging
from datetime import date, datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.timeutils import utc_now_naive
from app.models.contribution import GroupInventoryContribution
from app.models.group import Group
from app.models.inventory import ProductBatch, ProductType
from app.services import inventory_store, membership_ledger
from app.services.household_directory import resolve_household_id_by_email
from app.services.results import ForbiddenError, Rejected, conflict, forbidden, not_found

logger = logging.getLogger(__name__)

ALREADY_CONTRIBUTED = "Batch is already contributed to a group"


def get_contribution_for_batch(db: Session, batch_id: int) -> GroupInventoryContribution | None:
    return db.execute(
        select(GroupInventoryContribution).where(GroupInventoryContribution.product_batch_id == batch_id)
    ).scalar_one_or_none()


def is_contributed(db: Session, batch_id: int) -> bool:
    return get_contribution_for_batch(db, batch_id) is not None


def _require_member(db: Session, group_id: int, email: str, now: datetime) -> int | Rejected:
    household_id = resolve_household_id_by_email(db, email)
    if household_id is None or not membership_ledger.is_current_member(db, group_id, household_id, now):
        return forbidden("Household is not a current member of this group")
    return household_id


def _insert(db: Session, contribution: GroupInventoryContribution) -> GroupInventoryContribution | Rejected:
    batch_id = contribution.product_batch_id
    db.add(contribution)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Lost race contributing batch %s", batch_id)
        return conflict(ALREADY_CONTRIBUTED)
    db.refresh(contribution)
    return contribution


def contribute(
    db: Session,
    batch_id: int,
    group_id: int,
    email: str,
    now: datetime | None = None,
) -> GroupInventoryContribution | Rejected:
    now = now or utc_now_naive()

    batch = inventory_store.get_batch_by_id(db, batch_id)
    if batch is None:
        return not_found("Product batch not found")

    if db.get(Group, group_id) is None:
        return not_found("Group not found")

    if is_contributed(db, batch_id):
        return conflict(ALREADY_CONTRIBUTED)

    household_id = _require_member(db, group_id, email, now)
    if isinstance(household_id, Rejected):
        return household_id

    if batch.household_id != household_id:
        return forbidden("Batch does not belong to the requesting household")

    result = _insert(
        db,
        GroupInventoryContribution(
            group_id=group_id,
            household_id=household_id,
            product_batch_id=batch_id,
            contributed_at=now,
        ),
    )
    if not isinstance(result, Rejected):
        logger.info("Batch %s contributed to group %s by household %s", batch_id, group_id, household_id)
    return result


def contribute_custom(
    db: Session,
    group_id: int,
    custom_name: str,
    expiration_date: date | None,
    email: str,
    now: datetime | None = None,
) -> GroupInventoryContribution | Rejected:
    """Record a manual entry that is not backed by an inventory batch."""
    now = now or utc_now_naive()

    if db.get(Group, group_id) is None:
        return not_found("Group not found")

    household_id = _require_member(db, group_id, email, now)
    if isinstance(household_id, Rejected):
        return household_id

    return _insert(
        db,
        GroupInventoryContribution(
            group_id=group_id,
            household_id=household_id,
            custom_name=custom_name.strip(),
            expiration_date=expiration_date,
            contributed_at=now,
        ),
    )


def _remove(db: Session, contribution: GroupInventoryContribution | None, email: str) -> bool:
    if contribution is None:
        return False

    household_id = resolve_household_id_by_email(db, email)
    if contribution.household_id != household_id:
        raise ForbiddenError("Not authorized to remove this contribution")

    db.delete(contribution)
    db.commit()
    logger.info(
        "Contribution %s (batch %s) retracted from group %s",
        contribution.id,
        contribution.product_batch_id,
        contribution.group_id,
    )
    return True


def retract(db: Session, contribution_id: int, email: str) -> bool:
    """
    Delete a contribution owned by the requester's household.

    Returns False when it does not exist; raises ForbiddenError when it
    belongs to another household.
    """
    return _remove(db, db.get(GroupInventoryContribution, contribution_id), email)


def retract_batch(db: Session, batch_id: int, email: str) -> bool:
    """Same as ``retract`` but addressed by the contributed batch."""
    return _remove(db, get_contribution_for_batch(db, batch_id), email)


def delete_all_for_household_in_group(db: Session, group_id: int, household_id: int) -> int:
    # cascade step of leaving a group: caller owns the transaction
    return db.execute(
        delete(GroupInventoryContribution).where(
            GroupInventoryContribution.group_id == group_id,
            GroupInventoryContribution.household_id == household_id,
        )
    ).rowcount


def total_units_for_product_type(db: Session, product_type_id: int, group_id: int) -> int:
    if db.get(ProductType, product_type_id) is None or db.get(Group, group_id) is None:
        return 0

    total = db.execute(
        select(func.coalesce(func.sum(ProductBatch.number), 0))
        .select_from(GroupInventoryContribution)
        .join(ProductBatch, ProductBatch.id == GroupInventoryContribution.product_batch_id)
        .where(
            GroupInventoryContribution.group_id == group_id,
            ProductBatch.product_type_id == product_type_id,
        )
    ).scalar_one()
    return int(total)


def list_contributed_product_types(
    db: Session,
    group_id: int,
    email: str,
    page: int = 0,
    size: int = 20,
    search: str | None = None,
    now: datetime | None = None,
) -> list[ProductType] | Rejected:
    now = now or utc_now_naive()

    if db.get(Group, group_id) is None:
        return not_found("Group not found")

    household_id = _require_member(db, group_id, email, now)
    if isinstance(household_id, Rejected):
        return household_id

    stmt = (
        select(ProductType)
        .join(ProductBatch, ProductBatch.product_type_id == ProductType.id)
        .join(GroupInventoryContribution, GroupInventoryContribution.product_batch_id == ProductBatch.id)
        .where(GroupInventoryContribution.group_id == group_id)
        .distinct()
        .order_by(ProductType.name.asc(), ProductType.id.asc())
    )
    if search:
        stmt = stmt.where(ProductType.name.ilike(f"%{search.strip()}%"))

    return list(db.execute(stmt.offset(page * size).limit(size)).scalars().all())


def list_contributed_batches(
    db: Session,
    group_id: int,
    product_type_id: int,
    email: str,
    page: int = 0,
    size: int = 20,
    now: datetime | None = None,
) -> list[tuple[ProductBatch, ProductType]] | Rejected:
    now = now or utc_now_naive()

    if db.get(Group, group_id) is None:
        return not_found("Group not found")

    household_id = _require_member(db, group_id, email, now)
    if isinstance(household_id, Rejected):
        return household_id

    stmt = (
        select(ProductBatch, ProductType)
        .join(ProductType, ProductType.id == ProductBatch.product_type_id)
        .join(GroupInventoryContribution, GroupInventoryContribution.product_batch_id == ProductBatch.id)
        .where(
            GroupInventoryContribution.group_id == group_id,
            ProductBatch.product_type_id == product_type_id,
        )
        .order_by(ProductBatch.expiration_time.asc(), ProductBatch.id.asc())
        .offset(page * size)
        .limit(size)
    )
    return [(batch, product_type) for batch, product_type in db.execute(stmt).all()]


def is_batch_contributed(db: Session, batch_id: int, email: str) -> bool | Rejected:
    """Whether one of the requester's own batches is currently lent to a group."""
    batch = inventory_store.get_batch_by_id(db, batch_id)
    if batch is None:
        return False

    household_id = resolve_household_id_by_email(db, email)
    if household_id is None:
        return False

    if batch.household_id != household_id:
        return forbidden("Batch does not belong to the requesting household")

    return is_contributed(db, batch_id)
