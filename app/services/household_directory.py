"""
Identity lookups: user email -> household, and household-admin rights.
"""
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.household import Household, HouseholdAdmin
from app.models.user import User


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


def resolve_household_id_by_email(db: Session, email: str) -> int | None:
    return db.execute(select(User.household_id).where(User.email == email)).scalar_one_or_none()


def is_household_admin(db: Session, email: str) -> bool:
    # admin rights only count for the household the user currently belongs to
    row = db.execute(
        select(HouseholdAdmin.user_id)
        .join(User, User.id == HouseholdAdmin.user_id)
        .where(
            User.email == email,
            HouseholdAdmin.household_id == User.household_id,
        )
    ).first()
    return row is not None


def get_household_by_name(db: Session, name: str) -> Household | None:
    return db.execute(select(Household).where(Household.name == name.strip())).scalar_one_or_none()
