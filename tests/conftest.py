from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.main import app
from app.models.contribution import GroupInventoryContribution
from app.models.group import Group, GroupStatus
from app.models.household import Household, HouseholdAdmin
from app.models.invitation import GroupInvitation
from app.models.inventory import ProductBatch, ProductType
from app.models.membership import GroupMembership
from app.models.user import User

# fixed clock for service-level tests
NOW = datetime(2026, 3, 1, 12, 0, 0)


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so each session gets its own connection."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


class Seeder:
    """Inserts fixture rows and commits each one."""

    def __init__(self, db):
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def household(self, name, address="Storgata 1, Trondheim", population_count=2):
        return self._save(Household(name=name, address=address, population_count=population_count))

    def user(self, email, household=None, admin=False, name=None):
        user = self._save(
            User(
                email=email,
                hashed_password="not-a-real-hash",
                name=name,
                household_id=household.id if household else None,
            )
        )
        if admin and household is not None:
            self._save(HouseholdAdmin(user_id=user.id, household_id=household.id))
        return user

    def product_type(self, household, name="Water", unit="l", category="water"):
        return self._save(
            ProductType(household_id=household.id, name=name, unit=unit, category=category)
        )

    def batch(self, product_type, number=10, expiration_time=None):
        return self._save(
            ProductBatch(
                product_type_id=product_type.id,
                number=number,
                date_added=NOW - timedelta(days=30),
                expiration_time=expiration_time,
            )
        )

    def group(self, name, creator, status=GroupStatus.ACTIVE, created_at=NOW - timedelta(days=10)):
        return self._save(
            Group(name=name, status=status, created_by_user_id=creator.id, created_at=created_at)
        )

    def membership(self, group, household, joined_at=NOW - timedelta(days=5), left_at=None):
        return self._save(
            GroupMembership(
                group_id=group.id,
                household_id=household.id,
                joined_at=joined_at,
                left_at=left_at,
            )
        )

    def contribution(self, group, household, batch, contributed_at=NOW - timedelta(days=1)):
        return self._save(
            GroupInventoryContribution(
                group_id=group.id,
                household_id=household.id,
                product_batch_id=batch.id,
                contributed_at=contributed_at,
            )
        )

    def invitation(self, group, household, inviter_email, expires_at=NOW + timedelta(days=7), created_at=NOW):
        return self._save(
            GroupInvitation(
                group_id=group.id,
                invited_household_id=household.id,
                inviter_email=inviter_email,
                created_at=created_at,
                expires_at=expires_at,
            )
        )


@pytest.fixture
def seed(db):
    return Seeder(db)


@pytest.fixture
def world(seed):
    """
    Two households in one active group, a third household outside it.

    Every household has an admin user and one water batch of its own.
    """
    north = seed.household("Nordmann")
    south = seed.household("Sørli")
    east = seed.household("Østby")

    w = {
        "north": north,
        "south": south,
        "east": east,
        "north_admin": seed.user("kari@nordmann.no", north, admin=True),
        "north_member": seed.user("ola@nordmann.no", north),
        "south_admin": seed.user("per@sorli.no", south, admin=True),
        "east_admin": seed.user("anne@ostby.no", east, admin=True),
    }
    w["group"] = seed.group("Bakklandet beredskap", w["north_admin"])
    seed.membership(w["group"], north)
    seed.membership(w["group"], south)

    for key in ("north", "south", "east"):
        pt = seed.product_type(w[key], name=f"Water {key}")
        w[f"{key}_type"] = pt
        w[f"{key}_batch"] = seed.batch(pt, number=12)
    return w


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


def open_memberships(db, group_id, household_id):
    return db.execute(
        select(func.count(GroupMembership.id)).where(
            GroupMembership.group_id == group_id,
            GroupMembership.household_id == household_id,
            GroupMembership.left_at.is_(None),
        )
    ).scalar_one()
