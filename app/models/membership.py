from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, or_, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class GroupMembership(Base):
    """
    One household's tenure in one group.

    Rows are never deleted: leaving sets ``left_at``. A pair may have many
    ended rows but only one open row (``left_at IS NULL``).
    """

    __tablename__ = "group_memberships"
    __table_args__ = (
        Index(
            "uq_group_membership_open",
            "group_id",
            "household_id",
            unique=True,
            sqlite_where=text("left_at IS NULL"),
            postgresql_where=text("left_at IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id"), nullable=False, index=True)
    household_id: Mapped[int] = mapped_column(ForeignKey("households.id"), nullable=False, index=True)
    invited_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    joined_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    left_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

    @classmethod
    def current_at(cls, now: datetime):
        """SQL predicate: membership has not ended as of ``now``."""
        return or_(cls.left_at.is_(None), cls.left_at > now)
