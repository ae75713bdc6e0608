from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class GroupInventoryContribution(Base):
    __tablename__ = "group_inventory_contributions"

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id"), nullable=False, index=True)
    household_id: Mapped[int] = mapped_column(ForeignKey("households.id"), nullable=False, index=True)

    # a batch is lent to at most one group; custom entries leave it NULL
    product_batch_id: Mapped[int | None] = mapped_column(
        ForeignKey("product_batches.id"), unique=True, nullable=True, index=True
    )
    custom_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    contributed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
