from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class ProductType(Base):
    __tablename__ = "product_types"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    household_id: Mapped[int | None] = mapped_column(ForeignKey("households.id"), nullable=True, index=True)

    name: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    unit: Mapped[str] = mapped_column(String(30), nullable=False)                     # stk/l/kg...
    calories_per_unit: Mapped[float | None] = mapped_column(Float, nullable=True)
    category: Mapped[str] = mapped_column(String(30), nullable=False)                 # food/water/medicine


class ProductBatch(Base):
    __tablename__ = "product_batches"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    product_type_id: Mapped[int] = mapped_column(ForeignKey("product_types.id"), nullable=False, index=True)

    date_added: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    expiration_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # unit count
    number: Mapped[int] = mapped_column(Integer, nullable=False)
