from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.inventory import ProductBatch, ProductType


@dataclass(frozen=True)
class BatchInfo:
    id: int
    product_type_id: int
    household_id: int | None
    unit_count: int


def get_batch_by_id(db: Session, batch_id: int) -> BatchInfo | None:
    row = db.execute(
        select(ProductBatch.id, ProductBatch.product_type_id, ProductType.household_id, ProductBatch.number)
        .join(ProductType, ProductType.id == ProductBatch.product_type_id)
        .where(ProductBatch.id == batch_id)
    ).first()
    if row is None:
        return None
    return BatchInfo(id=row[0], product_type_id=row[1], household_id=row[2], unit_count=row[3])
