from datetime import date, datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, StringConstraints


class AddBatchToGroupRequest(BaseModel):
    batch_id: int
    group_id: int


class CustomContributionCreate(BaseModel):
    custom_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]
    expiration_date: Optional[date] = None


class ContributionPublic(BaseModel):
    id: int
    group_id: int
    household_id: int
    product_batch_id: Optional[int] = None
    custom_name: Optional[str] = None
    expiration_date: Optional[date] = None
    contributed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductTypePublic(BaseModel):
    id: int
    household_id: Optional[int] = None
    name: str
    unit: str
    calories_per_unit: Optional[float] = None
    category: str

    model_config = ConfigDict(from_attributes=True)


class ProductBatchPublic(BaseModel):
    id: int
    product_type_id: int
    product_type_name: str
    date_added: datetime
    expiration_time: Optional[datetime] = None
    number: int


class TotalUnitsResponse(BaseModel):
    group_id: int
    product_type_id: int
    total_units: int
