import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import PageParams, get_db
from app.core.auth import get_current_user
from app.core.timeutils import utc_now_naive
from app.models.user import User
from app.realtime.sse import notify
from app.schemas.inventory import (
    AddBatchToGroupRequest,
    ContributionPublic,
    CustomContributionCreate,
    ProductBatchPublic,
    ProductTypePublic,
    TotalUnitsResponse,
)
from app.services import contribution_ledger, membership_ledger
from app.services.results import ForbiddenError, raise_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups", tags=["group-inventory"])


def _forbidden(exc: ForbiddenError) -> HTTPException:
    return HTTPException(status_code=403, detail={"reason": "forbidden", "message": str(exc)})


@router.post("/inventory", response_model=ContributionPublic)
def add_batch_to_group(
    payload: AddBatchToGroupRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    contribution = raise_for(
        contribution_ledger.contribute(db, payload.batch_id, payload.group_id, current_user.email)
    )
    notify(
        "GROUP_INVENTORY_CHANGED",
        {"group_id": contribution.group_id, "product_batch_id": contribution.product_batch_id},
        household_ids=[h.id for h in membership_ledger.list_current_households(db, contribution.group_id)],
    )
    return ContributionPublic.model_validate(contribution)


@router.post("/{group_id}/inventory/custom", response_model=ContributionPublic)
def add_custom_contribution(
    group_id: int,
    payload: CustomContributionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    contribution = raise_for(
        contribution_ledger.contribute_custom(
            db, group_id, payload.custom_name, payload.expiration_date, current_user.email
        )
    )
    return ContributionPublic.model_validate(contribution)


@router.delete("/inventory/contributions/{contribution_id}")
def retract_contribution(
    contribution_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        removed = contribution_ledger.retract(db, contribution_id, current_user.email)
    except ForbiddenError as exc:
        raise _forbidden(exc)
    if not removed:
        raise HTTPException(status_code=404, detail="Contribution not found")
    return {"ok": True, "contribution_id": contribution_id}


@router.delete("/inventory/batches/{batch_id}")
def retract_batch(
    batch_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        removed = contribution_ledger.retract_batch(db, batch_id, current_user.email)
    except ForbiddenError as exc:
        raise _forbidden(exc)
    if not removed:
        raise HTTPException(status_code=404, detail="Batch is not contributed to any group")
    return {"ok": True, "product_batch_id": batch_id}


@router.get("/inventory/batches/{batch_id}/contributed", response_model=bool)
def is_batch_contributed(
    batch_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return raise_for(contribution_ledger.is_batch_contributed(db, batch_id, current_user.email))


@router.get("/{group_id}/inventory/product-types", response_model=list[ProductTypePublic])
def list_contributed_product_types(
    group_id: int,
    search: str | None = Query(None, max_length=120),
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    product_types = raise_for(
        contribution_ledger.list_contributed_product_types(
            db, group_id, current_user.email, paging.page, paging.size, search
        )
    )
    return [ProductTypePublic.model_validate(pt) for pt in product_types]


@router.get(
    "/{group_id}/inventory/product-types/{product_type_id}/batches",
    response_model=list[ProductBatchPublic],
)
def list_contributed_batches(
    group_id: int,
    product_type_id: int,
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows = raise_for(
        contribution_ledger.list_contributed_batches(
            db, group_id, product_type_id, current_user.email, paging.page, paging.size
        )
    )
    return [
        ProductBatchPublic(
            id=batch.id,
            product_type_id=pt.id,
            product_type_name=pt.name,
            date_added=batch.date_added,
            expiration_time=batch.expiration_time,
            number=batch.number,
        )
        for (batch, pt) in rows
    ]


@router.get(
    "/{group_id}/inventory/product-types/{product_type_id}/total",
    response_model=TotalUnitsResponse,
)
def total_units(
    group_id: int,
    product_type_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if current_user.household_id is None or not membership_ledger.is_current_member(
        db, group_id, current_user.household_id, utc_now_naive()
    ):
        raise HTTPException(status_code=403, detail="Your household is not a member of this group")

    total = contribution_ledger.total_units_for_product_type(db, product_type_id, group_id)
    return TotalUnitsResponse(group_id=group_id, product_type_id=product_type_id, total_units=total)
