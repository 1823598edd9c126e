from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from snackhub.app.api.deps import get_db
from snackhub.app.db.models.core_types import OrderRequestStatus
from snackhub.app.db.models.models_v1 import OrderRequest
from snackhub.app.schemas.order_request import OrderRead, OrderRequestRead
from snackhub.services import ordering
from snackhub.services.errors import DuplicateLineItemError, InvalidTransitionError, NotFoundError

router = APIRouter(prefix="/order-requests")


class ItemCreate(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(gt=0)


class Approve(BaseModel):
    resolver_id: str = Field(min_length=1)
    notes: str | None = None


class Reject(BaseModel):
    resolver_id: str = Field(min_length=1)
    notes: str = Field(min_length=1)


def _to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (InvalidTransitionError, DuplicateLineItemError)):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _read(db: Session, request_id: str) -> OrderRequestRead:
    req = db.get(OrderRequest, request_id)
    if not req:
        raise HTTPException(status_code=404, detail="Order request not found")
    db.refresh(req)
    return OrderRequestRead.model_validate(req)


@router.get("")
def list_order_requests(
    company_id: str | None = None,
    status: OrderRequestStatus | None = None,
    db: Session = Depends(get_db),
):
    stmt = select(OrderRequest).order_by(OrderRequest.id.desc())
    if company_id:
        stmt = stmt.where(OrderRequest.company_id == company_id)
    if status:
        stmt = stmt.where(OrderRequest.status == status)
    rows = db.execute(stmt).scalars().all()
    return [
        {
            "id": r.id,
            "company_id": r.company_id,
            "requester_id": r.requester_id,
            "status": r.status,
            "total_amount": r.total_amount,
            "created_at": r.created_at,
        }
        for r in rows
    ]


@router.get("/{request_id}", response_model=OrderRequestRead)
def get_order_request(request_id: str, db: Session = Depends(get_db)):
    return _read(db, request_id)


@router.post("/{request_id}/items", response_model=OrderRequestRead)
def add_item(request_id: str, payload: ItemCreate, db: Session = Depends(get_db)):
    try:
        ordering.add_order_request_item(db, request_id, payload.product_id, payload.quantity)
    except (NotFoundError, InvalidTransitionError, DuplicateLineItemError) as exc:
        db.rollback()
        raise _to_http(exc) from exc
    db.commit()
    return _read(db, request_id)


@router.delete("/{request_id}/items/{item_id}", response_model=OrderRequestRead)
def remove_item(request_id: str, item_id: str, db: Session = Depends(get_db)):
    try:
        ordering.remove_order_request_item(db, request_id, item_id)
    except (NotFoundError, InvalidTransitionError) as exc:
        db.rollback()
        raise _to_http(exc) from exc
    db.commit()
    return _read(db, request_id)


@router.post("/{request_id}/approve", response_model=OrderRead)
def approve(request_id: str, payload: Approve, db: Session = Depends(get_db)):
    try:
        order = ordering.approve_order_request(db, request_id, payload.resolver_id, payload.notes)
    except (NotFoundError, InvalidTransitionError) as exc:
        db.rollback()
        raise _to_http(exc) from exc
    db.commit()
    db.refresh(order)
    return OrderRead.model_validate(order)


@router.post("/{request_id}/reject", response_model=OrderRequestRead)
def reject(request_id: str, payload: Reject, db: Session = Depends(get_db)):
    try:
        ordering.reject_order_request(db, request_id, payload.resolver_id, payload.notes)
    except (NotFoundError, InvalidTransitionError) as exc:
        db.rollback()
        raise _to_http(exc) from exc
    db.commit()
    return _read(db, request_id)
