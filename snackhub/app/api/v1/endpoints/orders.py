from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from snackhub.app.api.deps import get_db
from snackhub.app.db.models.core_types import OrderStatus
from snackhub.app.db.models.models_v1 import Order
from snackhub.app.schemas.order_request import OrderRead
from snackhub.services import ordering
from snackhub.services.errors import InvalidTransitionError, NotFoundError

router = APIRouter(prefix="/orders")


class StatusUpdate(BaseModel):
    status: OrderStatus


@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: str, db: Session = Depends(get_db)):
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return OrderRead.model_validate(order)


@router.post("/{order_id}/status", response_model=OrderRead)
def update_status(order_id: str, payload: StatusUpdate, db: Session = Depends(get_db)):
    try:
        order = ordering.transition_order(db, order_id, payload.status)
    except NotFoundError as exc:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidTransitionError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    db.commit()
    db.refresh(order)
    return OrderRead.model_validate(order)
