from __future__ import annotations

from typing import Iterable

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from snackhub.app.db.models.models_v1 import (
    Order,
    OrderItem,
    OrderRequest,
    OrderRequestItem,
)
from snackhub.services.errors import NotFoundError


def _recompute(session: Session, envelope_model, item_model, fk_column, envelope_id: str) -> int:
    """
    Rebuild total_amount from the current items.

    Business rule:
        total_amount = SUM(price * quantity) over the envelope's items

    Properties:
    - full recompute, never a delta on the previous total
    - integer arithmetic (minor currency units), no rounding
    - idempotent
    - runs in the caller's transaction, envelope row locked (FOR UPDATE)
    """
    envelope = (
        session.execute(
            select(envelope_model)
            .where(envelope_model.id == envelope_id)
            .with_for_update()
        )
        .scalar_one_or_none()
    )
    if not envelope:
        raise NotFoundError(envelope_model.__name__, envelope_id)

    # pending inserts/deletes on the items must be visible to the SUM
    session.flush()

    total = session.scalar(
        select(func.coalesce(func.sum(item_model.price * item_model.quantity), 0))
        .where(fk_column == envelope_id)
    )
    envelope.total_amount = int(total)
    session.flush()
    return envelope.total_amount


def recompute_order_request_total(session: Session, order_request_id: str) -> int:
    return _recompute(session, OrderRequest, OrderRequestItem, OrderRequestItem.order_request_id, order_request_id)


def recompute_order_total(session: Session, order_id: str) -> int:
    return _recompute(session, Order, OrderItem, OrderItem.order_id, order_id)


def recompute_totals(
    session: Session,
    *,
    order_request_ids: Iterable[str] = (),
    order_ids: Iterable[str] = (),
) -> dict[str, int]:
    """Recompute several envelopes (sorted, deduplicated). Returns {id: total}."""
    totals: dict[str, int] = {}
    for rid in sorted(set(order_request_ids)):
        totals[rid] = recompute_order_request_total(session, rid)
    for oid in sorted(set(order_ids)):
        totals[oid] = recompute_order_total(session, oid)
    return totals
