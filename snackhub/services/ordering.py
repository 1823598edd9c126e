"""
Ordering service (live path).

Order request lifecycle:
    PENDING -> APPROVED | REJECTED      (terminal once resolved)
An approved request produces an Order:
    PENDING -> PROCESSING -> COMPLETED
    any non-terminal state -> CANCELLED | REFUNDED

Every item mutation is followed by a full total recompute, in the same
transaction. Functions flush but never commit: the caller owns the
transaction.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from snackhub.app.db.models.core_types import OrderRequestStatus, OrderStatus
from snackhub.app.db.models.models_v1 import (
    Order,
    OrderItem,
    OrderRequest,
    OrderRequestItem,
    Product,
    User,
)
from snackhub.services.errors import DuplicateLineItemError, InvalidTransitionError, NotFoundError
from snackhub.services.totals import recompute_order_request_total, recompute_order_total

ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.pending: {OrderStatus.processing, OrderStatus.cancelled, OrderStatus.refunded},
    OrderStatus.processing: {OrderStatus.completed, OrderStatus.cancelled, OrderStatus.refunded},
    OrderStatus.completed: set(),
    OrderStatus.cancelled: set(),
    OrderStatus.refunded: set(),
}


def _get(session: Session, model, identifier: str):
    obj = session.get(model, identifier)
    if not obj:
        raise NotFoundError(model.__name__, identifier)
    return obj


def _require_pending(req: OrderRequest, target: OrderRequestStatus | str) -> None:
    if req.status != OrderRequestStatus.pending:
        target = target.value if isinstance(target, OrderRequestStatus) else target
        raise InvalidTransitionError("OrderRequest", req.status.value, target)


# ---------- ITEMS ----------
def add_order_request_item(
    session: Session,
    order_request_id: str,
    product_id: str,
    quantity: int,
) -> OrderRequestItem:
    if quantity <= 0:
        raise ValueError("quantity must be > 0")

    req = _get(session, OrderRequest, order_request_id)
    _require_pending(req, "ITEM_CHANGE")
    product = _get(session, Product, product_id)

    exists = session.execute(
        select(OrderRequestItem.id)
        .where(OrderRequestItem.order_request_id == order_request_id)
        .where(OrderRequestItem.product_id == product_id)
    ).scalar_one_or_none()
    if exists:
        raise DuplicateLineItemError("order_request_item", order_request_id, product_id)

    item = OrderRequestItem(
        order_request_id=order_request_id,
        product_id=product_id,
        price=product.price,
        quantity=quantity,
    )
    session.add(item)
    session.flush()

    recompute_order_request_total(session, order_request_id)
    return item


def remove_order_request_item(session: Session, order_request_id: str, item_id: str) -> int:
    req = _get(session, OrderRequest, order_request_id)
    _require_pending(req, "ITEM_CHANGE")

    item = session.get(OrderRequestItem, item_id)
    if not item or item.order_request_id != order_request_id:
        raise NotFoundError("OrderRequestItem", item_id)

    session.delete(item)
    session.flush()
    return recompute_order_request_total(session, order_request_id)


# ---------- RESOLUTION ----------
def _resolve(req: OrderRequest, status: OrderRequestStatus, resolver_id: str, notes: str | None) -> None:
    req.status = status
    req.resolver_id = resolver_id
    req.resolved_at = datetime.now(timezone.utc)
    req.notes = notes


def approve_order_request(
    session: Session,
    order_request_id: str,
    resolver_id: str,
    notes: str | None = None,
) -> Order:
    req = _get(session, OrderRequest, order_request_id)
    _require_pending(req, OrderRequestStatus.approved)
    _get(session, User, resolver_id)

    _resolve(req, OrderRequestStatus.approved, resolver_id, notes)

    order = Order(
        company_id=req.company_id,
        user_id=req.requester_id,
        order_request_id=req.id,
        status=OrderStatus.pending,
        total_amount=0,
    )
    session.add(order)
    session.flush()

    # the order keeps the prices snapshotted on the request
    items = session.execute(
        select(OrderRequestItem).where(OrderRequestItem.order_request_id == req.id)
    ).scalars().all()
    for it in items:
        session.add(
            OrderItem(
                order_id=order.id,
                product_id=it.product_id,
                price=it.price,
                quantity=it.quantity,
            )
        )
    session.flush()

    recompute_order_request_total(session, req.id)
    recompute_order_total(session, order.id)
    return order


def reject_order_request(
    session: Session,
    order_request_id: str,
    resolver_id: str,
    notes: str,
) -> OrderRequest:
    req = _get(session, OrderRequest, order_request_id)
    _require_pending(req, OrderRequestStatus.rejected)
    _get(session, User, resolver_id)

    _resolve(req, OrderRequestStatus.rejected, resolver_id, notes)
    session.flush()
    return req


# ---------- ORDERS ----------
def transition_order(session: Session, order_id: str, target: OrderStatus) -> Order:
    order = _get(session, Order, order_id)
    if target not in ORDER_TRANSITIONS[order.status]:
        raise InvalidTransitionError("Order", order.status.value, target.value)
    order.status = target
    session.flush()
    return order
