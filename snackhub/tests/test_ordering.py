import pytest
from sqlalchemy import select

from snackhub.app.db.models.core_types import OrderRequestStatus, OrderStatus
from snackhub.app.db.models.models_v1 import Order, OrderItem, OrderRequest, Product
from snackhub.services import ordering
from snackhub.services.errors import DuplicateLineItemError, InvalidTransitionError, NotFoundError
from snackhub.services.loader import load_bundle

from conftest import SEED_COMPANY_ID

PENDING_REQ = "nz2p1larko8dcbyr7ej08v98"
APPROVED_REQ = "xp569x8t45rbax2m2pqhqsnl"
ADMIN = "usr00000000000000000admin"


@pytest.fixture
def loaded(db_session, bundle):
    load_bundle(db_session, bundle, seed_company_id=SEED_COMPANY_ID)
    return db_session


def test_add_item_snapshots_price_and_recomputes(loaded):
    item = ordering.add_order_request_item(loaded, PENDING_REQ, "prd0000000000000000000003", 1)

    assert item.price == 700
    assert len(item.id) == 26
    assert loaded.get(OrderRequest, PENDING_REQ).total_amount == 3500 + 700


def test_add_same_product_twice_is_refused(loaded):
    with pytest.raises(DuplicateLineItemError):
        ordering.add_order_request_item(loaded, PENDING_REQ, "prd0000000000000000000001", 5)


@pytest.mark.parametrize("qty", [0, -3])
def test_add_requires_positive_quantity(loaded, qty):
    with pytest.raises(ValueError):
        ordering.add_order_request_item(loaded, PENDING_REQ, "prd0000000000000000000003", qty)


def test_resolved_request_items_are_frozen(loaded):
    with pytest.raises(InvalidTransitionError):
        ordering.add_order_request_item(loaded, APPROVED_REQ, "prd0000000000000000000001", 1)


def test_add_unknown_product(loaded):
    with pytest.raises(NotFoundError):
        ordering.add_order_request_item(loaded, PENDING_REQ, "prd-nope", 1)


def test_remove_item_recomputes(loaded):
    total = ordering.remove_order_request_item(loaded, PENDING_REQ, "fugejwfmuo43d7po46psreto")

    assert total == 2000
    assert loaded.get(OrderRequest, PENDING_REQ).total_amount == 2000


def test_remove_item_of_another_request(loaded):
    with pytest.raises(NotFoundError):
        ordering.remove_order_request_item(loaded, PENDING_REQ, "vsqr28wsy0oxz1fzstc9s8l1")


def test_approve_creates_order_with_snapshot_prices(loaded):
    # catalog price moves after the item was added
    loaded.get(Product, "prd0000000000000000000001").price = 9999
    loaded.flush()

    order = ordering.approve_order_request(loaded, PENDING_REQ, ADMIN, notes="ok")

    req = loaded.get(OrderRequest, PENDING_REQ)
    assert req.status == OrderRequestStatus.approved
    assert req.resolver_id == ADMIN
    assert req.resolved_at is not None
    assert req.total_amount == 3500

    assert order.status == OrderStatus.pending
    assert order.company_id == SEED_COMPANY_ID
    assert order.order_request_id == PENDING_REQ
    assert order.total_amount == 3500

    prices = dict(
        loaded.execute(select(OrderItem.product_id, OrderItem.price).where(OrderItem.order_id == order.id)).all()
    )
    assert prices == {"prd0000000000000000000001": 1000, "prd0000000000000000000002": 500}


def test_request_resolves_once(loaded):
    ordering.approve_order_request(loaded, PENDING_REQ, ADMIN)

    with pytest.raises(InvalidTransitionError):
        ordering.approve_order_request(loaded, PENDING_REQ, ADMIN)
    with pytest.raises(InvalidTransitionError):
        ordering.reject_order_request(loaded, PENDING_REQ, ADMIN, "too late")


def test_reject_keeps_items_and_records_reason(loaded):
    req = ordering.reject_order_request(loaded, PENDING_REQ, ADMIN, "budget")

    assert req.status == OrderRequestStatus.rejected
    assert req.notes == "budget"
    assert len(req.items) == 2
    assert loaded.execute(select(Order).where(Order.order_request_id == PENDING_REQ)).first() is None


def test_reject_needs_known_resolver(loaded):
    with pytest.raises(NotFoundError):
        ordering.reject_order_request(loaded, PENDING_REQ, "usr-ghost", "no")


def test_order_lifecycle(loaded):
    order_id = "ord0000000000000000000001"

    assert ordering.transition_order(loaded, order_id, OrderStatus.completed).status == OrderStatus.completed

    with pytest.raises(InvalidTransitionError):
        ordering.transition_order(loaded, order_id, OrderStatus.refunded)


def test_pending_order_cannot_skip_to_completed(loaded):
    order = ordering.approve_order_request(loaded, PENDING_REQ, ADMIN)

    with pytest.raises(InvalidTransitionError):
        ordering.transition_order(loaded, order.id, OrderStatus.completed)

    assert ordering.transition_order(loaded, order.id, OrderStatus.cancelled).status == OrderStatus.cancelled
