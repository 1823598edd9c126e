"""
Dependency-ordered loader for the dataset bundle.

Batches are loaded in foreign-key order; later batches point at earlier
ones, so the order in LOAD_ORDER is part of correctness:

    companies -> company addresses -> categories -> sub-categories -> users
    -> products -> carts -> order requests -> order request items
    -> orders -> order items -> totals

Every batch is insert-if-absent (ON CONFLICT DO NOTHING, no target): a row
colliding on its id or on any other unique key (email, company name, ...) is
skipped. Rows already in the store are left exactly as they are, so edits
made outside the reconciliation path survive a re-run and a second run
inserts nothing.

Before a batch writes anything, each foreign id it carries is checked
against the bundle being loaded. A gap fails the batch with
`ReferentialGapError` naming the entity, the field and the id, instead of an
opaque foreign-key violation from the database.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from snackhub.app.db.bulk import BATCH_SIZE, inserted_ids
from snackhub.app.db.models.models_v1 import (
    Cart,
    Category,
    Company,
    CompanyAddress,
    Order,
    OrderItem,
    OrderRequest,
    OrderRequestItem,
    Product,
    User,
)
from snackhub.app.schemas.datasets import DatasetBundle
from snackhub.services.address_resolver import ZipcodeIndex, resolve
from snackhub.services.errors import (
    ConstraintViolationError,
    DuplicateLineItemError,
    MissingDatasetError,
    ReferentialGapError,
)
from snackhub.services.totals import recompute_totals

logger = logging.getLogger(__name__)

LOAD_ORDER = (
    "companies",
    "company_addresses",
    "categories",
    "sub_categories",
    "users",
    "products",
    "carts",
    "order_requests",
    "order_request_items",
    "orders",
    "order_items",
)


@dataclass
class LoadReport:
    inserted: dict[str, int] = field(default_factory=lambda: {name: 0 for name in LOAD_ORDER})
    # envelope id -> recomputed total_amount
    totals: dict[str, int] = field(default_factory=dict)
    # inserted addresses stored without a zipcode link
    unresolved_addresses: int = 0

    @property
    def total_inserted(self) -> int:
        return sum(self.inserted.values())


def _require(entity: str, field_name: str, identifier: str | None, known: set[str] | dict) -> None:
    if identifier not in known:
        raise ReferentialGapError(entity, field_name, identifier)


def _check_line_items(
    session: Session,
    entity: str,
    item_model,
    envelope_column,
    pairs: Sequence[tuple[str, str, str]],
) -> None:
    """
    Refuse a second item for the same (envelope, product).

    `pairs` holds (item_id, envelope_id, product_id). Duplicates inside the
    batch, or against a different item already stored, are rejected before
    any write; re-inserting the same item id is fine (it is skipped).
    """
    by_pair: dict[tuple[str, str], str] = {}
    for item_id, envelope_id, product_id in pairs:
        if (envelope_id, product_id) in by_pair:
            raise DuplicateLineItemError(entity, envelope_id, product_id)
        by_pair[(envelope_id, product_id)] = item_id

    envelope_ids = sorted({envelope_id for _, envelope_id, _ in pairs})
    for start in range(0, len(envelope_ids), BATCH_SIZE):
        chunk = envelope_ids[start:start + BATCH_SIZE]
        stored = session.execute(
            select(item_model.id, envelope_column, item_model.product_id).where(envelope_column.in_(chunk))
        )
        for stored_id, envelope_id, product_id in stored:
            incoming_id = by_pair.get((envelope_id, product_id))
            if incoming_id is not None and incoming_id != stored_id:
                raise DuplicateLineItemError(entity, envelope_id, product_id)


class _BundleLoader:
    def __init__(
        self,
        session: Session,
        bundle: DatasetBundle,
        *,
        seed_company_id: str,
        chunk_size: int,
        checkpoint: Callable[[str], None] | None,
    ) -> None:
        self.session = session
        self.bundle = bundle
        self.seed_company_id = seed_company_id
        self.chunk_size = chunk_size
        self.checkpoint = checkpoint
        self.report = LoadReport()

        self.company_ids = {c.id for c in bundle.companies}
        self.root_category_ids = {c.id for c in bundle.categories}
        self.category_ids = self.root_category_ids | {c.id for c in bundle.sub_categories}
        self.users_by_id = {u.id: u for u in bundle.users}
        self.products_by_id = {p.id: p for p in bundle.products}
        self.order_request_ids = {r.id for r in bundle.order_requests}
        self.order_ids = {o.id for o in bundle.orders}

    # ---------- helpers ----------
    def _insert(self, name: str, model, rows: list[dict]) -> list[str]:
        try:
            ids = inserted_ids(self.session, model, rows, chunk_size=self.chunk_size)
        except IntegrityError as exc:
            # unique collisions are skipped; what is left is a row pointing at a skipped parent
            raise ConstraintViolationError(name, str(exc.orig)) from exc
        self.report.inserted[name] = len(ids)
        logger.info("load %s: %d inserted, %d already present", name, len(ids), len(rows) - len(ids))
        if self.checkpoint:
            self.checkpoint(f"load.{name}")
        return ids

    def _price(self, entity: str, product_id: str, price: int | None) -> int:
        _require(entity, "product_id", product_id, self.products_by_id)
        # snapshot: copied once, later catalog price changes never reach the item
        return self.products_by_id[product_id].price if price is None else price

    # ---------- batches ----------
    def companies(self) -> None:
        rows = [{"id": c.id, "name": c.name, "business_number": c.business_number} for c in self.bundle.companies]
        self._insert("companies", Company, rows)

    def company_addresses(self) -> None:
        records = self.bundle.company_addresses
        for a in records:
            _require("company_address", "company_id", a.company_id, self.company_ids)

        index = ZipcodeIndex.from_session(self.session)
        rows = []
        for a in records:
            rows.append(
                {
                    "id": a.id,
                    "company_id": a.company_id,
                    "postal_code": a.postal_code,
                    "address": a.address,
                    "zipcode_id": resolve(a.postal_code, a.address, index),
                }
            )
        inserted = set(self._insert("company_addresses", CompanyAddress, rows))
        self.report.unresolved_addresses = sum(1 for r in rows if r["id"] in inserted and r["zipcode_id"] is None)

    def categories(self) -> None:
        if not self.bundle.categories:
            raise MissingDatasetError("categories.json")
        rows = [
            {"id": c.id, "company_id": self.seed_company_id, "parent_id": None, "name": c.name}
            for c in self.bundle.categories
        ]
        self._insert("categories", Category, rows)

    def sub_categories(self) -> None:
        if not self.bundle.sub_categories:
            raise MissingDatasetError("sub-categories.json")
        for c in self.bundle.sub_categories:
            _require("sub_category", "parent_id", c.parent_id, self.root_category_ids)
        rows = [
            {"id": c.id, "company_id": self.seed_company_id, "parent_id": c.parent_id, "name": c.name}
            for c in self.bundle.sub_categories
        ]
        self._insert("sub_categories", Category, rows)

    def users(self) -> None:
        for u in self.bundle.users:
            _require("user", "company_id", u.company_id, self.company_ids)
        rows = [
            {
                "id": u.id,
                "company_id": u.company_id,
                "email": u.email,
                "name": u.name,
                "password": u.password,
                "role": u.role,
            }
            for u in self.bundle.users
        ]
        self._insert("users", User, rows)

    def products(self) -> None:
        for p in self.bundle.products:
            _require("product", "company_id", p.company_id, self.company_ids)
            _require("product", "category_id", p.category_id, self.category_ids)
        rows = [
            {
                "id": p.id,
                "company_id": p.company_id,
                "category_id": p.category_id,
                "name": p.name,
                "price": p.price,
                "image_url": p.image_url,
            }
            for p in self.bundle.products
        ]
        self._insert("products", Product, rows)

    def carts(self) -> None:
        for c in self.bundle.carts:
            _require("cart", "user_id", c.user_id, self.users_by_id)
        self._insert("carts", Cart, [{"id": c.id, "user_id": c.user_id} for c in self.bundle.carts])

    def order_requests(self) -> None:
        rows = []
        for r in self.bundle.order_requests:
            _require("order_request", "requester_id", r.requester_id, self.users_by_id)
            if r.resolver_id is not None:
                _require("order_request", "resolver_id", r.resolver_id, self.users_by_id)
            rows.append(
                {
                    "id": r.id,
                    # tenant comes from the requester, never from the record
                    "company_id": self.users_by_id[r.requester_id].company_id,
                    "requester_id": r.requester_id,
                    "status": r.status,
                    "total_amount": 0,
                    "resolver_id": r.resolver_id,
                    "notes": r.notes,
                }
            )
        self._insert("order_requests", OrderRequest, rows)

    def order_request_items(self) -> None:
        records = self.bundle.order_request_items
        rows = []
        for i in records:
            _require("order_request_item", "order_request_id", i.order_request_id, self.order_request_ids)
            rows.append(
                {
                    "id": i.id,
                    "order_request_id": i.order_request_id,
                    "product_id": i.product_id,
                    "price": self._price("order_request_item", i.product_id, i.price),
                    "quantity": i.quantity,
                }
            )
        _check_line_items(
            self.session,
            "order_request_item",
            OrderRequestItem,
            OrderRequestItem.order_request_id,
            [(i.id, i.order_request_id, i.product_id) for i in records],
        )
        self._insert("order_request_items", OrderRequestItem, rows)

    def orders(self) -> None:
        rows = []
        for o in self.bundle.orders:
            _require("order", "user_id", o.user_id, self.users_by_id)
            if o.order_request_id is not None:
                _require("order", "order_request_id", o.order_request_id, self.order_request_ids)
            rows.append(
                {
                    "id": o.id,
                    "company_id": self.users_by_id[o.user_id].company_id,
                    "user_id": o.user_id,
                    "order_request_id": o.order_request_id,
                    "status": o.status,
                    "total_amount": 0,
                }
            )
        self._insert("orders", Order, rows)

    def order_items(self) -> None:
        records = self.bundle.order_items
        rows = []
        for i in records:
            _require("order_item", "order_id", i.order_id, self.order_ids)
            rows.append(
                {
                    "id": i.id,
                    "order_id": i.order_id,
                    "product_id": i.product_id,
                    "price": self._price("order_item", i.product_id, i.price),
                    "quantity": i.quantity,
                }
            )
        _check_line_items(
            self.session,
            "order_item",
            OrderItem,
            OrderItem.order_id,
            [(i.id, i.order_id, i.product_id) for i in records],
        )
        self._insert("order_items", OrderItem, rows)

    def totals(self) -> None:
        self.report.totals = recompute_totals(
            self.session,
            order_request_ids=self.order_request_ids,
            order_ids=self.order_ids,
        )
        logger.info("load totals: %d envelopes recomputed", len(self.report.totals))
        if self.checkpoint:
            self.checkpoint("load.totals")

    def run(self) -> LoadReport:
        if not self.seed_company_id or self.seed_company_id not in self.company_ids:
            raise ReferentialGapError("category", "seed_company_id", self.seed_company_id or None)

        for name in LOAD_ORDER:
            getattr(self, name)()
        self.totals()
        return self.report


def load_bundle(
    session: Session,
    bundle: DatasetBundle,
    *,
    seed_company_id: str,
    chunk_size: int = BATCH_SIZE,
    checkpoint: Callable[[str], None] | None = None,
) -> LoadReport:
    """Load `bundle` in dependency order inside the caller's transaction."""
    loader = _BundleLoader(
        session,
        bundle,
        seed_company_id=seed_company_id,
        chunk_size=chunk_size,
        checkpoint=checkpoint,
    )
    return loader.run()

