from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    String,
    Integer,
    BigInteger,
    DateTime,
    Boolean,
    ForeignKey,
    Text,
    Enum,
    UniqueConstraint,
    Index,
    CheckConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from snackhub.app.db.base import Base
from snackhub.app.db.ids import ID_LENGTH, new_id
from snackhub.app.db.models.core_types import (
    FeeType,
    Role,
    OrderRequestStatus,
    OrderStatus,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum(enum_cls, name: str) -> Enum:
    # persist the enum values ("REMOTE_ISLAND"), not the member names
    return Enum(enum_cls, name=name, values_callable=lambda e: [m.value for m in e])


def _id_column() -> Mapped[str]:
    return mapped_column(String(ID_LENGTH), primary_key=True, default=new_id)


# ---------- REFERENCE DATA ----------
class Zipcode(Base):
    __tablename__ = "zipcodes"
    id: Mapped[str] = _id_column()
    postal_code: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    fee_type: Mapped[FeeType] = mapped_column(_enum(FeeType, "fee_type"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = (UniqueConstraint("postal_code", "address", name="uq_zipcode_postal_address"),)


# ---------- TENANTS ----------
class Company(Base):
    __tablename__ = "companies"
    id: Mapped[str] = _id_column()
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    business_number: Mapped[str | None] = mapped_column(String(32))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    addresses: Mapped[list["CompanyAddress"]] = relationship(back_populates="company")


class CompanyAddress(Base):
    __tablename__ = "company_addresses"
    id: Mapped[str] = _id_column()
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    postal_code: Mapped[str] = mapped_column(String(10), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    # weak reference: only set when (postal_code, address) matches a zipcode row
    zipcode_id: Mapped[str | None] = mapped_column(ForeignKey("zipcodes.id", ondelete="SET NULL"))

    company: Mapped[Company] = relationship(back_populates="addresses")
    zipcode: Mapped[Zipcode | None] = relationship()


# ---------- CATALOG ----------
class Category(Base):
    __tablename__ = "categories"
    id: Mapped[str] = _id_column()
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    parent_id: Mapped[str | None] = mapped_column(ForeignKey("categories.id", ondelete="CASCADE"))
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    parent: Mapped[Category | None] = relationship(remote_side="Category.id")

    __table_args__ = (
        UniqueConstraint("company_id", "parent_id", "name", name="uq_category_company_parent_name"),
        # NULL parent_id never collides in the constraint above
        Index(
            "uq_category_company_root_name",
            "company_id",
            "name",
            unique=True,
            postgresql_where=text("parent_id IS NULL"),
            sqlite_where=text("parent_id IS NULL"),
        ),
    )


class Product(Base):
    __tablename__ = "products"
    id: Mapped[str] = _id_column()
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False)
    category_id: Mapped[str] = mapped_column(
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)  # minor currency units
    image_url: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (CheckConstraint("price >= 0", name="ck_product_price_nonneg"),)


# ---------- AUTH ----------
class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = _id_column()
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    password: Mapped[str] = mapped_column(String(255), nullable=False)  # hash
    role: Mapped[Role] = mapped_column(_enum(Role, "role"), default=Role.member, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    company: Mapped[Company] = relationship()


class Cart(Base):
    __tablename__ = "carts"
    id: Mapped[str] = _id_column()
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )


# ---------- ORDERING ----------
class OrderRequest(Base):
    __tablename__ = "order_requests"
    id: Mapped[str] = _id_column()
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False)
    requester_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    status: Mapped[OrderRequestStatus] = mapped_column(
        _enum(OrderRequestStatus, "order_request_status"),
        default=OrderRequestStatus.pending,
        nullable=False,
    )
    # derived: SUM(price * quantity) of the items, never written directly
    total_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    resolver_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    items: Mapped[list["OrderRequestItem"]] = relationship(
        back_populates="order_request",
        cascade="all, delete-orphan",
    )

    __table_args__ = (CheckConstraint("total_amount >= 0", name="ck_order_request_total_nonneg"),)


class OrderRequestItem(Base):
    __tablename__ = "order_request_items"
    id: Mapped[str] = _id_column()
    order_request_id: Mapped[str] = mapped_column(
        ForeignKey("order_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)  # snapshot of Product.price
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    order_request: Mapped[OrderRequest] = relationship(back_populates="items")
    product: Mapped[Product] = relationship()

    __table_args__ = (
        UniqueConstraint("order_request_id", "product_id", name="uq_order_request_item_product"),
        CheckConstraint("quantity > 0", name="ck_order_request_item_qty_pos"),
        CheckConstraint("price >= 0", name="ck_order_request_item_price_nonneg"),
    )


class Order(Base):
    __tablename__ = "orders"
    id: Mapped[str] = _id_column()
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id", ondelete="RESTRICT"), nullable=False)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    order_request_id: Mapped[str | None] = mapped_column(
        ForeignKey("order_requests.id", ondelete="SET NULL"),
        unique=True,
    )
    status: Mapped[OrderStatus] = mapped_column(
        _enum(OrderStatus, "order_status"),
        default=OrderStatus.pending,
        nullable=False,
    )
    total_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    items: Mapped[list["OrderItem"]] = relationship(back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_order_total_nonneg"),
        Index("ix_orders_company_status", "company_id", "status"),
    )


class OrderItem(Base):
    __tablename__ = "order_items"
    id: Mapped[str] = _id_column()
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    order: Mapped[Order] = relationship(back_populates="items")
    product: Mapped[Product] = relationship()

    __table_args__ = (
        UniqueConstraint("order_id", "product_id", name="uq_order_item_product"),
        CheckConstraint("quantity > 0", name="ck_order_item_qty_pos"),
        CheckConstraint("price >= 0", name="ck_order_item_price_nonneg"),
    )
