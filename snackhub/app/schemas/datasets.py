"""
Dataset bundle: the JSON files the loader reconciles into the store.

Every record is validated at the parse boundary: unknown keys are rejected,
required keys must be present. Keys may be camelCase (as exported by the
upstream tools) or snake_case.

Derived fields are deliberately absent: categories carry no company id (they
are stamped with the configured seed company), order requests / orders carry
no company id (taken from the requester) and no total (recomputed).
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from snackhub.app.db.ids import ID_LENGTH
from snackhub.app.db.models.core_types import OrderRequestStatus, OrderStatus, Role
from snackhub.services.errors import DatasetValidationError, MissingDatasetError

Id = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=ID_LENGTH)]


class _Record(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )


class CompanyRecord(_Record):
    id: Id
    name: str = Field(min_length=1, max_length=200)
    business_number: str | None = None


class CompanyAddressRecord(_Record):
    id: Id
    company_id: Id
    postal_code: str = Field(min_length=1, max_length=10)
    address: str = Field(min_length=1, max_length=255)


class CategoryRecord(_Record):
    id: Id
    name: str = Field(min_length=1, max_length=100)


class SubCategoryRecord(_Record):
    id: Id
    parent_id: Id
    name: str = Field(min_length=1, max_length=100)


class UserRecord(_Record):
    id: Id
    company_id: Id
    email: str = Field(min_length=3, max_length=255)
    name: str = Field(min_length=1, max_length=200)
    password: str = Field(min_length=1, max_length=255)
    role: Role = Role.member


class ProductRecord(_Record):
    id: Id
    company_id: Id
    category_id: Id
    name: str = Field(min_length=1, max_length=255)
    price: int = Field(ge=0)
    image_url: str | None = None


class CartRecord(_Record):
    id: Id
    user_id: Id


class OrderRequestRecord(_Record):
    id: Id
    requester_id: Id
    status: OrderRequestStatus = OrderRequestStatus.pending
    resolver_id: Id | None = None
    notes: str | None = None


class OrderRequestItemRecord(_Record):
    id: Id
    order_request_id: Id
    product_id: Id
    quantity: int = Field(gt=0)
    # omitted -> snapshot of the product price at load time
    price: int | None = Field(default=None, ge=0)


class OrderRecord(_Record):
    id: Id
    user_id: Id
    order_request_id: Id | None = None
    status: OrderStatus = OrderStatus.pending


class OrderItemRecord(_Record):
    id: Id
    order_id: Id
    product_id: Id
    quantity: int = Field(gt=0)
    price: int | None = Field(default=None, ge=0)


# file name -> (bundle attribute, record type, required)
DATASET_FILES: dict[str, tuple[str, type[_Record], bool]] = {
    "companies.json": ("companies", CompanyRecord, True),
    "company-addresses.json": ("company_addresses", CompanyAddressRecord, False),
    "categories.json": ("categories", CategoryRecord, True),
    "sub-categories.json": ("sub_categories", SubCategoryRecord, True),
    "users.json": ("users", UserRecord, True),
    "products.json": ("products", ProductRecord, True),
    "carts.json": ("carts", CartRecord, False),
    "order-requests.json": ("order_requests", OrderRequestRecord, False),
    "order-request-items.json": ("order_request_items", OrderRequestItemRecord, False),
    "orders.json": ("orders", OrderRecord, False),
    "order-items.json": ("order_items", OrderItemRecord, False),
}


class DatasetBundle(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    companies: list[CompanyRecord] = Field(default_factory=list)
    company_addresses: list[CompanyAddressRecord] = Field(default_factory=list)
    categories: list[CategoryRecord] = Field(default_factory=list)
    sub_categories: list[SubCategoryRecord] = Field(default_factory=list)
    users: list[UserRecord] = Field(default_factory=list)
    products: list[ProductRecord] = Field(default_factory=list)
    carts: list[CartRecord] = Field(default_factory=list)
    order_requests: list[OrderRequestRecord] = Field(default_factory=list)
    order_request_items: list[OrderRequestItemRecord] = Field(default_factory=list)
    orders: list[OrderRecord] = Field(default_factory=list)
    order_items: list[OrderItemRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self) -> "DatasetBundle":
        # categories and sub-categories share one table, hence one id space
        groups = {
            "categories": [*self.categories, *self.sub_categories],
            **{name: getattr(self, name) for name in type(self).model_fields if name not in ("categories", "sub_categories")},
        }
        for name, records in groups.items():
            dupes = [i for i, n in Counter(r.id for r in records).items() if n > 1]
            if dupes:
                raise ValueError(f"duplicate ids in {name}: {sorted(dupes)}")
        return self


def _read_dataset(path: Path, record_type: type[_Record]) -> list:
    try:
        return TypeAdapter(list[record_type]).validate_json(path.read_bytes())
    except ValidationError as exc:
        raise DatasetValidationError(path.name, str(exc)) from exc


def load_bundle_dir(data_dir: str | Path) -> DatasetBundle:
    """Read and validate every dataset file in `data_dir`."""
    data_dir = Path(data_dir)
    parsed: dict[str, list] = {}
    for filename, (attr, record_type, required) in DATASET_FILES.items():
        path = data_dir / filename
        if not path.is_file():
            if required:
                raise MissingDatasetError(filename, str(path))
            continue
        parsed[attr] = _read_dataset(path, record_type)

    try:
        return DatasetBundle(**parsed)
    except ValidationError as exc:
        raise DatasetValidationError("bundle", str(exc)) from exc
