from datetime import datetime

from pydantic import BaseModel, ConfigDict

from snackhub.app.db.models.core_types import OrderRequestStatus, OrderStatus


class LineItemRead(BaseModel):
    id: str
    product_id: str
    price: int
    quantity: int

    model_config = ConfigDict(from_attributes=True)


class OrderRequestRead(BaseModel):
    id: str
    company_id: str
    requester_id: str
    status: OrderRequestStatus
    total_amount: int  # READ ONLY: recomputed from items, never written
    resolver_id: str | None = None
    resolved_at: datetime | None = None
    notes: str | None = None
    items: list[LineItemRead] = []

    model_config = ConfigDict(from_attributes=True)


class OrderRead(BaseModel):
    id: str
    company_id: str
    user_id: str
    order_request_id: str | None = None
    status: OrderStatus
    total_amount: int
    items: list[LineItemRead] = []

    model_config = ConfigDict(from_attributes=True)
