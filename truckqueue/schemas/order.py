"""
Truck Queue — Pydantic Schemas
"""
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from truckqueue.orders.domain import OrderStatus


class LineItemRequest(BaseModel):
    catalog_item_id: str = Field(..., min_length=1, max_length=64, examples=["item-001"])
    quantity: int = Field(..., ge=1, strict=True)


class PlaceOrderRequest(BaseModel):
    items: list[LineItemRequest] = Field(..., min_length=1)


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class LineItemResponse(BaseModel):
    catalog_item_id: str
    quantity: int

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: str
    order_number: str
    owner_id: str
    line_items: list[LineItemResponse]
    total_price: float
    estimated_wait_minutes: int | None
    status: OrderStatus
    contact_phone: str
    created_at: datetime
    updated_at: datetime
    ready_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("total_price", mode="before")
    @classmethod
    def _price_as_float(cls, value):
        return float(value)


class QueueSnapshotResponse(BaseModel):
    length: int
    estimated_wait_minutes: int

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    dependencies: dict[str, str]
