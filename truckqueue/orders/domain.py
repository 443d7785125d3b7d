"""
Truck Queue — Order domain types

Plain records passed between the store, the service and the API layer.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PREPARING = "Preparing"
    READY = "Ready"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


# Orders still waiting on the truck; these make up the live queue.
ACTIVE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PREPARING})


@dataclass(frozen=True)
class LineItem:
    catalog_item_id: str
    quantity: int


@dataclass(frozen=True)
class CatalogItem:
    id: str
    price: Decimal
    prep_time_minutes: Decimal | int | None = None


@dataclass(frozen=True)
class Customer:
    id: str
    phone: str


@dataclass(frozen=True)
class NewOrder:
    """An order priced and estimated, not yet persisted."""
    owner_id: str
    line_items: tuple[LineItem, ...]
    total_price: Decimal
    estimated_wait_minutes: int
    contact_phone: str
    status: OrderStatus = OrderStatus.PENDING


@dataclass(frozen=True)
class Order:
    id: str
    owner_id: str
    line_items: tuple[LineItem, ...]
    total_price: Decimal
    estimated_wait_minutes: int | None
    status: OrderStatus
    contact_phone: str
    created_at: datetime
    updated_at: datetime
    ready_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None

    @property
    def order_number(self) -> str:
        """Short number shown to customers."""
        return self.id[-6:].upper()


@dataclass(frozen=True)
class QueueSnapshot:
    length: int
    estimated_wait_minutes: int

    def as_event(self) -> dict:
        return {"length": self.length, "estimated_wait_minutes": self.estimated_wait_minutes}


@dataclass
class Event:
    """Envelope published on notifier channels."""
    name: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"event": self.name, "data": self.data}
