"""
Truck Queue — Order store

The store is the only component allowed to mutate orders. Status updates
are conditional on the status the caller validated against:

  UPDATE orders SET status = :new, ... WHERE id = :id AND status = :expected

If another writer moved the order first, nothing is updated and
StaleStatusError tells the caller to re-read and re-validate.
"""
import abc
import asyncio
import dataclasses
import logging
import uuid
from collections.abc import Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from truckqueue.core.errors import NotFound, StoreUnavailable
from truckqueue.core.optimistic_lock import StaleStatusError
from truckqueue.models.order import Order as OrderRow, OrderLineItem as OrderLineItemRow
from truckqueue.orders.domain import LineItem, NewOrder, Order, OrderStatus

logger = logging.getLogger(__name__)


class OrderStore(abc.ABC):
    @abc.abstractmethod
    async def create(self, new_order: NewOrder) -> Order:
        """Assign id and timestamps, persist in one write, return the record."""

    @abc.abstractmethod
    async def get_by_id(self, order_id: str) -> Order:
        """Raises NotFound."""

    @abc.abstractmethod
    async def list_by_owner(self, owner_id: str) -> list[Order]:
        """Most recent first."""

    @abc.abstractmethod
    async def list_all(self, status: OrderStatus | None = None) -> list[Order]:
        """Most recent first."""

    @abc.abstractmethod
    async def count_where(self, statuses: Iterable[OrderStatus]) -> int:
        ...

    @abc.abstractmethod
    async def list_where(self, statuses: Iterable[OrderStatus]) -> list[Order]:
        ...

    @abc.abstractmethod
    async def update_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        fields: dict[str, datetime],
        expected_status: OrderStatus,
    ) -> Order:
        """Raises NotFound, or StaleStatusError if the stored status moved."""

    async def ping(self) -> None:
        """Raise if the backend is unreachable."""


# ─── SQLAlchemy store ─────────────────────────────────────────────────────────

def _row_to_order(row: OrderRow) -> Order:
    return Order(
        id=row.id,
        owner_id=row.owner_id,
        line_items=tuple(
            LineItem(catalog_item_id=li.catalog_item_id, quantity=li.quantity)
            for li in row.line_items
        ),
        total_price=row.total_price,
        estimated_wait_minutes=row.estimated_wait_minutes,
        status=row.status,
        contact_phone=row.contact_phone,
        created_at=row.created_at,
        updated_at=row.updated_at,
        ready_at=row.ready_at,
        delivered_at=row.delivered_at,
        cancelled_at=row.cancelled_at,
    )


class SqlOrderStore(OrderStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self):
        try:
            async with self._session_factory() as db:
                yield db
        except SQLAlchemyError as exc:
            logger.exception("Order store operation failed")
            raise StoreUnavailable(f"Order store unavailable: {exc.__class__.__name__}") from exc

    async def create(self, new_order: NewOrder) -> Order:
        now = datetime.now(tz=timezone.utc)
        row = OrderRow(
            id=str(uuid.uuid4()),
            owner_id=new_order.owner_id,
            status=new_order.status,
            total_price=new_order.total_price,
            estimated_wait_minutes=new_order.estimated_wait_minutes,
            contact_phone=new_order.contact_phone,
            created_at=now,
            updated_at=now,
            line_items=[
                OrderLineItemRow(position=i, catalog_item_id=li.catalog_item_id, quantity=li.quantity)
                for i, li in enumerate(new_order.line_items)
            ],
        )
        async with self._session() as db:
            db.add(row)
            await db.commit()
            return _row_to_order(row)

    async def get_by_id(self, order_id: str) -> Order:
        async with self._session() as db:
            result = await db.execute(select(OrderRow).where(OrderRow.id == order_id))
            row = result.scalar_one_or_none()
            if row is None:
                raise NotFound(f"Order {order_id} not found.")
            return _row_to_order(row)

    async def list_by_owner(self, owner_id: str) -> list[Order]:
        query = (
            select(OrderRow)
            .where(OrderRow.owner_id == owner_id)
            .order_by(OrderRow.created_at.desc())
        )
        async with self._session() as db:
            result = await db.execute(query)
            return [_row_to_order(row) for row in result.scalars().all()]

    async def list_all(self, status: OrderStatus | None = None) -> list[Order]:
        query = select(OrderRow).order_by(OrderRow.created_at.desc())
        if status:
            query = query.where(OrderRow.status == status)
        async with self._session() as db:
            result = await db.execute(query)
            return [_row_to_order(row) for row in result.scalars().all()]

    async def count_where(self, statuses: Iterable[OrderStatus]) -> int:
        query = select(func.count()).select_from(OrderRow).where(OrderRow.status.in_(list(statuses)))
        async with self._session() as db:
            return (await db.scalar(query)) or 0

    async def list_where(self, statuses: Iterable[OrderStatus]) -> list[Order]:
        query = (
            select(OrderRow)
            .where(OrderRow.status.in_(list(statuses)))
            .order_by(OrderRow.created_at)
        )
        async with self._session() as db:
            result = await db.execute(query)
            return [_row_to_order(row) for row in result.scalars().all()]

    async def update_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        fields: dict[str, datetime],
        expected_status: OrderStatus,
    ) -> Order:
        async with self._session() as db:
            result = await db.execute(
                update(OrderRow)
                .where(OrderRow.id == order_id, OrderRow.status == expected_status)
                .values(status=new_status, **fields)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                current = await db.scalar(select(OrderRow.status).where(OrderRow.id == order_id))
                await db.rollback()
                if current is None:
                    raise NotFound(f"Order {order_id} not found.")
                raise StaleStatusError(order_id, current, expected_status)
            await db.commit()

            row = (await db.execute(select(OrderRow).where(OrderRow.id == order_id))).scalar_one()
            return _row_to_order(row)

    async def ping(self) -> None:
        async with self._session() as db:
            await db.execute(select(1))


# ─── In-memory store ──────────────────────────────────────────────────────────

class MemoryOrderStore(OrderStore):
    """Process-local store for development and single-instance demos."""

    def __init__(self):
        self._orders: dict[str, Order] = {}
        self._lock = asyncio.Lock()

    def _newest_first(self, orders: Iterable[Order]) -> list[Order]:
        # dict preserves insertion order; reversing it breaks created_at ties
        return list(reversed(list(orders)))

    async def create(self, new_order: NewOrder) -> Order:
        now = datetime.now(tz=timezone.utc)
        order = Order(
            id=str(uuid.uuid4()),
            owner_id=new_order.owner_id,
            line_items=tuple(new_order.line_items),
            total_price=new_order.total_price,
            estimated_wait_minutes=new_order.estimated_wait_minutes,
            status=new_order.status,
            contact_phone=new_order.contact_phone,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self._orders[order.id] = order
        return order

    async def get_by_id(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found.")
        return order

    async def list_by_owner(self, owner_id: str) -> list[Order]:
        return self._newest_first(o for o in self._orders.values() if o.owner_id == owner_id)

    async def list_all(self, status: OrderStatus | None = None) -> list[Order]:
        return self._newest_first(
            o for o in self._orders.values() if status is None or o.status == status
        )

    async def count_where(self, statuses: Iterable[OrderStatus]) -> int:
        wanted = set(statuses)
        return sum(1 for o in self._orders.values() if o.status in wanted)

    async def list_where(self, statuses: Iterable[OrderStatus]) -> list[Order]:
        wanted = set(statuses)
        return [o for o in self._orders.values() if o.status in wanted]

    async def update_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        fields: dict[str, datetime],
        expected_status: OrderStatus,
    ) -> Order:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise NotFound(f"Order {order_id} not found.")
            if order.status != expected_status:
                raise StaleStatusError(order_id, order.status, expected_status)
            updated = dataclasses.replace(order, status=new_status, **fields)
            self._orders[order_id] = updated
            return updated
