"""
Order store contract, run against both the SQLAlchemy store (on aiosqlite)
and the in-memory store.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from truckqueue.core.errors import NotFound, StoreUnavailable
from truckqueue.core.optimistic_lock import StaleStatusError
from truckqueue.db.database import Base
from truckqueue.db.order_store import MemoryOrderStore, SqlOrderStore
from truckqueue.orders.domain import ACTIVE_STATUSES, LineItem, NewOrder, OrderStatus


def _new_order(owner_id: str = "user-1", wait: int = 13) -> NewOrder:
    return NewOrder(
        owner_id=owner_id,
        line_items=(LineItem("taco", 1), LineItem("churro", 2)),
        total_price=Decimal("19.00"),
        estimated_wait_minutes=wait,
        contact_phone="+15550000001",
    )


@pytest_asyncio.fixture(params=["memory", "sql"])
async def order_store(request, tmp_path):
    if request.param == "memory":
        yield MemoryOrderStore()
        return

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield SqlOrderStore(async_sessionmaker(engine, expire_on_commit=False))
    await engine.dispose()


@pytest.mark.asyncio
async def test_create_assigns_identity_and_timestamps(order_store):
    order = await order_store.create(_new_order())

    assert order.id
    assert order.status == OrderStatus.PENDING
    assert order.created_at is not None and order.updated_at is not None
    assert order.line_items == (LineItem("taco", 1), LineItem("churro", 2))

    fetched = await order_store.get_by_id(order.id)
    assert fetched.id == order.id
    assert fetched.total_price == Decimal("19.00")
    assert fetched.estimated_wait_minutes == 13
    assert fetched.line_items == order.line_items
    assert fetched.contact_phone == "+15550000001"


@pytest.mark.asyncio
async def test_get_missing_order_is_not_found(order_store):
    with pytest.raises(NotFound):
        await order_store.get_by_id("missing")


@pytest.mark.asyncio
async def test_lists_are_newest_first(order_store):
    first = await order_store.create(_new_order("user-1"))
    other = await order_store.create(_new_order("user-2"))
    second = await order_store.create(_new_order("user-1"))

    assert [o.id for o in await order_store.list_by_owner("user-1")] == [second.id, first.id]
    assert [o.id for o in await order_store.list_all()] == [second.id, other.id, first.id]
    assert await order_store.list_by_owner("nobody") == []


@pytest.mark.asyncio
async def test_count_and_list_by_status(order_store):
    a = await order_store.create(_new_order())
    b = await order_store.create(_new_order())
    await order_store.create(_new_order())
    now = datetime.now(tz=timezone.utc)
    await order_store.update_status(a.id, OrderStatus.PREPARING, {"updated_at": now}, OrderStatus.PENDING)
    await order_store.update_status(b.id, OrderStatus.CANCELLED,
                                    {"updated_at": now, "cancelled_at": now}, OrderStatus.PENDING)

    assert await order_store.count_where(ACTIVE_STATUSES) == 2
    assert await order_store.count_where({OrderStatus.CANCELLED}) == 1
    assert len(await order_store.list_where(ACTIVE_STATUSES)) == 2
    assert [o.id for o in await order_store.list_all(OrderStatus.PREPARING)] == [a.id]


@pytest.mark.asyncio
async def test_update_status_writes_status_and_fields(order_store):
    order = await order_store.create(_new_order())
    now = datetime.now(tz=timezone.utc)
    await order_store.update_status(order.id, OrderStatus.PREPARING, {"updated_at": now}, OrderStatus.PENDING)

    ready = await order_store.update_status(
        order.id, OrderStatus.READY, {"updated_at": now, "ready_at": now}, OrderStatus.PREPARING
    )

    assert ready.status == OrderStatus.READY
    assert ready.ready_at is not None
    assert ready.delivered_at is None and ready.cancelled_at is None
    assert (await order_store.get_by_id(order.id)).status == OrderStatus.READY


@pytest.mark.asyncio
async def test_update_status_is_conditional_on_expected_status(order_store):
    order = await order_store.create(_new_order())
    now = datetime.now(tz=timezone.utc)

    with pytest.raises(StaleStatusError):
        await order_store.update_status(
            order.id, OrderStatus.READY, {"updated_at": now, "ready_at": now}, OrderStatus.PREPARING
        )

    unchanged = await order_store.get_by_id(order.id)
    assert unchanged.status == OrderStatus.PENDING
    assert unchanged.ready_at is None


@pytest.mark.asyncio
async def test_update_missing_order_is_not_found(order_store):
    with pytest.raises(NotFound):
        await order_store.update_status(
            "missing", OrderStatus.PREPARING, {"updated_at": datetime.now(tz=timezone.utc)}, OrderStatus.PENDING
        )


@pytest.mark.asyncio
async def test_sql_errors_become_store_unavailable(tmp_path):
    # No tables created: every statement fails inside SQLAlchemy
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    store = SqlOrderStore(async_sessionmaker(engine, expire_on_commit=False))
    try:
        with pytest.raises(StoreUnavailable):
            await store.count_where(ACTIVE_STATUSES)
        with pytest.raises(StoreUnavailable):
            await store.create(_new_order())
    finally:
        await engine.dispose()
