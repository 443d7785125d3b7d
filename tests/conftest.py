"""
Shared fixtures: an in-memory order service wired to fake directories and an
in-process notifier.
"""
import os

# Settings are cached on first import; configure before truckqueue is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest-orders.db")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("NOTIFIER_BACKEND", "local")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("OPT_LOCK_BASE_DELAY_MS", "1")
os.environ.setdefault("OPT_LOCK_MAX_DELAY_MS", "5")
os.environ.setdefault("OPT_LOCK_JITTER_MS", "1")
os.environ.setdefault("SSE_KEEPALIVE_INTERVAL_SECONDS", "1")

from decimal import Decimal

import pytest
import pytest_asyncio

from truckqueue.clients.directory import Catalog, UserDirectory
from truckqueue.core.errors import NotFound
from truckqueue.db.order_store import MemoryOrderStore
from truckqueue.orders.domain import CatalogItem, Customer, LineItem
from truckqueue.orders.service import OrderService
from truckqueue.realtime.notifier import LocalNotifier


class FakeCatalog(Catalog):
    def __init__(self, items: dict[str, CatalogItem]):
        self.items = items
        self.lookups: list[str] = []

    async def get_catalog_item(self, item_id: str) -> CatalogItem:
        self.lookups.append(item_id)
        try:
            return self.items[item_id]
        except KeyError:
            raise NotFound(f"Menu item {item_id} not found")


class FakeUsers(UserDirectory):
    def __init__(self, phones: dict[str, str]):
        self.phones = phones

    async def get_user(self, user_id: str) -> Customer:
        if user_id not in self.phones:
            raise NotFound("User not found")
        return Customer(id=user_id, phone=self.phones[user_id])


@pytest.fixture
def catalog():
    return FakeCatalog({
        "taco": CatalogItem(id="taco", price=Decimal("10"), prep_time_minutes=8),
        "churro": CatalogItem(id="churro", price=Decimal("4.50")),
        "soda": CatalogItem(id="soda", price=Decimal("2"), prep_time_minutes=0),
    })


@pytest.fixture
def users():
    return FakeUsers({
        "user-1": "+15550000001",
        "user-2": "+15550000002",
        "admin-1": "+15550000099",
    })


@pytest.fixture
def store():
    return MemoryOrderStore()


@pytest.fixture
def notifier():
    return LocalNotifier(buffer_size=10)


@pytest.fixture
def contacted():
    return []


@pytest.fixture
def service(store, catalog, users, notifier, contacted):
    return OrderService(
        store=store,
        catalog=catalog,
        users=users,
        notifier=notifier,
        contact=contacted.append,
    )


@pytest_asyncio.fixture
async def two_queued(service):
    """Two active orders already waiting (churro x1 each, 5 min prep)."""
    return [
        await service.place_order("user-2", [LineItem("churro", 1)]),
        await service.place_order("user-2", [LineItem("churro", 1)]),
    ]
