"""
Truck Queue — Catalog and user lookups

Menu items and users live in their own services; orders only need the
price and prep time of an item and the phone number of a customer.
"""
import abc
import logging
from decimal import Decimal, InvalidOperation

import httpx

from truckqueue.core.config import get_settings
from truckqueue.core.errors import DependencyUnavailable, NotFound
from truckqueue.orders.domain import CatalogItem, Customer

settings = get_settings()
logger = logging.getLogger(__name__)


class Catalog(abc.ABC):
    @abc.abstractmethod
    async def get_catalog_item(self, item_id: str) -> CatalogItem:
        """Raises NotFound."""


class UserDirectory(abc.ABC):
    @abc.abstractmethod
    async def get_user(self, user_id: str) -> Customer:
        """Raises NotFound."""


class _HttpLookup:
    def __init__(
        self,
        base_url: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.transport = transport

    async def _get(self, path: str, what: str) -> dict | None:
        """GET a JSON document; None on 404."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.get(f"{self.base_url}{path}")
        except httpx.TimeoutException:
            raise DependencyUnavailable(f"{what} lookup timed out.")
        except httpx.RequestError as exc:
            raise DependencyUnavailable(f"{what} service unreachable: {exc}")

        if r.status_code == 404:
            return None
        if not r.is_success:
            logger.warning("%s lookup %s returned %d", what, path, r.status_code)
            raise DependencyUnavailable(f"{what} service answered {r.status_code}.")
        return r.json()


def _minutes(value) -> Decimal | None:
    """Prep time as a non-negative Decimal; None if the value is not a number."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        minutes = Decimal(str(value))
    except InvalidOperation:
        return None
    if not minutes.is_finite() or minutes < 0:
        return None
    return minutes


class HttpCatalog(_HttpLookup, Catalog):
    def __init__(self, base_url: str | None = None, **kwargs):
        super().__init__(base_url or settings.MENU_SERVICE_URL, **kwargs)

    async def get_catalog_item(self, item_id: str) -> CatalogItem:
        doc = await self._get(f"/menu/{item_id}", "Menu")
        if doc is None:
            raise NotFound(f"Menu item {item_id} not found")
        try:
            price = Decimal(str(doc["price"]))
        except (KeyError, InvalidOperation):
            raise DependencyUnavailable(f"Menu item {item_id} has no usable price.")
        prep = doc.get("prepTime", doc.get("prep_time_minutes"))
        if prep is not None:
            prep = _minutes(prep)
            if prep is None:
                raise DependencyUnavailable(f"Menu item {item_id} has no usable prep time.")
        return CatalogItem(id=item_id, price=price, prep_time_minutes=prep)


class HttpUserDirectory(_HttpLookup, UserDirectory):
    def __init__(self, base_url: str | None = None, **kwargs):
        super().__init__(base_url or settings.IDENTITY_SERVICE_URL, **kwargs)

    async def get_user(self, user_id: str) -> Customer:
        doc = await self._get(f"/users/{user_id}", "User")
        if doc is None:
            raise NotFound("User not found")
        return Customer(id=user_id, phone=doc.get("phone") or "")
